"""Teacher model definitions."""

from sqlalchemy import Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from backend.database import Base


class Teacher(Base):
    """Teacher profile owned by a user; owns the weekly availability."""
    __tablename__ = "teachers"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, index=True)
    application_status = Column(String, default="approved")

    user = relationship("User", back_populates="teacher")
