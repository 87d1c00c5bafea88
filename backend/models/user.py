"""Accounts that authenticate against the schedule API."""

from sqlalchemy import Column, DateTime, Integer, String, func
from sqlalchemy.orm import relationship
from backend.database import Base


class User(Base):
    """Login identity. Teachers additionally own a Teacher profile."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String)
    role = Column(String, default="student")  # student/teacher/admin
    created_at = Column(DateTime, server_default=func.now())

    teacher = relationship("Teacher", back_populates="user", uselist=False)
