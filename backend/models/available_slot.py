"""Recurring weekly availability of a teacher."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Time, func
from backend.database import Base


class TeacherAvailableSlot(Base):
    """One recurring window; weekday 0 is Sunday."""
    __tablename__ = "teacher_available_slots"

    id = Column(Integer, primary_key=True)
    teacher_id = Column(Integer, ForeignKey("teachers.id"), nullable=False, index=True)
    weekday = Column(Integer, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
