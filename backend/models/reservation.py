"""Reservation model definitions."""

import enum

from sqlalchemy import Column, DateTime, Enum, Integer, String
from backend.database import Base


class ReservationStatus(str, enum.Enum):
    PENDING = "pending"
    RESERVED = "reserved"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Teacher-side statuses that still hold the teacher's time.
COMMITTED_TEACHER_STATUSES = (ReservationStatus.RESERVED, ReservationStatus.COMPLETED)


class Reservation(Base):
    """A booked one-hour lesson. reserve_time is stored as naive UTC."""
    __tablename__ = "reservations"

    id = Column(Integer, primary_key=True)
    uuid = Column(String(36), unique=True)
    course_id = Column(Integer)
    teacher_id = Column(Integer, index=True)
    student_id = Column(Integer)
    reserve_time = Column(DateTime, nullable=False)
    teacher_status = Column(Enum(ReservationStatus), default=ReservationStatus.RESERVED)
    student_status = Column(Enum(ReservationStatus), default=ReservationStatus.RESERVED)
    deleted_at = Column(DateTime, nullable=True)
