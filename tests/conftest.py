import itertools
import os
from datetime import datetime
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from backend.core import config  # noqa: E402
from backend.database import Base  # noqa: E402
from backend.models.available_slot import TeacherAvailableSlot  # noqa: E402
from backend.models.reservation import Reservation, ReservationStatus  # noqa: E402
from backend.models.teacher import Teacher  # noqa: E402
from backend.models.user import User  # noqa: E402

SCHEDULE_TABLES = [User.__table__, Teacher.__table__, TeacherAvailableSlot.__table__, Reservation.__table__]


@pytest.fixture(autouse=True)
def utc_schedule(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'SCHEDULE_TIMEZONE', 'UTC')
    monkeypatch.setattr(config, 'SCHEDULE_REJECT_OVERLAPS', True)


@pytest.fixture
def schedule_engine():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine, tables=SCHEDULE_TABLES)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine, tables=list(reversed(SCHEDULE_TABLES)))
        engine.dispose()


@pytest.fixture
def session_factory(schedule_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=schedule_engine)


@pytest.fixture
def schedule_db(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def make_user(schedule_db):
    counter = itertools.count(1)

    def _make_user(email: str | None = None, role: str = 'student') -> User:
        user = User(email=email or f'user{next(counter)}@example.com', hashed_password='', role=role)
        schedule_db.add(user)
        schedule_db.commit()
        schedule_db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_teacher(schedule_db, make_user):
    def _make_teacher(email: str | None = None) -> Teacher:
        user = make_user(email=email, role='teacher')
        teacher = Teacher(user_id=user.id, application_status='approved')
        schedule_db.add(teacher)
        schedule_db.commit()
        schedule_db.refresh(teacher)
        return teacher

    return _make_teacher


@pytest.fixture
def make_reservation(schedule_db):
    def _make_reservation(
        teacher_id: int,
        reserve_time: datetime,
        teacher_status: ReservationStatus = ReservationStatus.RESERVED,
        student_status: ReservationStatus = ReservationStatus.RESERVED,
        deleted_at: datetime | None = None,
        student_id: int = 42,
    ) -> Reservation:
        reservation = Reservation(
            uuid=str(uuid4()),
            course_id=1,
            teacher_id=teacher_id,
            student_id=student_id,
            reserve_time=reserve_time,
            teacher_status=teacher_status,
            student_status=student_status,
            deleted_at=deleted_at,
        )
        schedule_db.add(reservation)
        schedule_db.commit()
        schedule_db.refresh(reservation)
        return reservation

    return _make_reservation
