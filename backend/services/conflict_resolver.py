"""Collision detection between recurring availability and concrete reservations."""

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from sqlalchemy import or_
from sqlalchemy.orm import Session

from backend.core import config
from backend.core.errors import ScheduleValidationError
from backend.core.timezone import (
    as_utc,
    format_time,
    local_to_storage,
    schedule_weekday,
    storage_window,
    today,
    weekday_and_time,
)
from backend.models.available_slot import TeacherAvailableSlot
from backend.models.reservation import COMMITTED_TEACHER_STATUSES, Reservation, ReservationStatus
from backend.services.availability_store import find_active_slots, get_teacher, parse_time

logger = logging.getLogger(__name__)

DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')
SLOT_IDS_PATTERN = re.compile(r'^\s*\d+\s*(,\s*\d+\s*)*$')
MAX_ID = 2**63 - 1

# Keeps the storage window and the default range end inside datetime limits.
MIN_CHECK_DATE = date(1900, 1, 1)
MAX_CHECK_DATE = date(9998, 12, 31)

NO_MATCHING_SLOT = 'no_matching_slot'
ALREADY_RESERVED = 'already_reserved'


@dataclass(frozen=True)
class Conflict:
    slot_id: int
    reservation_id: int
    reserve_time: datetime
    student_id: int | None
    reason: str

    def as_dict(self) -> dict:
        return {
            'slot_id': self.slot_id,
            'reservation_id': self.reservation_id,
            'reserve_time': as_utc(self.reserve_time).isoformat(),
            'student_id': self.student_id,
            'reason': self.reason,
        }


@dataclass
class ConflictReport:
    conflicts: list[Conflict]
    from_date: date
    to_date: date

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    @property
    def total_conflicts(self) -> int:
        return len(self.conflicts)

    def as_dict(self) -> dict:
        return {
            'has_conflicts': self.has_conflicts,
            'conflicts': [conflict.as_dict() for conflict in self.conflicts],
            'total_conflicts': self.total_conflicts,
            'check_period': {
                'from_date': self.from_date.isoformat(),
                'to_date': self.to_date.isoformat(),
            },
        }


@dataclass(frozen=True)
class SlotAvailability:
    teacher_id: int
    course_id: int | None
    date: date
    time: time
    available: bool
    reason: str | None = None


def _parse_date_value(value: date | str, field_name: str) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    normalized = value.strip()
    if not normalized:
        return None
    if DATE_PATTERN.match(normalized):
        try:
            return date.fromisoformat(normalized)
        except ValueError:
            pass
    raise ScheduleValidationError({field_name: [f'{field_name} must be a valid date in YYYY-MM-DD format.']})


def parse_date(value: date | str | None, field_name: str) -> date | None:
    if value is None:
        return None
    parsed = _parse_date_value(value, field_name)
    if parsed is not None and not MIN_CHECK_DATE <= parsed <= MAX_CHECK_DATE:
        message = f'{field_name} must be between {MIN_CHECK_DATE.isoformat()} and {MAX_CHECK_DATE.isoformat()}.'
        raise ScheduleValidationError({field_name: [message]})
    return parsed


def parse_slot_ids(value: str | Sequence[int] | None) -> list[int] | None:
    """Accept '1,2,3' or a sequence of ints. Empty means no filter."""
    if value is None:
        return None
    if isinstance(value, str):
        if not value.strip():
            return None
        if not SLOT_IDS_PATTERN.match(value):
            raise ScheduleValidationError(
                {'slot_ids': ['slot_ids must be a comma separated list of numbers, e.g. 1,2,3.']}
            )
        slot_ids = [int(part) for part in value.split(',')]
    else:
        slot_ids = list(value)
        if any(isinstance(slot_id, bool) or not isinstance(slot_id, int) for slot_id in slot_ids):
            raise ScheduleValidationError({'slot_ids': ['slot_ids must contain integers only.']})
    if any(not 1 <= slot_id <= MAX_ID for slot_id in slot_ids):
        raise ScheduleValidationError({'slot_ids': [f'slot_ids must be between 1 and {MAX_ID}.']})
    return slot_ids or None


def resolve_period(from_date: date | str | None, to_date: date | str | None) -> tuple[date, date]:
    start = parse_date(from_date, 'from_date') or today()
    end = parse_date(to_date, 'to_date') or start + timedelta(days=config.DEFAULT_CONFLICT_RANGE_DAYS)

    if start > end:
        raise ScheduleValidationError({'date': ['from_date must not be later than to_date.']})
    if (end - start).days > config.MAX_CONFLICT_RANGE_DAYS:
        raise ScheduleValidationError(
            {'date': [f'The date range must not exceed {config.MAX_CONFLICT_RANGE_DAYS} days.']}
        )
    return start, end


def committed_reservation_filters() -> list:
    return [
        Reservation.deleted_at.is_(None),
        Reservation.teacher_status.in_(COMMITTED_TEACHER_STATUSES),
        or_(
            Reservation.student_status.is_(None),
            Reservation.student_status != ReservationStatus.CANCELLED,
        ),
    ]


def find_committed_reservations(
    db: Session,
    teacher_id: int,
    window_start: datetime,
    window_end: datetime,
) -> list[Reservation]:
    return db.query(Reservation).filter(
        Reservation.teacher_id == teacher_id,
        Reservation.reserve_time >= window_start,
        Reservation.reserve_time < window_end,
        *committed_reservation_filters(),
    ).order_by(Reservation.id.asc()).all()


def slot_covers(slot: TeacherAvailableSlot, weekday: int, time_of_day: time) -> bool:
    return slot.weekday == weekday and slot.start_time <= time_of_day < slot.end_time


def detect_conflicts(
    slots: Iterable[TeacherAvailableSlot],
    reservations: Iterable[Reservation],
) -> list[Conflict]:
    """Report every (slot, reservation) pair where the reservation starts inside the slot."""
    slots = list(slots)
    conflicts: list[Conflict] = []

    for reservation in reservations:
        weekday, time_of_day = weekday_and_time(reservation.reserve_time)
        for slot in slots:
            if not slot_covers(slot, weekday, time_of_day):
                continue
            conflicts.append(Conflict(
                slot_id=slot.id,
                reservation_id=reservation.id,
                reserve_time=reservation.reserve_time,
                student_id=reservation.student_id,
                reason=(
                    f'Reservation at {format_time(time_of_day)} falls within available slot '
                    f'{format_time(slot.start_time)}-{format_time(slot.end_time)}.'
                ),
            ))

    conflicts.sort(key=lambda conflict: (conflict.slot_id, conflict.reservation_id))
    return conflicts


def check_conflicts(
    db: Session,
    teacher_id: int,
    from_date: date | str | None = None,
    to_date: date | str | None = None,
    slot_ids: str | Sequence[int] | None = None,
) -> ConflictReport:
    start, end = resolve_period(from_date, to_date)
    slot_id_filter = parse_slot_ids(slot_ids)

    get_teacher(db, teacher_id)

    slots = find_active_slots(db, teacher_id, slot_ids=slot_id_filter)
    window_start, window_end = storage_window(start, end)
    reservations = find_committed_reservations(db, teacher_id, window_start, window_end)

    conflicts = detect_conflicts(slots, reservations)
    logger.info(
        'Conflict check for teacher %s (%s..%s): %d slots, %d reservations, %d conflicts.',
        teacher_id,
        start,
        end,
        len(slots),
        len(reservations),
        len(conflicts),
    )
    return ConflictReport(conflicts=conflicts, from_date=start, to_date=end)


def is_slot_available(
    db: Session,
    teacher_id: int,
    course_id: int | None,
    day: date | str,
    time_of_day: time | str,
) -> SlotAvailability:
    """Admission check for a proposed reservation at a local date/time."""
    parsed_day = parse_date(day, 'date')
    if parsed_day is None:
        raise ScheduleValidationError({'date': ['date is required.']})
    parsed_time = parse_time(time_of_day)
    if parsed_time is None:
        raise ScheduleValidationError({'time': ['time must use the HH:MM format.']})

    get_teacher(db, teacher_id)

    def result(available: bool, reason: str | None = None) -> SlotAvailability:
        return SlotAvailability(teacher_id, course_id, parsed_day, parsed_time, available, reason)

    weekday = schedule_weekday(parsed_day)
    slots = find_active_slots(db, teacher_id, weekday=weekday)
    if not any(slot_covers(slot, weekday, parsed_time) for slot in slots):
        logger.debug('Teacher %s has no active slot on %s at %s.', teacher_id, parsed_day, parsed_time)
        return result(False, NO_MATCHING_SLOT)

    reserve_time = local_to_storage(parsed_day, parsed_time)
    existing = db.query(Reservation.id).filter(
        Reservation.teacher_id == teacher_id,
        Reservation.reserve_time == reserve_time,
        *committed_reservation_filters(),
    ).first()
    if existing is not None:
        return result(False, ALREADY_RESERVED)

    return result(True)
