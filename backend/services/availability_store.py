"""Authoritative store of a teacher's recurring weekly availability.

A teacher's slots form one aggregate. The only write is a full replacement,
which validates the whole batch first and then swaps the old rows for the new
ones inside a single transaction.
"""

import logging
import re
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import time

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.core import config
from backend.core.errors import ScheduleUpdateError, ScheduleValidationError, TeacherNotFoundError
from backend.core.timezone import format_time
from backend.models.available_slot import TeacherAvailableSlot
from backend.models.teacher import Teacher

logger = logging.getLogger(__name__)

TIME_PATTERN = re.compile(r'^([0-1]?[0-9]|2[0-3]):([0-5][0-9])$')
MIN_WEEKDAY = 0
MAX_WEEKDAY = 6

REQUIRED = 'required'
RANGE = 'range'
FORMAT = 'format'
ORDERING = 'ordering'
OVERLAP = 'overlap'
DUPLICATE = 'duplicate'
TOO_MANY = 'too_many'

ERROR_MESSAGES = {
    ('weekday', REQUIRED): 'Weekday is required.',
    ('weekday', FORMAT): 'Weekday must be an integer.',
    ('weekday', RANGE): f'Weekday must be between {MIN_WEEKDAY} and {MAX_WEEKDAY}.',
    ('start_time', REQUIRED): 'Start time is required.',
    ('start_time', FORMAT): 'Start time must use the HH:MM format.',
    ('end_time', REQUIRED): 'End time is required.',
    ('end_time', FORMAT): 'End time must use the HH:MM format.',
    ('end_time', ORDERING): 'End time must be later than start time.',
    ('is_active', FORMAT): 'is_active must be a boolean.',
}


@dataclass(frozen=True)
class SlotValidationError:
    slot_index: int
    field: str
    code: str
    message: str

    @property
    def key(self) -> str:
        return f'available_slots[{self.slot_index}].{self.field}'


@dataclass(frozen=True)
class SlotDefinition:
    weekday: int
    start_time: time
    end_time: time
    is_active: bool = True

    def overlaps(self, other: 'SlotDefinition') -> bool:
        return (
            self.weekday == other.weekday
            and self.start_time < other.end_time
            and other.start_time < self.end_time
        )


@dataclass
class ScheduleReplacement:
    slots: list[TeacherAvailableSlot] = field(default_factory=list)
    created_count: int = 0
    updated_count: int = 0
    deleted_count: int = 0


def parse_time(value) -> time | None:
    """Parse ``H:MM``/``HH:MM``; ``time`` instances pass through. None when malformed."""
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    if not isinstance(value, str):
        return None
    match = TIME_PATTERN.match(value.strip())
    if match is None:
        return None
    return time(int(match.group(1)), int(match.group(2)))


def _error(index: int, field_name: str, code: str) -> SlotValidationError:
    return SlotValidationError(index, field_name, code, ERROR_MESSAGES[(field_name, code)])


def _is_missing(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def validate_slot(slot: Mapping, index: int = 0) -> tuple[SlotDefinition | None, list[SlotValidationError]]:
    errors: list[SlotValidationError] = []

    weekday = slot.get('weekday')
    if weekday is None:
        errors.append(_error(index, 'weekday', REQUIRED))
    elif isinstance(weekday, bool) or not isinstance(weekday, int):
        errors.append(_error(index, 'weekday', FORMAT))
    elif not MIN_WEEKDAY <= weekday <= MAX_WEEKDAY:
        errors.append(_error(index, 'weekday', RANGE))

    parsed_times = {}
    for field_name in ('start_time', 'end_time'):
        raw = slot.get(field_name)
        if _is_missing(raw):
            errors.append(_error(index, field_name, REQUIRED))
            continue
        parsed = parse_time(raw)
        if parsed is None:
            errors.append(_error(index, field_name, FORMAT))
        else:
            parsed_times[field_name] = parsed

    start_time = parsed_times.get('start_time')
    end_time = parsed_times.get('end_time')
    if start_time is not None and end_time is not None and end_time <= start_time:
        errors.append(_error(index, 'end_time', ORDERING))

    is_active = slot.get('is_active', True)
    if is_active is None:
        is_active = True
    elif not isinstance(is_active, bool):
        errors.append(_error(index, 'is_active', FORMAT))

    if errors:
        return None, errors
    return SlotDefinition(weekday, start_time, end_time, is_active), errors


def find_overlaps(
    definitions: Sequence[tuple[int, SlotDefinition]],
    reject_overlaps: bool,
) -> list[SlotValidationError]:
    """Duplicates are always reported; partial overlaps of active slots only when enabled."""
    errors: list[SlotValidationError] = []
    for position, (index, slot) in enumerate(definitions):
        for earlier_index, earlier in definitions[:position]:
            same_window = (
                slot.weekday == earlier.weekday
                and slot.start_time == earlier.start_time
                and slot.end_time == earlier.end_time
            )
            if same_window:
                errors.append(SlotValidationError(
                    index,
                    'start_time',
                    DUPLICATE,
                    f'Duplicate of available_slots[{earlier_index}] '
                    f'({format_time(slot.start_time)}-{format_time(slot.end_time)}).',
                ))
                break
            if reject_overlaps and slot.is_active and earlier.is_active and slot.overlaps(earlier):
                errors.append(SlotValidationError(
                    index,
                    'start_time',
                    OVERLAP,
                    f'Overlaps available_slots[{earlier_index}] '
                    f'({format_time(earlier.start_time)}-{format_time(earlier.end_time)}) on the same weekday.',
                ))
                break
    return errors


def group_errors(errors: Iterable[SlotValidationError]) -> dict[str, list[str]]:
    grouped: dict[str, list[str]] = {}
    for error in errors:
        grouped.setdefault(error.key, []).append(error.message)
    return grouped


def validate_schedule(
    new_slots: Sequence[Mapping],
    reject_overlaps: bool | None = None,
) -> list[SlotDefinition]:
    """Validate a whole replacement batch or raise ScheduleValidationError."""
    if reject_overlaps is None:
        reject_overlaps = config.SCHEDULE_REJECT_OVERLAPS

    if len(new_slots) > config.MAX_SLOTS_PER_TEACHER:
        raise ScheduleValidationError(
            {'available_slots': [f'At most {config.MAX_SLOTS_PER_TEACHER} slots can be configured.']}
        )

    errors: list[SlotValidationError] = []
    definitions: list[tuple[int, SlotDefinition]] = []
    for index, slot in enumerate(new_slots):
        definition, slot_errors = validate_slot(slot, index)
        errors.extend(slot_errors)
        if definition is not None:
            definitions.append((index, definition))

    errors.extend(find_overlaps(definitions, reject_overlaps))

    if errors:
        raise ScheduleValidationError(group_errors(errors))

    return [definition for _, definition in definitions]


def get_teacher(db: Session, teacher_id: int) -> Teacher:
    teacher = db.query(Teacher).filter(Teacher.id == teacher_id).first()
    if teacher is None:
        raise TeacherNotFoundError
    return teacher


def get_schedule(db: Session, teacher_id: int) -> list[TeacherAvailableSlot]:
    get_teacher(db, teacher_id)
    return db.query(TeacherAvailableSlot).filter(
        TeacherAvailableSlot.teacher_id == teacher_id,
    ).order_by(
        TeacherAvailableSlot.weekday.asc(),
        TeacherAvailableSlot.start_time.asc(),
        TeacherAvailableSlot.id.asc(),
    ).all()


def find_active_slots(
    db: Session,
    teacher_id: int,
    weekday: int | None = None,
    slot_ids: Sequence[int] | None = None,
) -> list[TeacherAvailableSlot]:
    query = db.query(TeacherAvailableSlot).filter(
        TeacherAvailableSlot.teacher_id == teacher_id,
        TeacherAvailableSlot.is_active.is_(True),
    )
    if weekday is not None:
        query = query.filter(TeacherAvailableSlot.weekday == weekday)
    if slot_ids:
        query = query.filter(TeacherAvailableSlot.id.in_(list(slot_ids)))
    return query.order_by(TeacherAvailableSlot.id.asc()).all()


def swap_schedule(db: Session, teacher_id: int, definitions: Sequence[SlotDefinition]) -> ScheduleReplacement:
    """Delete every stored slot of the teacher and insert the given ones in one transaction."""
    try:
        existing = db.query(TeacherAvailableSlot).filter(
            TeacherAvailableSlot.teacher_id == teacher_id,
        ).all()
        for slot in existing:
            db.delete(slot)

        created = [
            TeacherAvailableSlot(
                teacher_id=teacher_id,
                weekday=definition.weekday,
                start_time=definition.start_time,
                end_time=definition.end_time,
                is_active=definition.is_active,
            )
            for definition in definitions
        ]
        db.add_all(created)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Replacing the schedule of teacher %s failed; rolled back.', teacher_id)
        raise ScheduleUpdateError from exc

    for slot in created:
        db.refresh(slot)

    logger.info(
        'Replaced schedule of teacher %s: %d deleted, %d created.',
        teacher_id,
        len(existing),
        len(created),
    )

    return ScheduleReplacement(
        slots=sorted(created, key=lambda slot: (slot.weekday, slot.start_time, slot.id)),
        created_count=len(created),
        updated_count=0,
        deleted_count=len(existing),
    )


def replace_schedule(
    db: Session,
    teacher_id: int,
    new_slots: Sequence[Mapping],
    reject_overlaps: bool | None = None,
) -> ScheduleReplacement:
    get_teacher(db, teacher_id)
    definitions = validate_schedule(new_slots, reject_overlaps)
    return swap_schedule(db, teacher_id, definitions)
