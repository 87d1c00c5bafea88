"""Weekly view of the same availability: one-hour standard lessons keyed by day 1-7."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import time

from sqlalchemy.orm import Session

from backend.core.errors import ScheduleValidationError
from backend.core.timezone import format_time
from backend.models.available_slot import TeacherAvailableSlot
from backend.services.availability_store import (
    SlotDefinition,
    get_schedule,
    get_teacher,
    swap_schedule,
)

STANDARD_SLOTS = ('09:00', '10:00', '11:00', '13:00', '14:00', '15:00', '16:00', '17:00', '19:00', '20:00')
WEEK_DAYS = ('1', '2', '3', '4', '5', '6', '7')  # 1 = Monday ... 7 = Sunday
LESSON_HOURS = 1


@dataclass
class WeeklySchedule:
    weekly_schedule: dict[str, list[str]] = field(default_factory=dict)
    created_count: int = 0
    updated_count: int = 0
    deleted_count: int = 0

    @property
    def slots_by_day(self) -> dict[str, int]:
        return {day: len(times) for day, times in self.weekly_schedule.items()}

    @property
    def total_slots(self) -> int:
        return sum(self.slots_by_day.values())


def week_day_to_weekday(week_day: str) -> int:
    day = int(week_day)
    return 0 if day == 7 else day


def weekday_to_week_day(weekday: int) -> str:
    return str(7 if weekday == 0 else weekday)


def slots_to_weekly(slots: Sequence[TeacherAvailableSlot]) -> dict[str, list[str]]:
    schedule: dict[str, list[str]] = {}
    for slot in slots:
        start = format_time(slot.start_time)
        if not slot.is_active or start not in STANDARD_SLOTS:
            continue
        schedule.setdefault(weekday_to_week_day(slot.weekday), []).append(start)

    return {day: sorted(set(schedule[day])) for day in sorted(schedule)}


def validate_weekly_schedule(weekly_schedule: Mapping[str, Sequence[str]]) -> list[SlotDefinition]:
    errors: dict[str, list[str]] = {}
    definitions: list[SlotDefinition] = []

    for week_day, time_slots in weekly_schedule.items():
        key = f'weekly_schedule.{week_day}'
        if week_day not in WEEK_DAYS:
            errors.setdefault(key, []).append('Week day must be one of 1-7 (1 = Monday, 7 = Sunday).')
            continue

        seen: set[str] = set()
        for time_slot in time_slots:
            if time_slot in seen:
                errors.setdefault(key, []).append(f'Duplicate time slot: {time_slot}.')
                continue
            seen.add(time_slot)

            if time_slot not in STANDARD_SLOTS:
                errors.setdefault(key, []).append(f'Invalid time slot: {time_slot}; must be a standard slot.')
                continue

            hour, minute = (int(part) for part in time_slot.split(':'))
            definitions.append(SlotDefinition(
                weekday=week_day_to_weekday(week_day),
                start_time=time(hour, minute),
                end_time=time(hour + LESSON_HOURS, minute),
            ))

    if errors:
        raise ScheduleValidationError(errors)

    return definitions


def get_weekly_schedule(db: Session, teacher_id: int) -> WeeklySchedule:
    return WeeklySchedule(weekly_schedule=slots_to_weekly(get_schedule(db, teacher_id)))


def replace_weekly_schedule(
    db: Session,
    teacher_id: int,
    weekly_schedule: Mapping[str, Sequence[str]],
) -> WeeklySchedule:
    get_teacher(db, teacher_id)
    definitions = validate_weekly_schedule(weekly_schedule)
    replacement = swap_schedule(db, teacher_id, definitions)

    return WeeklySchedule(
        weekly_schedule=slots_to_weekly(replacement.slots),
        created_count=replacement.created_count,
        updated_count=replacement.updated_count,
        deleted_count=replacement.deleted_count,
    )
