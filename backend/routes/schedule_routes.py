from datetime import datetime, time

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import get_current_teacher
from backend.core.timezone import format_time
from backend.database import ensure_schedule_schema, get_db
from backend.models.teacher import Teacher
from backend.services import availability_store, conflict_resolver, weekly_schedule

router = APIRouter(tags=['schedule'])

DATABASE_UNAVAILABLE = 'Database unavailable. Verify DATABASE_URL and database credentials.'


class SlotPayload(BaseModel):
    weekday: int | None = None
    start_time: str | None = None
    end_time: str | None = None
    is_active: bool | None = True


class UpdateScheduleRequest(BaseModel):
    available_slots: list[SlotPayload]


class AvailableSlotResponse(BaseModel):
    id: int
    teacher_id: int
    weekday: int
    start_time: str
    end_time: str
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator('start_time', 'end_time', mode='before')
    @classmethod
    def format_time_of_day(cls, value):
        if isinstance(value, time):
            return format_time(value)
        return value

    class Config:
        from_attributes = True


class ScheduleResponse(BaseModel):
    available_slots: list[AvailableSlotResponse]
    total_slots: int


class UpdateScheduleResponse(BaseModel):
    available_slots: list[AvailableSlotResponse]
    created_count: int
    updated_count: int
    deleted_count: int


class ConflictInfoResponse(BaseModel):
    slot_id: int
    reservation_id: int
    reserve_time: str
    student_id: int | None = None
    reason: str


class CheckPeriodResponse(BaseModel):
    from_date: str
    to_date: str


class CheckConflictsResponse(BaseModel):
    has_conflicts: bool
    conflicts: list[ConflictInfoResponse]
    total_conflicts: int
    check_period: CheckPeriodResponse


class WeeklyScheduleRequest(BaseModel):
    weekly_schedule: dict[str, list[str]]


class WeeklyScheduleResponse(BaseModel):
    weekly_schedule: dict[str, list[str]]
    total_slots: int
    slots_by_day: dict[str, int]
    created_count: int
    updated_count: int
    deleted_count: int


def ensure_database_ready() -> None:
    try:
        ensure_schedule_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc


def to_weekly_response(schedule: weekly_schedule.WeeklySchedule) -> WeeklyScheduleResponse:
    return WeeklyScheduleResponse(
        weekly_schedule=schedule.weekly_schedule,
        total_slots=schedule.total_slots,
        slots_by_day=schedule.slots_by_day,
        created_count=schedule.created_count,
        updated_count=schedule.updated_count,
        deleted_count=schedule.deleted_count,
    )


@router.get('', response_model=ScheduleResponse)
def get_schedule(
    teacher: Teacher = Depends(get_current_teacher),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        slots = availability_store.get_schedule(db, teacher.id)
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc

    return ScheduleResponse(
        available_slots=[AvailableSlotResponse.model_validate(slot) for slot in slots],
        total_slots=len(slots),
    )


@router.put('', response_model=UpdateScheduleResponse)
def update_schedule(
    data: UpdateScheduleRequest,
    teacher: Teacher = Depends(get_current_teacher),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    replacement = availability_store.replace_schedule(
        db,
        teacher.id,
        [slot.model_dump() for slot in data.available_slots],
    )

    return UpdateScheduleResponse(
        available_slots=[AvailableSlotResponse.model_validate(slot) for slot in replacement.slots],
        created_count=replacement.created_count,
        updated_count=replacement.updated_count,
        deleted_count=replacement.deleted_count,
    )


@router.get('/conflicts', response_model=CheckConflictsResponse)
def check_conflicts(
    from_date: str | None = Query(default=None),
    to_date: str | None = Query(default=None),
    slot_ids: str | None = Query(default=None),
    teacher: Teacher = Depends(get_current_teacher),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        report = conflict_resolver.check_conflicts(db, teacher.id, from_date, to_date, slot_ids)
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc

    return CheckConflictsResponse(**report.as_dict())


@router.get('/weekly', response_model=WeeklyScheduleResponse)
def get_weekly_schedule(
    teacher: Teacher = Depends(get_current_teacher),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        schedule = weekly_schedule.get_weekly_schedule(db, teacher.id)
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc

    return to_weekly_response(schedule)


@router.put('/weekly', response_model=WeeklyScheduleResponse)
def update_weekly_schedule(
    data: WeeklyScheduleRequest,
    teacher: Teacher = Depends(get_current_teacher),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    schedule = weekly_schedule.replace_weekly_schedule(db, teacher.id, data.weekly_schedule)
    return to_weekly_response(schedule)
