from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import get_current_user
from backend.core.timezone import format_time
from backend.database import get_db
from backend.routes.schedule_routes import DATABASE_UNAVAILABLE, ensure_database_ready
from backend.services import conflict_resolver
from backend.services.conflict_resolver import MAX_ID

router = APIRouter(tags=['teachers'])


class SlotAvailabilityResponse(BaseModel):
    teacher_id: int
    course_id: int | None = None
    date: date
    time: str
    available: bool
    reason: str | None = None


@router.get(
    '/{teacher_id}/availability',
    response_model=SlotAvailabilityResponse,
    dependencies=[Depends(get_current_user)],
)
def check_slot_availability(
    teacher_id: int = Path(..., ge=1, le=MAX_ID),
    slot_date: str = Query(..., alias='date'),
    slot_time: str = Query(..., alias='time'),
    course_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        availability = conflict_resolver.is_slot_available(db, teacher_id, course_id, slot_date, slot_time)
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc

    return SlotAvailabilityResponse(
        teacher_id=availability.teacher_id,
        course_id=availability.course_id,
        date=availability.date,
        time=format_time(availability.time),
        available=availability.available,
        reason=availability.reason,
    )
