from datetime import date

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.core import config
from backend.core.timeutils import format_hhmm
from backend.database import get_db
from backend.routes.common import database_unavailable, ensure_database_ready, scheduling_http_error
from backend.services import slot_service
from backend.services.errors import SchedulingError

router = APIRouter(tags=['public'])


class TherapistSlotsResponse(BaseModel):
    therapist_id: int
    therapist_name: str
    slots: list[str]


def clamp_duration(duration_minutes: int | None) -> int:
    if not duration_minutes:
        return config.DEFAULT_LISTING_MINUTES
    return max(config.MIN_SLOT_MINUTES, min(config.MAX_SLOT_MINUTES, duration_minutes))


@router.get('/available-slots', response_model=list[TherapistSlotsResponse])
def list_available_slots(
    slot_date: date = Query(..., alias='date'),
    duration_minutes: int | None = Query(default=None, alias='durationMinutes'),
    db: Session = Depends(get_db),
):
    """Free start times (UTC, HH:MM) per therapist for one date."""
    ensure_database_ready()

    try:
        listings = slot_service.list_available_slots(db, slot_date, clamp_duration(duration_minutes))
        return [
            TherapistSlotsResponse(
                therapist_id=listing.therapist_id,
                therapist_name=listing.therapist_name,
                slots=[format_hhmm(slot.start.time()) for slot in listing.slots],
            )
            for listing in listings
        ]
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc
