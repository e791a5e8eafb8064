from datetime import date, datetime

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import get_current_identity
from backend.auth.identity import ROLE_CLIENT, RequestingIdentity
from backend.core import config
from backend.core.timeutils import as_utc
from backend.database import get_db
from backend.routes.common import database_unavailable, ensure_database_ready, scheduling_http_error
from backend.services import slot_service
from backend.services.errors import ErrorReason, SchedulingError

router = APIRouter(tags=['scheduling'])


class SuggestSlotsRequest(BaseModel):
    client_id: int | None = None
    therapist_id: int
    from_date: date
    to_date: date
    duration_minutes: int = Field(
        default=config.DEFAULT_SESSION_MINUTES,
        ge=config.MIN_SLOT_MINUTES,
        le=config.MAX_SLOT_MINUTES,
    )
    limit: int = Field(default=config.SUGGEST_TOP_N, ge=1, le=100)


class RankedSlotResponse(BaseModel):
    therapist_id: int
    start_time: datetime
    end_time: datetime
    score: float


class SuggestSlotsResponse(BaseModel):
    total: int
    ranked_slots: list[RankedSlotResponse]


@router.post('/suggest', response_model=SuggestSlotsResponse, status_code=status.HTTP_200_OK)
def suggest_slots(
    data: SuggestSlotsRequest,
    identity: RequestingIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        client_id = data.client_id
        if identity.role == ROLE_CLIENT:
            if data.client_id is not None and data.client_id != identity.client_id:
                raise SchedulingError(ErrorReason.FORBIDDEN, 'Clients can only request suggestions for themselves.')
            client_id = identity.client_id
        if client_id is None:
            raise SchedulingError(ErrorReason.NOT_FOUND, 'Client or therapist not found.')

        suggestions = slot_service.suggest_slots(
            db,
            client_id=client_id,
            therapist_id=data.therapist_id,
            from_date=data.from_date,
            to_date=data.to_date,
            duration_minutes=data.duration_minutes,
            top_n=data.limit,
        )
        return SuggestSlotsResponse(
            total=suggestions.total,
            ranked_slots=[
                RankedSlotResponse(
                    therapist_id=ranked.slot.therapist_id,
                    start_time=as_utc(ranked.slot.start),
                    end_time=as_utc(ranked.slot.end),
                    score=round(ranked.score, 4),
                )
                for ranked in suggestions.ranked_slots
            ],
        )
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc
