from datetime import time

from fastapi import APIRouter, Depends
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import get_current_identity
from backend.auth.identity import RequestingIdentity
from backend.core.timeutils import format_hhmm, parse_hhmm
from backend.database import get_db
from backend.models.weekday import Weekday
from backend.routes.common import database_unavailable, ensure_database_ready, scheduling_http_error
from backend.services import client_preferences
from backend.services.errors import SchedulingError
from backend.services.slot_types import ClientPreferences, TimeRange

router = APIRouter(tags=['clients'])


class UpdatePreferencesRequest(BaseModel):
    preferred_days_of_week: list[Weekday] = []
    preferred_time_ranges: list[TimeRange] = []
    preferred_therapist_ids: list[int] = []
    no_earlier_than: time | None = None
    no_later_than: time | None = None

    @field_validator('preferred_days_of_week', mode='before')
    @classmethod
    def parse_days(cls, value):
        if value is None:
            return []
        return [Weekday.parse(day) for day in value]

    @field_validator('no_earlier_than', 'no_later_than', mode='before')
    @classmethod
    def parse_limit(cls, value):
        if isinstance(value, str):
            normalized = value.strip()
            if not normalized:
                return None
            return parse_hhmm(normalized)
        return value


class PreferencesResponse(BaseModel):
    client_id: int
    preferred_days_of_week: list[str]
    preferred_time_ranges: list[dict[str, str]]
    preferred_therapist_ids: list[int]
    no_earlier_than: str | None = None
    no_later_than: str | None = None


def _format_limit(value: time | None) -> str | None:
    return format_hhmm(value) if value is not None else None


def to_preferences_response(client_id: int, preferences: ClientPreferences) -> PreferencesResponse:
    columns = preferences.to_columns()
    return PreferencesResponse(
        client_id=client_id,
        preferred_days_of_week=columns['preferred_days_of_week'],
        preferred_time_ranges=columns['preferred_time_ranges'],
        preferred_therapist_ids=columns['preferred_therapist_ids'],
        no_earlier_than=_format_limit(preferences.no_earlier_than),
        no_later_than=_format_limit(preferences.no_later_than),
    )


@router.get('/{client_id}/preferences', response_model=PreferencesResponse)
def get_preferences(
    client_id: int,
    identity: RequestingIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        preferences = client_preferences.get_client_preferences(db, identity, client_id)
        return to_preferences_response(client_id, preferences)
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.put('/{client_id}/preferences', response_model=PreferencesResponse)
def update_preferences(
    client_id: int,
    data: UpdatePreferencesRequest,
    identity: RequestingIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        preferences = client_preferences.update_client_preferences(
            db,
            identity,
            client_id,
            ClientPreferences(
                preferred_days_of_week=data.preferred_days_of_week,
                preferred_time_ranges=tuple(data.preferred_time_ranges),
                preferred_therapist_ids=frozenset(data.preferred_therapist_ids),
                no_earlier_than=data.no_earlier_than,
                no_later_than=data.no_later_than,
            ),
        )
        return to_preferences_response(client_id, preferences)
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
