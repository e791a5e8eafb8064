from datetime import datetime, time

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ValidationInfo, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import get_current_identity
from backend.auth.identity import ROLE_THERAPIST, RequestingIdentity
from backend.core.timeutils import as_utc, format_hhmm, parse_hhmm
from backend.database import get_db
from backend.models.availability import AvailabilityRecord
from backend.models.time_off import TimeOff
from backend.models.weekday import Weekday
from backend.routes.common import database_unavailable, ensure_database_ready, scheduling_http_error, utc_instant
from backend.services import availability_records
from backend.services.errors import SchedulingError

router = APIRouter(tags=['availability'])
time_off_router = APIRouter(tags=['time-off'])

MAX_TIME_OFF_REASON_LENGTH = 200


class CreateAvailabilityRequest(BaseModel):
    day_of_week: Weekday
    start_time: time
    end_time: time
    recurring_weekly: bool = True
    therapist_id: int | None = None

    @field_validator('day_of_week', mode='before')
    @classmethod
    def parse_day_of_week(cls, value):
        if value is None:
            return None
        return Weekday.parse(value)

    @field_validator('start_time', 'end_time', mode='before')
    @classmethod
    def parse_wall_clock(cls, value, info: ValidationInfo):
        if isinstance(value, str):
            return parse_hhmm(value, end_of_day=info.field_name == 'end_time')
        return value


class UpdateAvailabilityRequest(BaseModel):
    day_of_week: Weekday | None = None
    start_time: time | None = None
    end_time: time | None = None
    recurring_weekly: bool | None = None

    @field_validator('day_of_week', mode='before')
    @classmethod
    def parse_day_of_week(cls, value):
        if value is None:
            return None
        return Weekday.parse(value)

    @field_validator('start_time', 'end_time', mode='before')
    @classmethod
    def parse_wall_clock(cls, value, info: ValidationInfo):
        if isinstance(value, str):
            return parse_hhmm(value, end_of_day=info.field_name == 'end_time')
        return value


class AvailabilityResponse(BaseModel):
    id: int
    therapist_id: int
    day_of_week: str
    start_time: str
    end_time: str
    recurring_weekly: bool


class CreateTimeOffRequest(BaseModel):
    start_time: datetime
    end_time: datetime
    reason: str | None = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_TIME_OFF_REASON_LENGTH:
            raise ValueError(f'Reason must be {MAX_TIME_OFF_REASON_LENGTH} characters or fewer.')

        return normalized


class TimeOffResponse(BaseModel):
    id: int
    therapist_id: int
    start_time: datetime
    end_time: datetime
    reason: str | None = None


def to_availability_response(record: AvailabilityRecord) -> AvailabilityResponse:
    return AvailabilityResponse(
        id=record.id,
        therapist_id=record.therapist_id,
        day_of_week=Weekday(record.day_of_week).name,
        start_time=format_hhmm(record.start_time),
        end_time=format_hhmm(record.end_time, end_of_day=True),
        recurring_weekly=bool(record.recurring_weekly),
    )


def to_time_off_response(time_off: TimeOff) -> TimeOffResponse:
    return TimeOffResponse(
        id=time_off.id,
        therapist_id=time_off.therapist_id,
        start_time=as_utc(time_off.start_time),
        end_time=as_utc(time_off.end_time),
        reason=time_off.reason,
    )


@router.get('', response_model=list[AvailabilityResponse])
def list_availability(
    therapist_id: int | None = Query(default=None),
    identity: RequestingIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    # Therapists always see their own records; everyone else must name a therapist.
    if identity.role == ROLE_THERAPIST:
        therapist_id = identity.therapist_id
    if therapist_id is None:
        return []

    ensure_database_ready()

    try:
        records = availability_records.list_availability(db, therapist_id)
        return [to_availability_response(record) for record in records]
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('', response_model=AvailabilityResponse, status_code=status.HTTP_201_CREATED)
def create_availability(
    data: CreateAvailabilityRequest,
    identity: RequestingIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        record = availability_records.create_availability(
            db,
            identity,
            day_of_week=data.day_of_week,
            start_time=data.start_time,
            end_time=data.end_time,
            recurring_weekly=data.recurring_weekly,
            therapist_id=data.therapist_id,
        )
        return to_availability_response(record)
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.patch('/{record_id}', response_model=AvailabilityResponse)
def update_availability(
    record_id: int,
    data: UpdateAvailabilityRequest,
    identity: RequestingIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        record = availability_records.update_availability(
            db,
            identity,
            record_id,
            day_of_week=data.day_of_week,
            start_time=data.start_time,
            end_time=data.end_time,
            recurring_weekly=data.recurring_weekly,
        )
        return to_availability_response(record)
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.delete('/{record_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_availability(
    record_id: int,
    identity: RequestingIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        availability_records.delete_availability(db, identity, record_id)
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@time_off_router.get(
    '/{therapist_id}/time-off',
    response_model=list[TimeOffResponse],
    dependencies=[Depends(get_current_identity)],
)
def list_time_off(
    therapist_id: int,
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return [to_time_off_response(time_off) for time_off in availability_records.list_time_off(db, therapist_id)]
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@time_off_router.post('/{therapist_id}/time-off', response_model=TimeOffResponse, status_code=status.HTTP_201_CREATED)
def add_time_off(
    therapist_id: int,
    data: CreateTimeOffRequest,
    identity: RequestingIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        time_off = availability_records.add_time_off(
            db,
            identity,
            therapist_id,
            start=utc_instant(data.start_time, 'start_time'),
            end=utc_instant(data.end_time, 'end_time'),
            reason=data.reason,
        )
        return to_time_off_response(time_off)
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@time_off_router.delete('/{therapist_id}/time-off/{time_off_id}', status_code=status.HTTP_204_NO_CONTENT)
def remove_time_off(
    therapist_id: int,
    time_off_id: int,
    identity: RequestingIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        availability_records.remove_time_off(db, identity, therapist_id, time_off_id)
    except SchedulingError as exc:
        raise scheduling_http_error(exc) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
