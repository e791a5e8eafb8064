from datetime import datetime

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from backend.core.timeutils import to_utc_naive
from backend.database import ensure_availability_schema, ensure_session_schema
from backend.services.errors import ErrorReason, SchedulingError

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'

REASON_STATUS_CODES = {
    ErrorReason.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorReason.INVALID_TIME: status.HTTP_400_BAD_REQUEST,
    ErrorReason.PAST: status.HTTP_400_BAD_REQUEST,
    ErrorReason.NOT_IN_AVAILABILITY: status.HTTP_400_BAD_REQUEST,
    ErrorReason.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorReason.INVALID_STATUS: status.HTTP_400_BAD_REQUEST,
    ErrorReason.FORBIDDEN: status.HTTP_403_FORBIDDEN,
}


def ensure_database_ready() -> None:
    try:
        ensure_availability_schema()
        ensure_session_schema()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


def database_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )


def scheduling_http_error(exc: SchedulingError) -> HTTPException:
    return HTTPException(
        status_code=REASON_STATUS_CODES[exc.reason],
        detail=exc.to_dict(),
    )


def utc_instant(value: datetime, field_name: str) -> datetime:
    try:
        return to_utc_naive(value)
    except ValueError as exc:
        raise SchedulingError(ErrorReason.INVALID_TIME, f'{field_name} must include a UTC offset.') from exc
