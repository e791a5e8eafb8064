"""Typed rejections raised by the scheduling engine."""

from enum import Enum


class ErrorReason(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    INVALID_TIME = "INVALID_TIME"
    PAST = "PAST"
    NOT_IN_AVAILABILITY = "NOT_IN_AVAILABILITY"
    CONFLICT = "CONFLICT"
    INVALID_STATUS = "INVALID_STATUS"
    FORBIDDEN = "FORBIDDEN"


class SchedulingError(Exception):
    """A precondition failure with a discriminated reason and a readable message."""

    def __init__(self, reason: ErrorReason, message: str):
        super().__init__(message)
        self.reason = reason
        self.message = message

    def to_dict(self) -> dict:
        return {'reason': self.reason.value, 'message': self.message}

    def __repr__(self) -> str:
        return f'SchedulingError({self.reason.value}, {self.message!r})'
