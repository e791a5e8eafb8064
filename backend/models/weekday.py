"""Weekday enumeration shared by availability records and client preferences."""

from datetime import date
from enum import IntEnum


class Weekday(IntEnum):
    """Day of week numbered like ``date.weekday()``."""
    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6

    @classmethod
    def of(cls, day: date) -> 'Weekday':
        return cls(day.weekday())

    @classmethod
    def from_sunday_index(cls, value: int) -> 'Weekday':
        """Convert the 0=Sunday .. 6=Saturday numbering used by browser clients."""
        if not 0 <= value <= 6:
            raise ValueError('dayOfWeek must be 0-6 or a day name (e.g. MONDAY)')
        return cls((value - 1) % 7)

    @classmethod
    def parse(cls, value) -> 'Weekday':
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = value.strip().upper()
            if normalized in cls.__members__:
                return cls[normalized]
            if normalized.isdigit():
                return cls.from_sunday_index(int(normalized))
        elif isinstance(value, int) and not isinstance(value, bool):
            return cls.from_sunday_index(value)
        raise ValueError('dayOfWeek must be 0-6 or a day name (e.g. MONDAY)')
