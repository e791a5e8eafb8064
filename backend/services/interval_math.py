"""Half-open interval helpers.

Everything here works on any object exposing ``start`` and ``end``; an
interval ``[start, end)`` includes its start and excludes its end, so two
intervals that only touch do not overlap.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, model_validator


class Interval(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @model_validator(mode='after')
    def check_order(self) -> 'Interval':
        if self.end <= self.start:
            raise ValueError('Interval end must be after start.')
        return self


def overlap(a, b) -> Interval | None:
    start = max(a.start, b.start)
    end = min(a.end, b.end)
    if start >= end:
        return None
    return Interval(start=start, end=end)


def overlaps(a, b) -> bool:
    return a.start < b.end and a.end > b.start


def contains(outer, inner) -> bool:
    return inner.start >= outer.start and inner.end <= outer.end
