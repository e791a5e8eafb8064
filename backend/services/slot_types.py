"""Value types passed between the availability, slot and ranking steps."""

from datetime import date, datetime, time

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from backend.core.timeutils import end_datetime, ends_after, format_hhmm, parse_hhmm
from backend.models.weekday import Weekday
from backend.services.interval_math import Interval


class TimeRange(BaseModel):
    """A wall-clock window within a single day.

    An end of 00:00 (written "24:00") runs to the following midnight; use
    ``on()`` to get comparable instants.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    start: time = Field(alias='startTime')
    end: time = Field(alias='endTime')

    @field_validator('start', mode='before')
    @classmethod
    def parse_start(cls, value):
        if isinstance(value, str):
            return parse_hhmm(value)
        return value

    @field_validator('end', mode='before')
    @classmethod
    def parse_end(cls, value):
        if isinstance(value, str):
            return parse_hhmm(value, end_of_day=True)
        return value

    @model_validator(mode='after')
    def check_order(self) -> 'TimeRange':
        if not ends_after(self.start, self.end):
            raise ValueError('endTime must be after startTime')
        return self

    def on(self, day: date) -> Interval:
        return Interval(start=datetime.combine(day, self.start), end=end_datetime(day, self.end))

    def to_wire(self) -> dict:
        return {'startTime': format_hhmm(self.start), 'endTime': format_hhmm(self.end, end_of_day=True)}


class ClientPreferences(BaseModel):
    preferred_days_of_week: frozenset[Weekday] = frozenset()
    preferred_time_ranges: tuple[TimeRange, ...] = ()
    preferred_therapist_ids: frozenset[int] = frozenset()
    no_earlier_than: time | None = None
    no_later_than: time | None = None

    @field_validator('preferred_days_of_week', mode='before')
    @classmethod
    def parse_days(cls, value):
        return frozenset(Weekday.parse(day) for day in value or ())

    @field_validator('no_earlier_than', 'no_later_than', mode='before')
    @classmethod
    def parse_limit(cls, value):
        if isinstance(value, str):
            return parse_hhmm(value)
        return value

    @classmethod
    def from_client(cls, client) -> 'ClientPreferences':
        return cls(
            preferred_days_of_week=client.preferred_days_of_week or (),
            preferred_time_ranges=tuple(
                TimeRange.model_validate(time_range) for time_range in client.preferred_time_ranges or ()
            ),
            preferred_therapist_ids=frozenset(int(tid) for tid in client.preferred_therapist_ids or ()),
            no_earlier_than=client.no_earlier_than,
            no_later_than=client.no_later_than,
        )

    def allows_day(self, weekday: Weekday) -> bool:
        return not self.preferred_days_of_week or weekday in self.preferred_days_of_week

    def to_columns(self) -> dict:
        """Column values for ``Client``; weekdays are written by name."""
        return {
            'preferred_days_of_week': [day.name for day in sorted(self.preferred_days_of_week)],
            'preferred_time_ranges': [
                time_range.to_wire() for time_range in sorted(self.preferred_time_ranges, key=lambda tr: tr.start)
            ],
            'preferred_therapist_ids': sorted(self.preferred_therapist_ids),
            'no_earlier_than': self.no_earlier_than,
            'no_later_than': self.no_later_than,
        }


class Slot(BaseModel):
    model_config = ConfigDict(frozen=True)

    therapist_id: int
    start: datetime
    end: datetime


class RankedSlot(BaseModel):
    model_config = ConfigDict(frozen=True)

    slot: Slot
    score: float
