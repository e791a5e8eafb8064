"""Slices resolved availability into fixed-length candidate slots."""

from datetime import date, datetime, timedelta
from typing import Iterable

from backend.services.errors import ErrorReason, SchedulingError
from backend.services.interval_math import Interval, contains, overlap, overlaps
from backend.services.slot_types import ClientPreferences, Slot


def validate_duration(duration_minutes: int) -> timedelta:
    if duration_minutes is None or duration_minutes <= 0:
        raise SchedulingError(ErrorReason.INVALID_TIME, 'Slot duration must be a positive number of minutes.')
    return timedelta(minutes=duration_minutes)


def preferred_windows(day: date, block: Interval, preferences: ClientPreferences | None) -> list[Interval]:
    """Intersect a block with the client's preferred ranges, then clip to the hard limits."""
    if preferences and preferences.preferred_time_ranges:
        candidates = [
            overlap(block, time_range.on(day))
            for time_range in preferences.preferred_time_ranges
        ]
    else:
        candidates = [block]

    windows = []
    for window in candidates:
        if window is None:
            continue
        window = apply_hard_constraints(day, window, preferences)
        if window is not None:
            windows.append(window)
    return windows


def apply_hard_constraints(day: date, window: Interval, preferences: ClientPreferences | None) -> Interval | None:
    if preferences is None:
        return window

    start, end = window.start, window.end
    if preferences.no_earlier_than is not None:
        start = max(start, datetime.combine(day, preferences.no_earlier_than))
    if preferences.no_later_than is not None:
        end = min(end, datetime.combine(day, preferences.no_later_than))

    if start >= end:
        return None
    return Interval(start=start, end=end)


def slice_window(window: Interval, length: timedelta) -> list[Interval]:
    pieces = []
    current = window.start
    while current + length <= window.end:
        pieces.append(Interval(start=current, end=current + length))
        current += length
    return pieces


def generate_slots(
    therapist_id: int,
    day: date,
    availability: Iterable[Interval],
    duration_minutes: int,
    preferences: ClientPreferences | None = None,
    busy: Iterable[Interval] = (),
    time_off: Iterable[Interval] = (),
) -> list[Slot]:
    """Candidate slots for one therapist on one date.

    A preference window that is swallowed whole by a busy interval or by
    time-off is skipped outright. Remaining windows are sliced from their
    start, and any slice touching busy time or time-off is dropped.
    """
    length = validate_duration(duration_minutes)
    busy = list(busy)
    time_off = list(time_off)
    blocked = busy + time_off

    slots: set[Slot] = set()
    for block in availability:
        for window in preferred_windows(day, block, preferences):
            if any(contains(blocker, window) for blocker in blocked):
                continue
            for piece in slice_window(window, length):
                if any(overlaps(blocker, piece) for blocker in blocked):
                    continue
                slots.add(Slot(therapist_id=therapist_id, start=piece.start, end=piece.end))

    return sorted(slots, key=lambda slot: (slot.start, slot.end))
