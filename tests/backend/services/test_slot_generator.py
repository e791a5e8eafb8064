from datetime import time, timedelta

import pytest
from conftest import MONDAY, at

from backend.services.errors import ErrorReason, SchedulingError
from backend.services.interval_math import Interval, contains, overlaps
from backend.services.slot_generator import generate_slots
from backend.services.slot_types import ClientPreferences, TimeRange

MORNING = Interval(start=at(MONDAY, 9), end=at(MONDAY, 12))


def starts(slots) -> list[tuple[int, int]]:
    return [(slot.start.hour, slot.start.minute) for slot in slots]


def test_slices_block_into_fixed_duration_slots() -> None:
    slots = generate_slots(1, MONDAY, [MORNING], 60)

    assert starts(slots) == [(9, 0), (10, 0), (11, 0)]
    assert all(slot.therapist_id == 1 for slot in slots)
    assert all(slot.end - slot.start == at(MONDAY, 10) - at(MONDAY, 9) for slot in slots)


def test_drops_trailing_remainder_that_does_not_fit() -> None:
    slots = generate_slots(1, MONDAY, [Interval(start=at(MONDAY, 9), end=at(MONDAY, 10, 40))], 30)

    assert starts(slots) == [(9, 0), (9, 30), (10, 0)]


def test_duration_longer_than_block_yields_nothing() -> None:
    assert generate_slots(1, MONDAY, [MORNING], 240) == []


@pytest.mark.parametrize('duration', [0, -15])
def test_rejects_non_positive_duration(duration: int) -> None:
    with pytest.raises(SchedulingError) as exception_info:
        generate_slots(1, MONDAY, [MORNING], duration)

    assert exception_info.value.reason == ErrorReason.INVALID_TIME


def test_intersects_with_preferred_ranges_and_hard_constraints() -> None:
    preferences = ClientPreferences(
        preferred_time_ranges=(TimeRange(start=time(8, 0), end=time(10, 30)),),
        no_earlier_than=time(9, 30),
    )

    slots = generate_slots(1, MONDAY, [MORNING], 30, preferences=preferences)

    assert starts(slots) == [(9, 30), (10, 0)]


def test_hard_constraints_that_empty_the_window_yield_nothing() -> None:
    preferences = ClientPreferences(no_earlier_than=time(11, 0), no_later_than=time(10, 0))

    assert generate_slots(1, MONDAY, [MORNING], 30, preferences=preferences) == []


def test_window_fully_inside_busy_session_is_skipped() -> None:
    busy = [Interval(start=at(MONDAY, 8), end=at(MONDAY, 13))]

    assert generate_slots(1, MONDAY, [MORNING], 30, busy=busy) == []


def test_slots_overlapping_busy_time_or_time_off_are_dropped() -> None:
    busy = [Interval(start=at(MONDAY, 9, 30), end=at(MONDAY, 10))]
    time_off = [Interval(start=at(MONDAY, 11), end=at(MONDAY, 11, 15))]

    slots = generate_slots(1, MONDAY, [MORNING], 30, busy=busy, time_off=time_off)

    assert starts(slots) == [(9, 0), (10, 0), (10, 30), (11, 30)]
    for slot in slots:
        assert contains(MORNING, slot)
        assert not any(overlaps(blocker, slot) for blocker in busy + time_off)


def test_overlapping_source_blocks_are_deduplicated() -> None:
    duplicate = Interval(start=at(MONDAY, 9), end=at(MONDAY, 11))

    slots = generate_slots(1, MONDAY, [MORNING, duplicate], 60)

    assert starts(slots) == [(9, 0), (10, 0), (11, 0)]


def test_block_to_midnight_yields_a_last_slot_ending_at_midnight() -> None:
    late = Interval(start=at(MONDAY, 22), end=at(MONDAY + timedelta(days=1), 0))

    slots = generate_slots(1, MONDAY, [late], 60)

    assert starts(slots) == [(22, 0), (23, 0)]
    assert slots[-1].end == at(MONDAY + timedelta(days=1), 0)


def test_preferred_range_to_24_00_keeps_late_slots() -> None:
    evening = Interval(start=at(MONDAY, 20), end=at(MONDAY + timedelta(days=1), 0))
    preferences = ClientPreferences(
        preferred_time_ranges=(TimeRange.model_validate({'startTime': '22:00', 'endTime': '24:00'}),),
    )

    slots = generate_slots(1, MONDAY, [evening], 60, preferences=preferences)

    assert starts(slots) == [(22, 0), (23, 0)]
