"""Scores candidate slots for a client."""

from datetime import datetime
from typing import Iterable

from backend.services.slot_types import RankedSlot, Slot

PREFERRED_THERAPIST_BONUS = 50
RECENCY_HORIZON_DAYS = 30
SECONDS_PER_DAY = 24 * 60 * 60


def score_slot(slot: Slot, preferred_therapist_ids: frozenset[int] | set[int], now: datetime) -> float:
    score = 0.0
    if slot.therapist_id in preferred_therapist_ids:
        score += PREFERRED_THERAPIST_BONUS

    days_from_now = (slot.start - now).total_seconds() / SECONDS_PER_DAY
    score += max(0.0, RECENCY_HORIZON_DAYS - days_from_now)
    return score


def rank_slots(
    slots: Iterable[Slot],
    preferred_therapist_ids: frozenset[int] | set[int],
    now: datetime,
) -> list[RankedSlot]:
    """Highest score first; equal scores fall back to the earlier start."""
    ranked = [
        RankedSlot(slot=slot, score=score_slot(slot, preferred_therapist_ids, now))
        for slot in slots
    ]
    ranked.sort(key=lambda item: (-item.score, item.slot.start, item.slot.therapist_id))
    return ranked
