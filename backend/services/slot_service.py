"""Read-only slot listing and suggestion.

Nothing here takes a lock: results are a point-in-time view and a slot may be
gone by the time the client books it. Booking re-validates.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from sqlalchemy.orm import Session

from backend.core import config
from backend.core.timeutils import iterate_days, utc_now
from backend.models.availability import AvailabilityRecord
from backend.models.client import Client
from backend.models.therapist import Therapist
from backend.models.weekday import Weekday
from backend.services.availability_resolver import get_time_off, resolve_availability
from backend.services.conflict_detector import active_session_intervals
from backend.services.errors import ErrorReason, SchedulingError
from backend.services.slot_generator import generate_slots, validate_duration
from backend.services.slot_ranker import rank_slots
from backend.services.slot_types import ClientPreferences, RankedSlot, Slot

logger = logging.getLogger(__name__)


@dataclass
class TherapistSlots:
    therapist_id: int
    therapist_name: str
    slots: list[Slot]


@dataclass
class SlotSuggestions:
    total: int
    ranked_slots: list[RankedSlot]


def _day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, datetime.min.time())
    return start, start + timedelta(days=1)


def slots_for_day(
    db: Session,
    therapist_id: int,
    day: date,
    duration_minutes: int,
    preferences: ClientPreferences | None = None,
    client_id: int | None = None,
) -> list[Slot]:
    day_start, day_end = _day_bounds(day)
    time_off = get_time_off(db, therapist_id, day_start, day_end)
    availability = resolve_availability(db, therapist_id, day, time_off=time_off)
    if not availability:
        return []

    busy = active_session_intervals(db, day_start, day_end, therapist_id=therapist_id, client_id=client_id)
    return generate_slots(
        therapist_id,
        day,
        availability,
        duration_minutes,
        preferences=preferences,
        busy=busy,
        time_off=time_off,
    )


def list_available_slots(db: Session, day: date, duration_minutes: int) -> list[TherapistSlots]:
    """Free slots on ``day`` for every therapist with availability on that weekday."""
    validate_duration(duration_minutes)

    therapist_ids = [
        therapist_id for (therapist_id,) in db.query(AvailabilityRecord.therapist_id).filter(
            AvailabilityRecord.day_of_week == Weekday.of(day),
        ).distinct().all()
    ]
    if not therapist_ids:
        return []

    names = dict(db.query(Therapist.id, Therapist.name).filter(Therapist.id.in_(therapist_ids)).all())

    result = []
    for therapist_id in sorted(therapist_ids):
        slots = slots_for_day(db, therapist_id, day, duration_minutes)
        if slots:
            result.append(TherapistSlots(
                therapist_id=therapist_id,
                therapist_name=names.get(therapist_id) or 'Therapist',
                slots=slots,
            ))
    return result


def suggest_slots(
    db: Session,
    client_id: int,
    therapist_id: int,
    from_date: date,
    to_date: date,
    duration_minutes: int | None = None,
    top_n: int | None = None,
    now: datetime | None = None,
) -> SlotSuggestions:
    """Ranked future slots for a client with one therapist across ``[from_date, to_date]``."""
    duration_minutes = duration_minutes or config.DEFAULT_SESSION_MINUTES
    validate_duration(duration_minutes)
    top_n = top_n or config.SUGGEST_TOP_N

    if to_date < from_date:
        raise SchedulingError(ErrorReason.INVALID_TIME, 'toDate must not be before fromDate.')
    if (to_date - from_date).days + 1 > config.MAX_SUGGEST_RANGE_DAYS:
        raise SchedulingError(
            ErrorReason.INVALID_TIME,
            f'Suggestions cover at most {config.MAX_SUGGEST_RANGE_DAYS} days.',
        )

    client = db.query(Client).filter(Client.id == client_id).first()
    therapist = db.query(Therapist).filter(Therapist.id == therapist_id).first()
    if client is None or therapist is None:
        raise SchedulingError(ErrorReason.NOT_FOUND, 'Client or therapist not found.')

    preferences = ClientPreferences.from_client(client)
    now = now or utc_now()

    candidates: list[Slot] = []
    for day in iterate_days(from_date, to_date + timedelta(days=1)):
        if not preferences.allows_day(Weekday.of(day)):
            continue
        candidates.extend(
            slot for slot in slots_for_day(
                db, therapist_id, day, duration_minutes, preferences=preferences, client_id=client_id,
            )
            if slot.start > now
        )

    ranked = rank_slots(candidates, preferences.preferred_therapist_ids, now)
    logger.debug(
        'Suggested %d slots for client %s with therapist %s (%s..%s)',
        len(ranked), client_id, therapist_id, from_date, to_date,
    )
    return SlotSuggestions(total=len(ranked), ranked_slots=ranked[:top_n])
