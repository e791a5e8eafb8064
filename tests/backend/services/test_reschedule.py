from datetime import datetime

import pytest
from conftest import (
    ADMIN,
    BEFORE_MONDAY,
    MONDAY,
    add_client,
    add_session,
    add_therapist,
    at,
    client_identity,
    therapist_identity,
)

from backend.auth.identity import RequestingIdentity
from backend.models.session import TherapySession
from backend.services.errors import ErrorReason, SchedulingError
from backend.services.reschedule import apply_reschedule, check_reschedule


@pytest.fixture
def booked(db, monday_setup):
    therapist, client = monday_setup
    session = add_session(db, therapist.id, client.id, at(MONDAY, 9), at(MONDAY, 10))
    return therapist, client, session


def test_check_then_apply_succeeds_and_moves_session(db, booked) -> None:
    _, client, session = booked
    identity = client_identity(client)

    result = check_reschedule(db, session.id, at(MONDAY, 10), at(MONDAY, 11), identity, now=BEFORE_MONDAY)
    assert result.allowed is True
    assert result.reason is None

    moved = apply_reschedule(db, session.id, at(MONDAY, 10), at(MONDAY, 11), identity, now=BEFORE_MONDAY)

    assert moved.id == session.id
    assert moved.start_time == at(MONDAY, 10)
    assert moved.end_time == at(MONDAY, 11)
    assert moved.status == 'scheduled'


def test_session_does_not_conflict_with_itself(db, booked) -> None:
    _, client, session = booked

    moved = apply_reschedule(
        db, session.id, at(MONDAY, 9, 30), at(MONDAY, 10, 30), client_identity(client), now=BEFORE_MONDAY,
    )

    assert moved.start_time == at(MONDAY, 9, 30)


@pytest.mark.parametrize(
    ('start', 'end', 'reason'),
    [
        (at(MONDAY, 11), at(MONDAY, 10), ErrorReason.INVALID_TIME),
        (datetime(2025, 12, 1, 9), datetime(2025, 12, 1, 10), ErrorReason.PAST),
        (at(MONDAY, 12), at(MONDAY, 13), ErrorReason.NOT_IN_AVAILABILITY),
    ],
)
def test_check_reports_reason_without_raising(db, booked, start, end, reason) -> None:
    _, client, session = booked

    result = check_reschedule(db, session.id, start, end, client_identity(client), now=BEFORE_MONDAY)

    assert result.allowed is False
    assert result.reason == reason
    assert result.message


def test_check_reports_missing_session(db, booked) -> None:
    _, client, _ = booked

    result = check_reschedule(db, 999, at(MONDAY, 10), at(MONDAY, 11), client_identity(client), now=BEFORE_MONDAY)

    assert result.reason == ErrorReason.NOT_FOUND


def test_cancelled_session_cannot_be_rescheduled(db, booked) -> None:
    _, client, session = booked
    session.status = 'cancelled'
    db.commit()

    result = check_reschedule(db, session.id, at(MONDAY, 10), at(MONDAY, 11), client_identity(client), now=BEFORE_MONDAY)

    assert result.reason == ErrorReason.INVALID_STATUS
    assert result.message == 'Cancelled sessions cannot be rescheduled.'


def test_only_owning_parties_may_reschedule(db, booked) -> None:
    therapist, _, session = booked
    stranger = add_client(db, name='Stranger')
    other_therapist = add_therapist(db, name='Dr. Chen')

    for identity in (client_identity(stranger), therapist_identity(other_therapist), RequestingIdentity(role='client')):
        result = check_reschedule(db, session.id, at(MONDAY, 10), at(MONDAY, 11), identity, now=BEFORE_MONDAY)
        assert result.reason == ErrorReason.FORBIDDEN

    for identity in (therapist_identity(therapist), ADMIN):
        result = check_reschedule(db, session.id, at(MONDAY, 10), at(MONDAY, 11), identity, now=BEFORE_MONDAY)
        assert result.allowed is True


def test_apply_rejects_conflict_and_leaves_session_unchanged(db, booked) -> None:
    therapist, client, session = booked
    other_client = add_client(db, name='Other Client')
    add_session(db, therapist.id, other_client.id, at(MONDAY, 10), at(MONDAY, 11))

    with pytest.raises(SchedulingError) as exception_info:
        apply_reschedule(db, session.id, at(MONDAY, 10, 30), at(MONDAY, 11, 30), client_identity(client), now=BEFORE_MONDAY)

    assert exception_info.value.reason == ErrorReason.CONFLICT
    unchanged = db.query(TherapySession).filter(TherapySession.id == session.id).one()
    assert unchanged.start_time == at(MONDAY, 9)
    assert unchanged.end_time == at(MONDAY, 10)


def test_apply_revalidates_after_an_intervening_booking(db, booked) -> None:
    therapist, client, session = booked
    identity = client_identity(client)
    assert check_reschedule(db, session.id, at(MONDAY, 11), at(MONDAY, 12), identity, now=BEFORE_MONDAY).allowed

    other_client = add_client(db, name='Other Client')
    add_session(db, therapist.id, other_client.id, at(MONDAY, 11), at(MONDAY, 12))

    with pytest.raises(SchedulingError) as exception_info:
        apply_reschedule(db, session.id, at(MONDAY, 11), at(MONDAY, 12), identity, now=BEFORE_MONDAY)
    assert exception_info.value.reason == ErrorReason.CONFLICT


def test_apply_on_missing_session_raises_not_found(db, booked) -> None:
    _, client, _ = booked

    with pytest.raises(SchedulingError) as exception_info:
        apply_reschedule(db, 999, at(MONDAY, 10), at(MONDAY, 11), client_identity(client), now=BEFORE_MONDAY)

    assert exception_info.value.reason == ErrorReason.NOT_FOUND


def test_books_and_reschedules_keep_each_party_conflict_free(db, monday_setup) -> None:
    from backend.services.booking import book_session
    from backend.services.interval_math import Interval, overlaps

    therapist, client = monday_setup
    second_client = add_client(db, name='Second Client')
    attempts = [
        (client, at(MONDAY, 9), at(MONDAY, 10)),
        (second_client, at(MONDAY, 9, 30), at(MONDAY, 10, 30)),
        (second_client, at(MONDAY, 10), at(MONDAY, 11)),
        (client, at(MONDAY, 10, 30), at(MONDAY, 11, 30)),
        (client, at(MONDAY, 11), at(MONDAY, 12)),
    ]
    for party, start, end in attempts:
        try:
            book_session(db, client_identity(party), therapist.id, start, end)
        except SchedulingError as exc:
            assert exc.reason == ErrorReason.CONFLICT

    first = db.query(TherapySession).order_by(TherapySession.start_time).first()
    for start, end in ((at(MONDAY, 10), at(MONDAY, 11)), (at(MONDAY, 9, 15), at(MONDAY, 9, 45))):
        try:
            apply_reschedule(db, first.id, start, end, ADMIN, now=BEFORE_MONDAY)
        except SchedulingError as exc:
            assert exc.reason == ErrorReason.CONFLICT

    active = db.query(TherapySession).filter(TherapySession.status != 'cancelled').all()
    for index, left in enumerate(active):
        for right in active[index + 1:]:
            if left.therapist_id == right.therapist_id or left.client_id == right.client_id:
                assert not overlaps(
                    Interval(start=left.start_time, end=left.end_time),
                    Interval(start=right.start_time, end=right.end_time),
                )
