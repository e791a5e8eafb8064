from datetime import date, datetime, timedelta, timezone

import pytest
from conftest import ADMIN, add_client, add_session, at, client_identity, therapist_identity
from fastapi import HTTPException
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from backend.models.session import TherapySession
from backend.routes.session_routes import (
    CreateSessionRequest,
    RescheduleRequest,
    UpdateStatusRequest,
    apply_reschedule,
    book_session,
    cancel_session,
    check_reschedule,
    delete_session,
    get_session,
    list_sessions,
    update_session_status,
)

# 2030-01-07 is a Monday far enough ahead that reschedules are never in the past.
FUTURE_MONDAY = date(2030, 1, 7)


def utc(hour: int, minute: int = 0) -> datetime:
    return at(FUTURE_MONDAY, hour, minute).replace(tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def skip_schema_checks(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('backend.routes.session_routes.ensure_database_ready', lambda: None)


def test_create_session_request_normalizes_notes() -> None:
    request = CreateSessionRequest(
        therapist_id=1,
        start_time=utc(9),
        end_time=utc(10),
        notes='  first visit  ',
    )

    assert request.notes == 'first visit'
    assert CreateSessionRequest(therapist_id=1, start_time=utc(9), end_time=utc(10), notes='   ').notes is None


def test_create_session_request_rejects_long_notes() -> None:
    with pytest.raises(ValidationError):
        CreateSessionRequest(therapist_id=1, start_time=utc(9), end_time=utc(10), notes='x' * 601)


def test_update_status_request_normalizes_and_validates() -> None:
    assert UpdateStatusRequest(status=' Cancelled ').status == 'cancelled'

    with pytest.raises(ValidationError):
        UpdateStatusRequest(status='no-show')


def test_book_session_returns_utc_session(db, monday_setup) -> None:
    therapist, client = monday_setup

    response = book_session(
        data=CreateSessionRequest(therapist_id=therapist.id, start_time=utc(9), end_time=utc(10)),
        identity=client_identity(client),
        db=db,
    )

    assert response.therapist_id == therapist.id
    assert response.client_id == client.id
    assert response.start_time == utc(9)
    assert response.status == 'scheduled'


def test_book_session_converts_offsets_to_utc(db, monday_setup) -> None:
    therapist, client = monday_setup
    plus_two = timezone(timedelta(hours=2))

    response = book_session(
        data=CreateSessionRequest(
            therapist_id=therapist.id,
            start_time=at(FUTURE_MONDAY, 11).replace(tzinfo=plus_two),
            end_time=at(FUTURE_MONDAY, 12).replace(tzinfo=plus_two),
        ),
        identity=client_identity(client),
        db=db,
    )

    assert response.start_time == utc(9)
    stored = db.query(TherapySession).one()
    assert stored.start_time == at(FUTURE_MONDAY, 9)


def test_book_session_rejects_timestamps_without_offset(db, monday_setup) -> None:
    therapist, client = monday_setup

    with pytest.raises(HTTPException) as exception_info:
        book_session(
            data=CreateSessionRequest(
                therapist_id=therapist.id,
                start_time=at(FUTURE_MONDAY, 9),
                end_time=at(FUTURE_MONDAY, 10),
            ),
            identity=client_identity(client),
            db=db,
        )

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail['reason'] == 'INVALID_TIME'


def test_book_session_maps_conflict_to_409(db, monday_setup) -> None:
    therapist, client = monday_setup
    other = add_client(db, name='Other Client')
    add_session(db, therapist.id, other.id, at(FUTURE_MONDAY, 9), at(FUTURE_MONDAY, 10))

    with pytest.raises(HTTPException) as exception_info:
        book_session(
            data=CreateSessionRequest(therapist_id=therapist.id, start_time=utc(9, 30), end_time=utc(10, 30)),
            identity=client_identity(client),
            db=db,
        )

    assert exception_info.value.status_code == 409
    assert exception_info.value.detail == {
        'reason': 'CONFLICT',
        'message': 'Therapist already has a session at that time.',
    }


def test_book_session_maps_missing_therapist_to_404(db, monday_setup) -> None:
    _, client = monday_setup

    with pytest.raises(HTTPException) as exception_info:
        book_session(
            data=CreateSessionRequest(therapist_id=999, start_time=utc(9), end_time=utc(10)),
            identity=client_identity(client),
            db=db,
        )

    assert exception_info.value.status_code == 404


def test_book_session_reports_database_errors_as_503(db, monday_setup, monkeypatch: pytest.MonkeyPatch) -> None:
    therapist, client = monday_setup

    def fail(*args, **kwargs):
        raise SQLAlchemyError('connection lost')

    monkeypatch.setattr('backend.services.booking.book_session', fail)

    with pytest.raises(HTTPException) as exception_info:
        book_session(
            data=CreateSessionRequest(therapist_id=therapist.id, start_time=utc(9), end_time=utc(10)),
            identity=client_identity(client),
            db=db,
        )

    assert exception_info.value.status_code == 503


def test_reschedule_check_answers_instead_of_raising(db, monday_setup) -> None:
    therapist, client = monday_setup
    session = add_session(db, therapist.id, client.id, at(FUTURE_MONDAY, 9), at(FUTURE_MONDAY, 10))

    allowed = check_reschedule(
        session_id=session.id,
        data=RescheduleRequest(start_time=utc(10), end_time=utc(11)),
        identity=client_identity(client),
        db=db,
    )
    outside = check_reschedule(
        session_id=session.id,
        data=RescheduleRequest(start_time=utc(13), end_time=utc(14)),
        identity=client_identity(client),
        db=db,
    )
    naive = check_reschedule(
        session_id=session.id,
        data=RescheduleRequest(start_time=at(FUTURE_MONDAY, 10), end_time=at(FUTURE_MONDAY, 11)),
        identity=client_identity(client),
        db=db,
    )

    assert allowed.allowed is True
    assert (outside.allowed, outside.reason) == (False, 'NOT_IN_AVAILABILITY')
    assert (naive.allowed, naive.reason) == (False, 'INVALID_TIME')
    assert db.query(TherapySession).one().start_time == at(FUTURE_MONDAY, 9)


def test_apply_reschedule_moves_session(db, monday_setup) -> None:
    therapist, client = monday_setup
    session = add_session(db, therapist.id, client.id, at(FUTURE_MONDAY, 9), at(FUTURE_MONDAY, 10))

    response = apply_reschedule(
        session_id=session.id,
        data=RescheduleRequest(start_time=utc(11), end_time=utc(12)),
        identity=therapist_identity(therapist),
        db=db,
    )

    assert response.start_time == utc(11)
    assert response.end_time == utc(12)


def test_apply_reschedule_rejects_other_clients(db, monday_setup) -> None:
    therapist, client = monday_setup
    stranger = add_client(db, name='Stranger')
    session = add_session(db, therapist.id, client.id, at(FUTURE_MONDAY, 9), at(FUTURE_MONDAY, 10))

    with pytest.raises(HTTPException) as exception_info:
        apply_reschedule(
            session_id=session.id,
            data=RescheduleRequest(start_time=utc(11), end_time=utc(12)),
            identity=client_identity(stranger),
            db=db,
        )

    assert exception_info.value.status_code == 403


def test_cancel_and_status_routes(db, monday_setup) -> None:
    therapist, client = monday_setup
    first = add_session(db, therapist.id, client.id, at(FUTURE_MONDAY, 9), at(FUTURE_MONDAY, 10))
    second = add_session(db, therapist.id, client.id, at(FUTURE_MONDAY, 10), at(FUTURE_MONDAY, 11))

    assert cancel_session(session_id=first.id, identity=client_identity(client), db=db).status == 'cancelled'
    completed = update_session_status(
        session_id=second.id,
        data=UpdateStatusRequest(status='completed'),
        identity=therapist_identity(therapist),
        db=db,
    )
    assert completed.status == 'completed'

    with pytest.raises(HTTPException) as exception_info:
        cancel_session(session_id=second.id, identity=client_identity(client), db=db)
    assert exception_info.value.status_code == 400
    assert exception_info.value.detail['reason'] == 'INVALID_STATUS'


def test_list_and_get_sessions_are_scoped(db, monday_setup) -> None:
    therapist, client = monday_setup
    stranger = add_client(db, name='Stranger')
    session = add_session(db, therapist.id, client.id, at(FUTURE_MONDAY, 9), at(FUTURE_MONDAY, 10))

    assert [s.id for s in list_sessions(status_filter=None, identity=client_identity(client), db=db)] == [session.id]
    assert list_sessions(status_filter=None, identity=client_identity(stranger), db=db) == []
    assert get_session(session_id=session.id, identity=ADMIN, db=db).id == session.id

    with pytest.raises(HTTPException) as exception_info:
        list_sessions(status_filter='pending', identity=ADMIN, db=db)
    assert exception_info.value.status_code == 400


def test_delete_session_requires_admin(db, monday_setup) -> None:
    therapist, client = monday_setup
    session = add_session(db, therapist.id, client.id, at(FUTURE_MONDAY, 9), at(FUTURE_MONDAY, 10))

    with pytest.raises(HTTPException) as exception_info:
        delete_session(session_id=session.id, identity=client_identity(client), db=db)
    assert exception_info.value.status_code == 403

    delete_session(session_id=session.id, identity=ADMIN, db=db)
    assert db.query(TherapySession).count() == 0
