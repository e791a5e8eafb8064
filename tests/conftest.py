import os
from datetime import date, datetime, time

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from backend.auth.identity import RequestingIdentity  # noqa: E402
from backend.database import Base  # noqa: E402
from backend.models.availability import AvailabilityRecord  # noqa: E402
from backend.models.client import Client  # noqa: E402
from backend.models.session import TherapySession  # noqa: E402
from backend.models.therapist import Therapist  # noqa: E402
from backend.models.time_off import TimeOff  # noqa: E402
from backend.models.user import User  # noqa: E402,F401
from backend.models.weekday import Weekday  # noqa: E402

# 2026-01-05 is a Monday.
MONDAY = date(2026, 1, 5)
BEFORE_MONDAY = datetime(2026, 1, 1, 12, 0)


def at(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime.combine(day, time(hour, minute))


@pytest.fixture
def db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


def add_therapist(db, name: str = 'Dr. Rivera', email: str | None = None) -> Therapist:
    therapist = Therapist(name=name, email=email or f'{name.lower().replace(" ", ".")}@clinic.test')
    db.add(therapist)
    db.commit()
    db.refresh(therapist)
    return therapist


def add_client(db, name: str = 'Sam Client', **preferences) -> Client:
    client = Client(name=name, email=f'{name.lower().replace(" ", ".")}@example.test', **preferences)
    db.add(client)
    db.commit()
    db.refresh(client)
    return client


def add_availability(db, therapist_id: int, weekday: Weekday, start: str, end: str) -> AvailabilityRecord:
    start_h, start_m = (int(part) for part in start.split(':'))
    end_h, end_m = (int(part) for part in end.split(':'))
    record = AvailabilityRecord(
        therapist_id=therapist_id,
        day_of_week=weekday,
        start_time=time(start_h, start_m),
        end_time=time(end_h, end_m),
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


def add_time_off(db, therapist_id: int, start: datetime, end: datetime, reason: str = 'leave') -> TimeOff:
    time_off = TimeOff(therapist_id=therapist_id, start_time=start, end_time=end, reason=reason)
    db.add(time_off)
    db.commit()
    db.refresh(time_off)
    return time_off


def add_session(db, therapist_id: int, client_id: int, start: datetime, end: datetime, status: str = 'scheduled'):
    session = TherapySession(
        therapist_id=therapist_id,
        client_id=client_id,
        start_time=start,
        end_time=end,
        status=status,
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    return session


def client_identity(client: Client) -> RequestingIdentity:
    return RequestingIdentity(role='client', client_id=client.id)


def therapist_identity(therapist: Therapist) -> RequestingIdentity:
    return RequestingIdentity(role='therapist', therapist_id=therapist.id)


ADMIN = RequestingIdentity(role='admin', user_id=1)


@pytest.fixture
def monday_setup(db):
    """Therapist available Monday 09:00-12:00 and a client with no preferences."""
    therapist = add_therapist(db)
    client = add_client(db)
    add_availability(db, therapist.id, Weekday.MONDAY, '09:00', '12:00')
    return therapist, client

