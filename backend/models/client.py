"""Client model definitions."""

from sqlalchemy import JSON, Column, Integer, String, Time

from backend.database import Base


class Client(Base):
    """A person booking sessions, together with their scheduling preferences."""
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True)
    preferred_days_of_week = Column(JSON, default=list)  # weekday names
    preferred_time_ranges = Column(JSON, default=list)  # [{"startTime": "09:00", "endTime": "12:00"}]
    preferred_therapist_ids = Column(JSON, default=list)
    no_earlier_than = Column(Time, nullable=True)
    no_later_than = Column(Time, nullable=True)
