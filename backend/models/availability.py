"""Availability model definitions."""

from sqlalchemy import Boolean, Column, Enum, ForeignKey, Integer, Time

from backend.database import Base
from backend.models.weekday import Weekday


class AvailabilityRecord(Base):
    """A recurring weekly window in which a therapist can be booked."""
    __tablename__ = "availability"

    id = Column(Integer, primary_key=True)
    therapist_id = Column(Integer, ForeignKey("therapists.id"), nullable=False, index=True)
    day_of_week = Column(Enum(Weekday, native_enum=False, length=16), nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    recurring_weekly = Column(Boolean, default=True, nullable=False)
    created_by = Column(Integer, nullable=True)
