"""Time-off model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from backend.database import Base


class TimeOff(Base):
    """A UTC interval during which a therapist takes no sessions."""
    __tablename__ = "time_off"

    id = Column(Integer, primary_key=True)
    therapist_id = Column(Integer, ForeignKey("therapists.id"), nullable=False, index=True)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    reason = Column(String, nullable=True)
