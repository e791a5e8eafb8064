"""Therapy session model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.sql import func

from backend.database import Base

SESSION_STATUS_SCHEDULED = "scheduled"
SESSION_STATUS_CANCELLED = "cancelled"
SESSION_STATUS_COMPLETED = "completed"
SESSION_STATUSES = (
    SESSION_STATUS_SCHEDULED,
    SESSION_STATUS_CANCELLED,
    SESSION_STATUS_COMPLETED,
)


class TherapySession(Base):
    """A booked session between a therapist and a client."""
    __tablename__ = "sessions"
    __table_args__ = (
        Index("idx_sessions_therapist_range", "therapist_id", "start_time", "end_time"),
        Index("idx_sessions_client_range", "client_id", "start_time", "end_time"),
        Index(
            "uq_sessions_therapist_scheduled_slot",
            "therapist_id",
            "start_time",
            "end_time",
            unique=True,
            sqlite_where=text("status = 'scheduled'"),
            postgresql_where=text("status = 'scheduled'"),
        ),
    )

    id = Column(Integer, primary_key=True)
    therapist_id = Column(Integer, ForeignKey("therapists.id"), nullable=False)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    status = Column(String, nullable=False, default=SESSION_STATUS_SCHEDULED)
    notes = Column(String, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
