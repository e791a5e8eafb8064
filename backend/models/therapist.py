"""Therapist model definitions."""

from sqlalchemy import JSON, Column, Integer, String

from backend.database import Base


class Therapist(Base):
    """A therapist whose weekly availability clients book against."""
    __tablename__ = "therapists"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True)
    specialties = Column(JSON, default=list)
