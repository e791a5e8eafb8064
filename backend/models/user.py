"""User model definitions."""

from sqlalchemy import Column, ForeignKey, Integer, String
from backend.database import Base


class User(Base):
    """A login linked to at most one client or therapist profile."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True)
    role = Column(String, nullable=False)  # admin/client/therapist
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=True)
    therapist_id = Column(Integer, ForeignKey("therapists.id"), nullable=True)
