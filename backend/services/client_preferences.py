"""Reads and writes of a client's scheduling preferences."""

import logging

from sqlalchemy.orm import Session

from backend.auth.identity import RequestingIdentity
from backend.models.client import Client
from backend.models.therapist import Therapist
from backend.services.errors import ErrorReason, SchedulingError
from backend.services.slot_types import ClientPreferences

logger = logging.getLogger(__name__)


def _get_owned_client(db: Session, identity: RequestingIdentity, client_id: int) -> Client:
    # Clients act on their own profile only; admins on any.
    if not identity.is_admin and not (identity.client_id is not None and identity.client_id == client_id):
        raise SchedulingError(ErrorReason.FORBIDDEN, 'You can only change your own preferences.')

    client = db.query(Client).filter(Client.id == client_id).first()
    if client is None:
        raise SchedulingError(ErrorReason.NOT_FOUND, 'Client not found.')
    return client


def get_client_preferences(db: Session, identity: RequestingIdentity, client_id: int) -> ClientPreferences:
    return ClientPreferences.from_client(_get_owned_client(db, identity, client_id))


def update_client_preferences(
    db: Session,
    identity: RequestingIdentity,
    client_id: int,
    preferences: ClientPreferences,
) -> ClientPreferences:
    """Replace the stored preferences wholesale."""
    client = _get_owned_client(db, identity, client_id)

    if (
        preferences.no_earlier_than is not None
        and preferences.no_later_than is not None
        and preferences.no_later_than <= preferences.no_earlier_than
    ):
        raise SchedulingError(ErrorReason.INVALID_TIME, 'noLaterThan must be after noEarlierThan.')

    if preferences.preferred_therapist_ids:
        known = {
            therapist_id for (therapist_id,) in db.query(Therapist.id).filter(
                Therapist.id.in_(preferences.preferred_therapist_ids),
            ).all()
        }
        missing = sorted(preferences.preferred_therapist_ids - known)
        if missing:
            raise SchedulingError(ErrorReason.NOT_FOUND, f'Therapist not found: {missing[0]}.')

    for column, value in preferences.to_columns().items():
        setattr(client, column, value)
    db.commit()
    db.refresh(client)
    logger.info('Updated preferences for client %s', client.id)
    return ClientPreferences.from_client(client)
