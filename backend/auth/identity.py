"""The caller identity handed explicitly to every write operation."""

from pydantic import BaseModel, ConfigDict

ROLE_ADMIN = 'admin'
ROLE_CLIENT = 'client'
ROLE_THERAPIST = 'therapist'
ROLES = (ROLE_ADMIN, ROLE_CLIENT, ROLE_THERAPIST)


class RequestingIdentity(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: str
    user_id: int | None = None
    client_id: int | None = None
    therapist_id: int | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def owns_session(self, session) -> bool:
        """Admins own everything; clients and therapists only their own sessions.

        An identity whose profile link is missing owns nothing.
        """
        if self.role == ROLE_ADMIN:
            return True
        if self.role == ROLE_CLIENT:
            return self.client_id is not None and session.client_id == self.client_id
        if self.role == ROLE_THERAPIST:
            return self.therapist_id is not None and session.therapist_id == self.therapist_id
        return False

    def manages_therapist(self, therapist_id: int) -> bool:
        if self.role == ROLE_ADMIN:
            return True
        return self.role == ROLE_THERAPIST and self.therapist_id is not None and self.therapist_id == therapist_id
