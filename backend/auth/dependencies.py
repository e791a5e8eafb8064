import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from backend.auth import jwt_handler
from backend.auth.identity import ROLES, RequestingIdentity
from backend.database import get_db
from backend.models.user import User

security = HTTPBearer()


def identity_for_user(user: User) -> RequestingIdentity:
    return RequestingIdentity(
        role=user.role,
        user_id=user.id,
        client_id=user.client_id,
        therapist_id=user.therapist_id,
    )


def get_current_identity(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> RequestingIdentity:
    token = credentials.credentials
    try:
        payload = jwt_handler.decode_access_token(token)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    email = payload.get("sub")
    if not email:
        raise HTTPException(status_code=401, detail="Invalid token subject")

    user = db.query(User).filter(User.email == email.strip().lower()).first()
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    if user.role not in ROLES:
        raise HTTPException(status_code=403, detail="Unknown role")
    return identity_for_user(user)
