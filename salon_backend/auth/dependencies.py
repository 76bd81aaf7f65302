import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from salon_backend.auth import jwt_handler
from salon_backend.core.errors import NotAuthenticated
from salon_backend.database import get_db
from salon_backend.models.user import User

security = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None:
        raise NotAuthenticated("No token provided")

    try:
        payload = jwt_handler.decode_access_token(credentials.credentials)
    except jwt.ExpiredSignatureError as exc:
        raise NotAuthenticated("Token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise NotAuthenticated("Invalid token") from exc

    email = payload.get("sub")
    if not email:
        raise NotAuthenticated("Invalid token subject")

    user = db.query(User).filter(User.email == email).first()
    if user is None:
        raise NotAuthenticated("User no longer exists. Please log in again.")
    return user
