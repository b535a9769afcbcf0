# app/core/security.py
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import AuthorizationError, UnauthenticatedError
from app.db.base import get_db
from app.db.models.user import User

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(user_id: int, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    payload = {"sub": str(user_id), "exp": expire}
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> int:
    """Return the user id carried by a token, or raise UnauthenticatedError."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except jwt.ExpiredSignatureError:
        raise UnauthenticatedError("Token expired")
    except jwt.PyJWTError as exc:
        logger.info("Rejected token: %s", exc)
        raise UnauthenticatedError("Invalid token")

    sub = payload.get("sub")
    try:
        return int(sub)
    except (TypeError, ValueError):
        raise UnauthenticatedError("Invalid token")


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None or not credentials.credentials:
        raise UnauthenticatedError("Missing token")

    user_id = decode_access_token(credentials.credentials)
    user = db.query(User).filter(User.id == user_id).first()
    if not user or not user.is_active:
        raise UnauthenticatedError("Unknown or inactive user")
    return user


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != "admin":
        raise AuthorizationError("Admin only")
    return current_user


def require_client(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != "client":
        raise AuthorizationError("Only clients can do this")
    return current_user
