"""Bearer token verification and the current-user dependencies"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
import logging

import jwt
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from mixflow.config import Settings
from mixflow.database import get_db
from mixflow.errors import AuthenticationError, ForbiddenError
from mixflow.models.user import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenPayload:
    user_id: str
    email: str
    user_type: str


def create_access_token(user: User, settings: Settings) -> str:
    """Issue a signed token for a user"""
    user_type = user.user_type.value if hasattr(user.user_type, "value") else str(user.user_type)
    payload = {
        "userId": user.id,
        "email": user.email,
        "userType": user_type,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_expires_minutes),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings: Settings) -> TokenPayload:
    """
    Verify a token and return its payload

    Raises:
        ForbiddenError: token is expired, tampered with, or malformed
    """
    try:
        data = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise ForbiddenError("Token expired", code="INVALID_TOKEN")
    except jwt.InvalidTokenError:
        raise ForbiddenError("Invalid token", code="INVALID_TOKEN")

    try:
        return TokenPayload(
            user_id=data["userId"],
            email=data["email"],
            user_type=data.get("userType", "LISTENER"),
        )
    except KeyError:
        raise ForbiddenError("Invalid token", code="INVALID_TOKEN")


def extract_bearer_token(auth_header: Optional[str]) -> Optional[str]:
    if not auth_header:
        return None
    parts = auth_header.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer":
        return None
    return parts[1]


def _load_user(db: Session, user_id: str) -> Optional[User]:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None or not user.is_active:
        return None
    return user


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """Dependency for routes that require a bearer token"""
    token = extract_bearer_token(request.headers.get("authorization"))
    if not token:
        raise AuthenticationError("Authentication required")

    payload = decode_access_token(token, request.app.state.settings)
    user = _load_user(db, payload.user_id)
    if user is None:
        raise AuthenticationError("Authentication required")
    return user


def get_optional_user(request: Request, db: Session = Depends(get_db)) -> Optional[User]:
    """Dependency for routes that accept anonymous callers"""
    token = extract_bearer_token(request.headers.get("authorization"))
    if not token:
        return None
    try:
        payload = decode_access_token(token, request.app.state.settings)
    except ForbiddenError:
        logger.debug("Ignoring invalid token on anonymous-capable route")
        return None
    return _load_user(db, payload.user_id)
