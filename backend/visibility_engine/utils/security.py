"""
Session tokens

Short-lived HS256 JWTs whose subject is the user id. An expired or forged
token is an AuthError; callers never get a partially trusted identity.
"""

from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from jose import ExpiredSignatureError, JWTError, jwt

from visibility_engine.config import get_settings
from visibility_engine.services.errors import AuthError

SESSION_TOKEN_TYPE = "access"


def create_access_token(user_id: UUID, expires_delta: Optional[timedelta] = None) -> str:
    settings = get_settings()
    issued_at = datetime.utcnow()
    lifetime = expires_delta or timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)

    claims = {
        "sub": str(user_id),
        "type": SESSION_TOKEN_TYPE,
        "iat": issued_at,
        "exp": issued_at + lifetime,
    }
    return jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def verify_access_token(token: str) -> UUID:
    """
    User id carried by a session token.

    Raises:
        AuthError: Token expired, badly signed, or not a session token
    """
    settings = get_settings()
    try:
        claims = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise AuthError("Session expired, sign in again")
    except JWTError:
        raise AuthError("Invalid session token")

    if claims.get("type") != SESSION_TOKEN_TYPE:
        raise AuthError("Invalid session token")
    try:
        return UUID(claims.get("sub"))
    except (TypeError, ValueError):
        raise AuthError("Invalid session token")
