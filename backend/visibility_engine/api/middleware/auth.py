"""
Authentication Middleware
"""

from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from visibility_engine.models import User
from visibility_engine.services.errors import AuthError
from visibility_engine.utils import get_db, verify_access_token

bearer = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Active user behind the request's bearer token.

    Raises:
        AuthError: Missing, expired or invalid token, or the user is gone
    """
    if credentials is None:
        raise AuthError("Sign in to continue")

    user_id = verify_access_token(credentials.credentials)
    user = await db.scalar(select(User).where(User.id == user_id, User.is_active.is_(True)))
    if user is None:
        raise AuthError("Account not found or inactive")
    return user
