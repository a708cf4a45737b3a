"""
Per-user rate limiting for expensive endpoints
"""

from fastapi import Depends

from visibility_engine.config import get_settings
from visibility_engine.models import User
from visibility_engine.services.errors import RateLimitError
from visibility_engine.utils import rate_limit
from .auth import get_current_user


async def limit_visibility_runs(user: User = Depends(get_current_user)) -> User:
    """Throttle check runs per user (fixed window in Redis)"""
    settings = get_settings()
    window = settings.RATE_LIMIT_VISIBILITY_WINDOW_SECONDS
    allowed, _ = await rate_limit.check_rate_limit(
        f"visibility-run:{user.id}",
        settings.RATE_LIMIT_VISIBILITY_RUNS,
        window,
    )
    if not allowed:
        raise RateLimitError(
            "Too many visibility runs, try again shortly",
            retry_after=window,
            details={"limit": settings.RATE_LIMIT_VISIBILITY_RUNS, "window_seconds": window},
        )
    return user
