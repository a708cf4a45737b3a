"""
Utility modules for the visibility engine
"""

from .database import (
    get_db,
    get_db_context,
    init_db,
    close_db,
)
from .security import (
    create_access_token,
    verify_access_token,
)
from .cache import (
    rate_limit,
    get_redis,
    close_redis,
)

__all__ = [
    # Database
    "get_db",
    "get_db_context",
    "init_db",
    "close_db",
    # Security
    "create_access_token",
    "verify_access_token",
    # Cache
    "rate_limit",
    "get_redis",
    "close_redis",
]
