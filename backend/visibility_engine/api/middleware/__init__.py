"""
API Middleware
"""

from .auth import get_current_user
from .rate_limit import limit_visibility_runs

__all__ = ["get_current_user", "limit_visibility_runs"]
