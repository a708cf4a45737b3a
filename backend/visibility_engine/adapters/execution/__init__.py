"""
Check Executors - interface to the external check execution capability
"""

from typing import Optional

from .base import (
    BaseCheckExecutor,
    CheckBatch,
    CheckRequest,
)
from .http_executor import HttpCheckExecutor


def get_executor(base_url: Optional[str] = None, api_key: Optional[str] = None) -> BaseCheckExecutor:
    """
    Factory for the configured check executor.

    Args:
        base_url: Optional override of CHECK_EXECUTOR_URL
        api_key: Optional override of CHECK_EXECUTOR_API_KEY

    Returns:
        Executor instance
    """
    return HttpCheckExecutor(base_url=base_url, api_key=api_key)


__all__ = [
    "get_executor",
    "BaseCheckExecutor",
    "CheckBatch",
    "CheckRequest",
    "HttpCheckExecutor",
]
