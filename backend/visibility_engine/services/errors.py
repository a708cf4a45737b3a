"""
Engine error taxonomy
Every error carries a machine-readable code and the HTTP status the API maps it to
"""

from typing import Any, Dict, Optional


class VisibilityEngineError(Exception):
    """Base exception for engine errors"""
    code = "ENGINE_ERROR"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        payload = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(VisibilityEngineError):
    """Input rejected before any network or storage call"""
    code = "VALIDATION_ERROR"
    status_code = 422


class QuotaError(VisibilityEngineError):
    """Feature or allowance not available on the caller's plan"""
    code = "PLAN_LIMIT_REACHED"
    status_code = 403


class NotFoundError(VisibilityEngineError):
    """Project, schedule or keyword missing (or owned by someone else)"""
    code = "NOT_FOUND"
    status_code = 404


class TransientError(VisibilityEngineError):
    """Network failure, timeout or unusable executor response"""
    code = "TRANSIENT_ERROR"
    status_code = 503


class CheckExecutionTimeout(TransientError):
    """Check batch did not complete within its bound"""
    code = "CHECK_TIMEOUT"
    status_code = 504


class IncompleteBatchError(TransientError):
    """Executor answered without a result for every (query, provider) pair"""
    code = "INCOMPLETE_BATCH"


class AuthError(VisibilityEngineError):
    """Session expired or credentials rejected; never swallowed"""
    code = "AUTH_ERROR"
    status_code = 401


class ExecutorConfigurationError(VisibilityEngineError):
    """Check executor rejected this service's own credentials"""
    code = "EXECUTOR_MISCONFIGURED"
    status_code = 502


class RateLimitError(VisibilityEngineError):
    """Too many requests from one user inside the rate-limit window"""
    code = "RATE_LIMITED"
    status_code = 429

    def __init__(self, message: str, retry_after: int, details=None):
        super().__init__(message, details)
        self.retry_after = retry_after
