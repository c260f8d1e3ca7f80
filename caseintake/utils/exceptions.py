"""
Custom exception classes

Every intake failure carries a stable ``code`` so API consumers can branch on
it; ``message`` is the human-readable part.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import HTTPException


class IntakeAPIError(HTTPException):
    """Base class for errors rendered as ``{success: false, error: {...}}``"""
    code = "INTERNAL_ERROR"
    http_status = 500

    def __init__(
        self,
        message: str,
        details: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(status_code=self.http_status, detail=message, headers=headers)
        self.message = message
        self.details = details

    def to_body(self) -> Dict[str, Any]:
        error: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details is not None:
            error["details"] = self.details
        return {"success": False, "error": error}


class AuthenticationError(IntakeAPIError):
    """Raised when the API key is missing, malformed, unknown or expired"""
    code = "AUTHENTICATION_ERROR"
    http_status = 401


class RateLimitExceeded(IntakeAPIError):
    """Raised when the key has used its hourly quota"""
    code = "RATE_LIMIT_EXCEEDED"
    http_status = 429

    def __init__(self, limit: int, reset_at: datetime, retry_after: int):
        super().__init__(
            f"Rate limit exceeded. Limit: {limit} requests per hour.",
            headers={
                "X-RateLimit-Limit": str(limit),
                "X-RateLimit-Remaining": "0",
                "X-RateLimit-Reset": reset_at.isoformat(),
                "Retry-After": str(max(retry_after, 0)),
            },
        )
        self.limit = limit
        self.remaining = 0
        self.reset_at = reset_at


class ValidationError(IntakeAPIError):
    """Raised with one ``{field, message}`` entry per violation found"""
    code = "VALIDATION_ERROR"
    http_status = 400

    def __init__(self, violations: List[Dict[str, str]], message: str = "Invalid request data"):
        super().__init__(message, details=violations)
        self.violations = violations


class DatabaseError(IntakeAPIError):
    """Raised when a storage operation fails"""
    code = "DATABASE_ERROR"
    http_status = 500

    def __init__(self, message: str, step: Optional[str] = None, casefile_id: Optional[int] = None):
        details = None
        if step is not None:
            details = {"step": step, "casefileId": casefile_id}
        super().__init__(message, details=details)
        self.step = step
        self.casefile_id = casefile_id


class InternalError(IntakeAPIError):
    """Anything not otherwise classified"""
    code = "INTERNAL_ERROR"
    http_status = 500


def db_error_summary(exc: BaseException) -> str:
    """
    Short description of a storage failure that is safe to return to callers.

    SQLAlchemy renders the statement and its bound parameters into ``str(exc)``;
    only the first line of the driver message is kept.
    """
    orig = getattr(exc, "orig", None)
    text = str(orig if orig is not None else exc).strip()
    return text.splitlines()[0] if text else type(exc).__name__
