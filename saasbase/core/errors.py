"""
Application exceptions.

Services raise these; the exception handler registered in ``saasbase.main``
turns them into the JSON error envelope with the mapped HTTP status.
"""

from typing import Any, Dict, Optional


class AppError(Exception):
    """Base exception for all domain errors."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the API error envelope."""
        payload: Dict[str, Any] = {"success": False, "error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class UnauthorizedError(AppError):
    """Raised when the request has no valid session."""
    status_code = 401
    code = "unauthorized"

    def __init__(self, message: str = "Unauthorized", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class ForbiddenError(AppError):
    """Raised when the user's plan or role does not allow an action."""
    status_code = 403
    code = "forbidden"


class NotFoundError(AppError):
    """Raised when a requested resource is not found."""
    status_code = 404
    code = "not_found"


class ValidationError(AppError):
    """Raised when input or state validation fails."""
    status_code = 400
    code = "validation_error"

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.field = field
        super().__init__(message, details)


class QuotaExceededError(AppError):
    """Raised when a usage quota is exhausted and no credits remain."""
    status_code = 429
    code = "quota_exceeded"


class UpstreamError(AppError):
    """Raised when a hosted service (payment provider, database) fails."""
    status_code = 500
    code = "upstream_error"


class PaymentProviderError(UpstreamError):
    """Raised by payment providers; carries the provider's message."""

    def __init__(self, message: str, provider: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.provider = provider
        super().__init__(message, details)
