"""
Custom exception classes for the application.
"""

from typing import Any, Dict, Optional


class ListenerException(Exception):
    """Base exception class for the SCM event listener."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(ListenerException):
    """Raised at startup when required configuration is missing."""

    def __init__(self, message: str = "Invalid configuration", **kwargs):
        super().__init__(message, error_code="CONFIGURATION_ERROR", **kwargs)


class ValidationError(ListenerException):
    """Exception raised for malformed inbound requests."""

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        self.field = field
        super().__init__(message, error_code="VALIDATION_ERROR", **kwargs)


class SignatureError(ListenerException):
    """Inbound payload failed authenticity verification."""

    def __init__(self, message: str = "Invalid signature", **kwargs):
        super().__init__(message, error_code="INVALID_SIGNATURE", **kwargs)


class NotFoundError(ListenerException):
    """Exception raised when a resource is not found."""

    def __init__(self, message: str = "Resource not found", **kwargs):
        super().__init__(message, error_code="NOT_FOUND", **kwargs)


class ConflictError(ListenerException):
    """Exception raised when a registration already exists."""

    def __init__(self, message: str = "Resource conflict", **kwargs):
        super().__init__(message, error_code="CONFLICT", **kwargs)


class RateLimitError(ListenerException):
    """Exception raised when the inbound rate limit is exceeded."""

    def __init__(self, message: str = "Rate limit exceeded", **kwargs):
        super().__init__(message, error_code="RATE_LIMIT_EXCEEDED", **kwargs)


class EventProcessingError(ListenerException):
    """Exception raised when a verified event could not be handled."""

    def __init__(self, message: str = "Failed to process event", event_type: Optional[str] = None, **kwargs):
        self.event_type = event_type
        super().__init__(message, error_code="EVENT_PROCESSING_ERROR", **kwargs)


ERROR_STATUS_CODES: Dict[str, int] = {
    "VALIDATION_ERROR": 400,
    "INVALID_SIGNATURE": 401,
    "NOT_FOUND": 404,
    "CONFLICT": 409,
    "RATE_LIMIT_EXCEEDED": 429,
    "UPSTREAM_ERROR": 500,
    "EVENT_PROCESSING_ERROR": 500,
    "CONFIGURATION_ERROR": 500,
}


def status_code_for(exc: ListenerException) -> int:
    """HTTP status for an application exception, 500 when unmapped."""
    return ERROR_STATUS_CODES.get(exc.error_code or "", 500)
