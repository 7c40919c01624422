"""
Unizo upstream error classes and failure classification.
"""

from typing import Any, Dict, Optional

from app.utils.exceptions import ListenerException


RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class UpstreamError(ListenerException):
    """Terminal failure of a call to the Unizo platform."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Any = None,
        error_code: str = "UPSTREAM_ERROR",
        **kwargs
    ):
        self.status_code = status_code
        self.body = body
        details = kwargs.pop("details", None) or {}
        if status_code is not None:
            details.setdefault("upstream_status", status_code)
        super().__init__(message, error_code=error_code, details=details, **kwargs)


class UpstreamAuthenticationError(UpstreamError):
    """Upstream rejected our API key or auth user."""


class UpstreamNotFoundError(UpstreamError):
    """Upstream resource does not exist."""

    def __init__(self, message: str, resource_type: Optional[str] = None, **kwargs):
        kwargs.setdefault("status_code", 404)
        super().__init__(message, error_code="NOT_FOUND", **kwargs)
        self.resource_type = resource_type


class UpstreamConflictError(UpstreamError):
    """Upstream refused a create because the resource already exists."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("status_code", 409)
        super().__init__(message, error_code="CONFLICT", **kwargs)


class UpstreamRateLimitError(UpstreamError):
    """Upstream rate limit still exceeded after retrying."""

    def __init__(self, message: str, retry_after: Optional[int] = None, **kwargs):
        kwargs.setdefault("status_code", 429)
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class UpstreamServerError(UpstreamError):
    """Upstream 5xx response."""


class UpstreamTimeoutError(UpstreamError):
    """Request timed out on every attempt."""

    def __init__(self, message: str, timeout: Optional[float] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.timeout = timeout


class UpstreamConnectionError(UpstreamError):
    """Transport-level failure: connection reset, refused or DNS failure."""


def _extract_message(body: Any) -> str:
    if isinstance(body, dict):
        for key in ("message", "error", "errors", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, list) and value:
                return "; ".join(str(item) for item in value)
    elif isinstance(body, str) and body:
        return body[:500]
    return "Unknown upstream error"


def upstream_error_from_response(status_code: int, body: Any) -> UpstreamError:
    """
    Create the appropriate UpstreamError from an HTTP error response.

    Args:
        status_code: HTTP status code returned by Unizo
        body: Decoded JSON body, or raw text when the body is not JSON

    Returns:
        Appropriate UpstreamError subclass
    """
    message = f"Unizo returned {status_code}: {_extract_message(body)}"

    if status_code in (401, 403):
        return UpstreamAuthenticationError(message, status_code=status_code, body=body)
    elif status_code == 404:
        return UpstreamNotFoundError(message, body=body)
    elif status_code == 409:
        return UpstreamConflictError(message, body=body)
    elif status_code == 429:
        retry_after = body.get("retry_after") if isinstance(body, dict) else None
        return UpstreamRateLimitError(message, retry_after=retry_after, body=body)
    elif status_code >= 500:
        return UpstreamServerError(message, status_code=status_code, body=body)
    else:
        return UpstreamError(message, status_code=status_code, body=body)


def is_retryable_status(status_code: Optional[int]) -> bool:
    """Rate limits and gateway/server failures are worth retrying."""
    return status_code in RETRYABLE_STATUS_CODES


def describe(error: Exception) -> Dict[str, Any]:
    """Loggable summary of an error, never including request headers."""
    summary: Dict[str, Any] = {"error": str(error), "error_type": type(error).__name__}
    if isinstance(error, UpstreamError) and error.status_code is not None:
        summary["status_code"] = error.status_code
    return summary
