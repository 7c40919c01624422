"""
Unizo platform integration package.
"""

from .client import ResilientClient
from .exceptions import (
    UpstreamError,
    UpstreamNotFoundError,
    UpstreamConflictError,
    UpstreamRateLimitError,
    UpstreamServerError,
    UpstreamTimeoutError,
    UpstreamConnectionError,
)
from .gateway import UpstreamGateway
from .models import (
    UnizoConfig,
    Repository,
    RepositoryPage,
    OrganizationWebhookConfig,
    WebhookRegistrationRequest,
    WebhookRegistration,
    WebhookUpdate,
    EventSubscription,
    RegistrationSummary,
)
from .retry import RetryPolicy, RetryState
from .signatures import SignatureScheme, SignatureVerifier

__all__ = [
    "ResilientClient",
    "UpstreamError",
    "UpstreamNotFoundError",
    "UpstreamConflictError",
    "UpstreamRateLimitError",
    "UpstreamServerError",
    "UpstreamTimeoutError",
    "UpstreamConnectionError",
    "UpstreamGateway",
    "UnizoConfig",
    "Repository",
    "RepositoryPage",
    "OrganizationWebhookConfig",
    "WebhookRegistrationRequest",
    "WebhookRegistration",
    "WebhookUpdate",
    "EventSubscription",
    "RegistrationSummary",
    "RetryPolicy",
    "RetryState",
    "SignatureScheme",
    "SignatureVerifier",
]
