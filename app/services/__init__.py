"""
Service layer: registration and event-subscription orchestration.
"""

from .registration import RegistrationOrchestrator, WebhookService, NotConfigured
from .subscriptions import EventSubscriptionOrchestrator, EventType
from .scm_events import ScmEventDispatcher

__all__ = [
    "RegistrationOrchestrator",
    "WebhookService",
    "NotConfigured",
    "EventSubscriptionOrchestrator",
    "EventType",
    "ScmEventDispatcher",
]
