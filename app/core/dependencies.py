"""
FastAPI dependency functions.
"""

from typing import Optional

from fastapi import Depends

from app.core.config import Settings, get_settings
from app.integrations.unizo.client import ResilientClient
from app.integrations.unizo.gateway import UpstreamGateway
from app.integrations.unizo.signatures import SignatureVerifier
from app.services.registration import RegistrationOrchestrator, WebhookService
from app.services.scm_events import ScmEventDispatcher
from app.services.subscriptions import EventSubscriptionOrchestrator


# Shared across requests so outbound calls reuse one connection pool
_client: Optional[ResilientClient] = None
_scm_dispatcher: Optional[ScmEventDispatcher] = None


def get_resilient_client(settings: Settings = Depends(get_settings)) -> ResilientClient:
    """Get or create the process-wide Unizo client."""
    global _client
    if _client is None:
        _client = ResilientClient(settings.to_unizo_config())
    return _client


async def close_resilient_client() -> None:
    global _client
    if _client is not None:
        await _client.close()
        _client = None


def get_gateway(client: ResilientClient = Depends(get_resilient_client)) -> UpstreamGateway:
    return UpstreamGateway(client)


def get_registration_orchestrator(
    gateway: UpstreamGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
) -> RegistrationOrchestrator:
    return RegistrationOrchestrator(
        gateway,
        concurrency=settings.REGISTRATION_CONCURRENCY,
        run_deadline=settings.REGISTRATION_RUN_DEADLINE,
    )


def get_webhook_service(
    gateway: UpstreamGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
) -> WebhookService:
    return WebhookService(
        gateway,
        organization_id=settings.TARGET_ORGANIZATION,
        callback_url=settings.webhook_callback_url,
        secret=settings.WEBHOOK_SECRET or None,
    )


def get_subscription_orchestrator(
    gateway: UpstreamGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
) -> EventSubscriptionOrchestrator:
    return EventSubscriptionOrchestrator(
        gateway,
        callback_url=settings.event_callback_url,
        secret=settings.EVENT_SECRET,
        default_event_types=settings.EVENT_SELECTORS,
    )


def get_event_verifier(settings: Settings = Depends(get_settings)) -> SignatureVerifier:
    return SignatureVerifier.for_events(settings.EVENT_SECRET)


def get_webhook_verifier(settings: Settings = Depends(get_settings)) -> SignatureVerifier:
    return SignatureVerifier.for_webhooks(settings.WEBHOOK_SECRET)


def get_scm_dispatcher() -> ScmEventDispatcher:
    global _scm_dispatcher
    if _scm_dispatcher is None:
        _scm_dispatcher = ScmEventDispatcher()
    return _scm_dispatcher
