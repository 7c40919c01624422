"""
SCM webhook callback, bulk registration and per-repository webhook endpoints.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Request, Response, status
from loguru import logger

from app.api.v1.utils import parse_json_body
from app.core.dependencies import (
    get_registration_orchestrator,
    get_scm_dispatcher,
    get_webhook_service,
    get_webhook_verifier,
)
from app.integrations.unizo.models import WebhookRegistration, WebhookUpdate
from app.integrations.unizo.signatures import SignatureVerifier
from app.services.registration import NotConfigured, RegistrationOrchestrator, WebhookService
from app.services.scm_events import ScmEventDispatcher
from app.utils.exceptions import EventProcessingError, ListenerException, NotFoundError, ValidationError

router = APIRouter(tags=["Webhooks"])


@router.post("/webhook")
async def receive_webhook(
    request: Request,
    x_hub_signature_256: Optional[str] = Header(None),
    x_github_event: Optional[str] = Header(None),
    verifier: SignatureVerifier = Depends(get_webhook_verifier),
    dispatcher: ScmEventDispatcher = Depends(get_scm_dispatcher),
):
    """Receive an SCM webhook delivery; the signature is checked on the raw body first."""
    body = await request.body()
    verifier.verify(body, x_hub_signature_256)

    if not x_github_event:
        raise ValidationError("Event type is required", field="x-github-event")
    payload = parse_json_body(body)

    try:
        await dispatcher.dispatch(x_github_event, payload)
    except ListenerException:
        raise
    except Exception as e:
        logger.error(f"Failed to process {x_github_event} webhook: {e}")
        raise EventProcessingError(f"Failed to process webhook: {e}", event_type=x_github_event) from e

    return {"message": "Webhook received successfully"}


@router.post("/organizations/{organization_id}/repositories/register")
async def register_repository_webhooks(
    organization_id: str,
    integration_id: Optional[str] = Header(None, alias="integrationId"),
    orchestrator: RegistrationOrchestrator = Depends(get_registration_orchestrator),
):
    """
    Register a webhook on every repository of an organization.

    Always answers 200 with counts once the run completes, even when some
    repositories failed; 404 when the organization has no watch-hook
    configuration.
    """
    if not integration_id:
        raise ValidationError("integrationId header is required", field="integrationId")

    result = await orchestrator.register_organization(organization_id, integration_id)
    if isinstance(result, NotConfigured):
        raise NotFoundError(
            "No SCM_WATCH_HOOK configuration found for this organization",
            details={"organization_id": organization_id},
        )

    return {
        "message": "Webhook registration process completed",
        "summary": result.model_dump(),
    }


@router.post("/repositories/{repository_id}/webhooks", status_code=status.HTTP_201_CREATED)
async def create_webhook(
    repository_id: str,
    service: WebhookService = Depends(get_webhook_service),
) -> WebhookRegistration:
    webhook = await service.register_for_repository(repository_id)
    logger.info(f"Webhook registered successfully for {repository_id}")
    return webhook


@router.get("/repositories/{repository_id}/webhooks")
async def list_webhooks(
    repository_id: str,
    service: WebhookService = Depends(get_webhook_service),
) -> List[WebhookRegistration]:
    return await service.list_for_repository(repository_id)


@router.put("/repositories/{repository_id}/webhooks/{webhook_id}")
async def update_webhook(
    repository_id: str,
    webhook_id: str,
    body: WebhookUpdate,
    service: WebhookService = Depends(get_webhook_service),
) -> WebhookRegistration:
    if not body.has_changes():
        raise ValidationError("No changes supplied")
    webhook = await service.update_for_repository(repository_id, webhook_id, body)
    logger.info(f"Webhook {webhook_id} updated for {repository_id}")
    return webhook


@router.delete("/repositories/{repository_id}/webhooks/{webhook_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_webhook(
    repository_id: str,
    webhook_id: str,
    service: WebhookService = Depends(get_webhook_service),
):
    await service.delete_for_repository(repository_id, webhook_id)
    logger.info(f"Webhook {webhook_id} deleted from {repository_id}")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
