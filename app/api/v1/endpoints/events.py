"""
Unizo event callback and event-subscription endpoints.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Header, Query, Request, Response, status
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from app.api.v1.utils import parse_json_body
from app.core.dependencies import get_event_verifier, get_subscription_orchestrator
from app.integrations.unizo.models import EventSubscription
from app.integrations.unizo.signatures import SignatureVerifier
from app.services.subscriptions import EventSubscriptionOrchestrator
from app.utils.exceptions import EventProcessingError, ListenerException, ValidationError

router = APIRouter(tags=["Events"])


class SubscriptionCreate(BaseModel):
    """Body of a subscription request; every field is optional."""
    model_config = ConfigDict(populate_by_name=True)

    event_types: Optional[List[str]] = Field(default=None, alias="eventTypes")


class SubscriptionUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    event_types: Optional[List[str]] = Field(default=None, alias="eventTypes")
    callback_url: Optional[str] = Field(default=None, alias="callbackUrl")
    active: Optional[bool] = None

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


@router.post("/events")
async def receive_event(
    request: Request,
    x_unizo_signature: Optional[str] = Header(None),
    x_unizo_event: Optional[str] = Header(None),
    verifier: SignatureVerifier = Depends(get_event_verifier),
    orchestrator: EventSubscriptionOrchestrator = Depends(get_subscription_orchestrator),
):
    """
    Receive an event callback from Unizo.

    The signature is checked against the raw body before anything else;
    unknown event types are acknowledged without processing.
    """
    body = await request.body()
    verifier.verify(body, x_unizo_signature)

    if not x_unizo_event:
        raise ValidationError("Event type is required", field="x-unizo-event")
    payload = parse_json_body(body)

    try:
        await orchestrator.handle_event(x_unizo_event, payload)
    except ListenerException:
        raise
    except Exception as e:
        logger.error(f"Failed to process {x_unizo_event} event: {e}")
        raise EventProcessingError(f"Failed to process event: {e}", event_type=x_unizo_event) from e

    return {"message": "Event processed successfully"}


@router.post("/repositories/{repository_id}/subscriptions", status_code=status.HTTP_201_CREATED)
async def create_subscription(
    repository_id: str,
    body: Optional[SubscriptionCreate] = Body(None),
    orchestrator: EventSubscriptionOrchestrator = Depends(get_subscription_orchestrator),
) -> EventSubscription:
    """Subscribe a repository to Unizo events (409 if it already has one)."""
    event_types = body.event_types if body else None
    subscription = await orchestrator.subscribe(repository_id, event_types)
    logger.info(f"Event subscription registered for {repository_id}")
    return subscription


@router.get("/subscriptions")
async def list_subscriptions(
    repository_id: Optional[str] = Query(None, alias="repositoryId"),
    orchestrator: EventSubscriptionOrchestrator = Depends(get_subscription_orchestrator),
) -> List[EventSubscription]:
    return await orchestrator.list(repository_id)


@router.patch("/subscriptions/{subscription_id}")
async def update_subscription(
    subscription_id: str,
    body: SubscriptionUpdate,
    orchestrator: EventSubscriptionOrchestrator = Depends(get_subscription_orchestrator),
) -> EventSubscription:
    changes = body.changes()
    if not changes:
        raise ValidationError("No changes supplied")
    return await orchestrator.update(subscription_id, changes)


@router.delete("/subscriptions/{subscription_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_subscription(
    subscription_id: str,
    orchestrator: EventSubscriptionOrchestrator = Depends(get_subscription_orchestrator),
):
    await orchestrator.unsubscribe(subscription_id)
    logger.info(f"Event subscription {subscription_id} deleted")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
