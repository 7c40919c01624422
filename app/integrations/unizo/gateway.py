"""
Typed operations against the Unizo platform.

This is the only module that knows Unizo URL shapes and auth headers. Every
call goes through ResilientClient, and its failures propagate unchanged
except where noted (404 in ``repository_exists``).
"""

from typing import Any, Dict, Iterable, List, Optional

from loguru import logger

from .client import ResilientClient, decode_body
from .exceptions import UpstreamNotFoundError
from .models import (
    EventSubscription,
    OrganizationWebhookConfig,
    Repository,
    RepositoryPage,
    UnizoConfig,
    WebhookRegistration,
    WebhookRegistrationRequest,
    WebhookUpdate,
)


class UpstreamGateway:
    """Repository, watch-hook and event-subscription calls to Unizo."""

    def __init__(self, client: ResilientClient, config: Optional[UnizoConfig] = None):
        self.client = client
        self.config = config or client.config

    # Headers

    def _api_headers(self, integration_id: Optional[str] = None) -> Dict[str, str]:
        headers = {"apikey": self.config.api_key}
        if integration_id:
            headers["integrationid"] = integration_id
        return headers

    def _watch_headers(self) -> Dict[str, str]:
        headers = self._api_headers()
        if self.config.auth_user_id:
            headers["authuserid"] = self.config.auth_user_id
        headers["sourcechannel"] = self.config.source_channel
        return headers

    def _integration(self, integration_id: Optional[str]) -> str:
        integration = integration_id or self.config.integration_id
        if not integration:
            raise ValueError("An integration id is required for watch operations")
        return integration

    async def _get_json(self, path: str, **kwargs) -> Any:
        response = await self.client.request("GET", path, **kwargs)
        return decode_body(response)

    # Repositories

    async def list_repositories(
        self,
        organization_id: str,
        page_token: Optional[str] = None,
        integration_id: Optional[str] = None,
    ) -> RepositoryPage:
        """Fetch one page of an organization's repositories."""
        params: Dict[str, Any] = {"limit": self.config.page_size, "sort": "name", "order": "asc"}
        if page_token:
            params["page"] = page_token

        logger.debug(f"Fetching repositories for organization {organization_id}, cursor: {page_token}")
        data = await self._get_json(
            f"/organizations/{organization_id}/repositories",
            params=params,
            headers=self._api_headers(integration_id),
        )
        return RepositoryPage.from_response(data)

    async def get_repository(self, repository_id: str) -> Repository:
        data = await self._get_json(f"/repositories/{repository_id}", headers=self._api_headers())
        if not isinstance(data, dict):
            raise UpstreamNotFoundError(f"Repository {repository_id} not found", resource_type="repository")
        return Repository.model_validate(data)

    async def repository_exists(self, repository_id: str) -> bool:
        try:
            await self.get_repository(repository_id)
            return True
        except UpstreamNotFoundError:
            return False

    # Organization configuration

    async def get_organization_webhook_config(self, organization_id: str) -> Optional[OrganizationWebhookConfig]:
        """
        Fetch the organization's SCM_WATCH_HOOK configuration.

        Returns:
            The configuration, or None when the organization has none
        """
        headers = self._api_headers()
        if self.config.auth_user_id:
            headers["authuserid"] = self.config.auth_user_id

        data = await self._get_json(f"/organizations/{organization_id}/configurations", headers=headers)
        webhook_config = OrganizationWebhookConfig.from_configurations(data)

        if webhook_config is None:
            logger.warning(f"No SCM_WATCH_HOOK configuration found for organization {organization_id}")
        else:
            logger.info(f"Found SCM_WATCH_HOOK configuration for organization {organization_id}: {webhook_config.url}")
        return webhook_config

    # Watch hooks

    async def register_webhook(
        self,
        repository_id: str,
        organization_id: str,
        config: OrganizationWebhookConfig,
        integration_id: Optional[str] = None,
    ) -> WebhookRegistration:
        registration = WebhookRegistrationRequest(
            repository_id=repository_id,
            organization_id=organization_id,
            target_url=config.url,
            secret=config.secret,
            content_type=config.content_type,
            secured_ssl_required=config.secured_ssl_required,
        )
        return await self.create_webhook(registration, integration_id)

    async def create_webhook(
        self,
        registration: WebhookRegistrationRequest,
        integration_id: Optional[str] = None,
    ) -> WebhookRegistration:
        response = await self.client.request(
            "POST",
            f"/integrations/{self._integration(integration_id)}/watches",
            json=registration.to_watch_payload(),
            headers=self._watch_headers(),
        )
        data = _object(decode_body(response))
        # a 2xx without a body still means the watch exists upstream
        if "status" not in data and "state" not in data:
            data["status"] = "created"
        data.setdefault("resource", {
            "repository": {"id": registration.repository_id},
            "config": {"url": registration.target_url},
        })
        webhook = WebhookRegistration.model_validate(data)
        logger.info(f"Registered watch {webhook.webhook_id} for repository {registration.repository_id}")
        return webhook

    async def list_webhooks(self, repository_id: str, integration_id: Optional[str] = None) -> List[WebhookRegistration]:
        data = await self._get_json(
            f"/integrations/{self._integration(integration_id)}/watches",
            params={"repositoryId": repository_id},
            headers=self._watch_headers(),
        )
        webhooks = [WebhookRegistration.model_validate(item) for item in _items(data)]
        # upstream may ignore the filter
        return [hook for hook in webhooks if hook.repository_id in (None, repository_id)]

    async def update_webhook(
        self,
        repository_id: str,
        webhook_id: str,
        update: WebhookUpdate,
        integration_id: Optional[str] = None,
    ) -> WebhookRegistration:
        """Replace a watch's hook settings; fields left unset keep their upstream value."""
        response = await self.client.request(
            "PUT",
            f"/integrations/{self._integration(integration_id)}/watches/{webhook_id}",
            json=update.to_watch_payload(),
            headers=self._watch_headers(),
        )
        data = _object(decode_body(response))
        data.setdefault("id", webhook_id)
        data.setdefault("resource", {"repository": {"id": repository_id}, "config": {"url": update.target_url}})
        logger.info(f"Updated watch {webhook_id} for repository {repository_id}")
        return WebhookRegistration.model_validate(data)

    async def delete_webhook(self, repository_id: str, webhook_id: str, integration_id: Optional[str] = None) -> None:
        await self.client.request(
            "DELETE",
            f"/integrations/{self._integration(integration_id)}/watches/{webhook_id}",
            headers=self._watch_headers(),
        )
        logger.info(f"Deleted watch {webhook_id} from repository {repository_id}")

    # Event subscriptions

    async def register_event_subscription(
        self,
        repository_id: str,
        event_types: Iterable[str],
        callback_url: str,
        secret: Optional[str],
        active: bool = True,
    ) -> EventSubscription:
        payload = {
            "repository_id": repository_id,
            "event_types": sorted(event_types),
            "callback_url": callback_url,
            "secret": secret,
            "active": active,
        }
        response = await self.client.request("POST", "/event-subscriptions", json=payload, headers=self._watch_headers())
        data = _object(decode_body(response))
        subscription = EventSubscription.model_validate({**payload, **data})
        logger.info(f"Registered event subscription {subscription.subscription_id} for repository {repository_id}")
        return subscription

    async def update_event_subscription(self, subscription_id: str, changes: Dict[str, Any]) -> EventSubscription:
        response = await self.client.request(
            "PATCH",
            f"/event-subscriptions/{subscription_id}",
            json=changes,
            headers=self._watch_headers(),
        )
        data = _object(decode_body(response))
        return EventSubscription.model_validate({"id": subscription_id, **data})

    async def delete_event_subscription(self, subscription_id: str) -> None:
        await self.client.request("DELETE", f"/event-subscriptions/{subscription_id}", headers=self._watch_headers())
        logger.info(f"Deleted event subscription {subscription_id}")

    async def list_event_subscriptions(self, repository_id: Optional[str] = None) -> List[EventSubscription]:
        params = {"repository_id": repository_id} if repository_id else None
        data = await self._get_json("/event-subscriptions", params=params, headers=self._watch_headers())
        subscriptions = [EventSubscription.model_validate(item) for item in _items(data)]
        if repository_id:
            subscriptions = [sub for sub in subscriptions if sub.repository_id == repository_id]
        return subscriptions


def _object(data: Any) -> Dict[str, Any]:
    return data if isinstance(data, dict) else {}


def _items(data: Any) -> List[Dict[str, Any]]:
    """List payloads come either bare or wrapped in ``items``/``data``."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        return data.get("items") or data.get("data") or []
    return []
