"""
Event subscriptions and dispatch of verified Unizo events.
"""

from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from loguru import logger

from app.integrations.unizo.gateway import UpstreamGateway
from app.integrations.unizo.models import EventSubscription
from app.utils.exceptions import ConflictError, NotFoundError


class EventType(Enum):
    """Unizo SCM event selectors."""
    REPOSITORY_CREATED = "repository:created"
    REPOSITORY_RENAMED = "repository:renamed"
    REPOSITORY_DELETED = "repository:deleted"
    REPOSITORY_ARCHIVED = "repository:archived"
    BRANCH_CREATED = "branch:created"
    COMMIT_PUSHED = "commit:pushed"


DEFAULT_EVENT_TYPES = [event_type.value for event_type in EventType]

EventHandler = Callable[[Dict[str, Any]], Awaitable[None]]


def _section(payload: Dict[str, Any], key: str) -> Dict[str, Any]:
    """Nested object of an event payload, empty when absent or not an object."""
    value = payload.get(key)
    return value if isinstance(value, dict) else {}


def _repo_name(payload: Dict[str, Any]) -> str:
    repository = payload.get("repository")
    if isinstance(repository, str) and repository:
        return repository
    repository = _section(payload, "repository")
    return repository.get("name") or repository.get("full_name") or str(repository.get("id", "unknown"))


class EventSubscriptionOrchestrator:
    """Subscribe repositories to Unizo events and handle what arrives."""

    def __init__(
        self,
        gateway: UpstreamGateway,
        callback_url: str,
        secret: Optional[str],
        default_event_types: Optional[Iterable[str]] = None,
    ):
        self.gateway = gateway
        self.callback_url = callback_url
        self.secret = secret
        self.default_event_types = list(default_event_types or DEFAULT_EVENT_TYPES)
        self._handlers: Dict[EventType, EventHandler] = {}
        self._setup_default_handlers()

    # Subscriptions

    async def subscribe(self, repository_id: str, event_types: Optional[Iterable[str]] = None) -> EventSubscription:
        """
        Create an event subscription for a repository.

        Raises:
            NotFoundError: the repository does not exist upstream
            ConflictError: the repository already has a subscription
        """
        logger.info(f"Registering event subscription for repository {repository_id}")

        if not await self.gateway.repository_exists(repository_id):
            logger.warning(f"Repository {repository_id} not found")
            raise NotFoundError("Repository not found", details={"repository_id": repository_id})

        existing = await self.gateway.list_event_subscriptions(repository_id)
        if any(sub.repository_id == repository_id for sub in existing):
            logger.warning(f"Event subscription already exists for repository {repository_id}")
            raise ConflictError(
                "Event subscription already exists for this repository",
                details={"repository_id": repository_id},
            )

        return await self.gateway.register_event_subscription(
            repository_id,
            event_types or self.default_event_types,
            self.callback_url,
            self.secret,
        )

    async def unsubscribe(self, subscription_id: str) -> None:
        await self.gateway.delete_event_subscription(subscription_id)

    async def list(self, repository_id: Optional[str] = None) -> List[EventSubscription]:
        return await self.gateway.list_event_subscriptions(repository_id)

    async def update(self, subscription_id: str, changes: Dict[str, Any]) -> EventSubscription:
        logger.info(f"Updating event subscription {subscription_id}")
        return await self.gateway.update_event_subscription(subscription_id, changes)

    # Event dispatch

    def register_handler(self, event_type: EventType, handler: EventHandler) -> None:
        """Replace the handler for an event type."""
        self._handlers[event_type] = handler
        logger.debug(f"Registered handler for event type: {event_type.value}")

    def _setup_default_handlers(self) -> None:
        self._handlers.update({
            EventType.REPOSITORY_CREATED: self._handle_repository_created,
            EventType.REPOSITORY_RENAMED: self._handle_repository_renamed,
            EventType.REPOSITORY_DELETED: self._handle_repository_deleted,
            EventType.REPOSITORY_ARCHIVED: self._handle_repository_archived,
            EventType.BRANCH_CREATED: self._handle_branch_created,
            EventType.COMMIT_PUSHED: self._handle_commit_pushed,
        })

    async def handle_event(self, event_type: str, payload: Dict[str, Any]) -> bool:
        """
        Dispatch a verified event to its handler.

        Unknown event types are logged and acknowledged so new upstream event
        kinds never break delivery. Handler errors propagate.

        Returns:
            True when a handler ran, False for an unknown event type
        """
        try:
            kind = EventType(event_type)
        except ValueError:
            logger.warning(f"Unhandled event type: {event_type}")
            return False

        logger.info(f"Processing {event_type} event for repository {_repo_name(payload)}")
        await self._handlers[kind](payload)
        return True

    async def _handle_repository_created(self, payload: Dict[str, Any]) -> None:
        logger.info(f"New repository created: {_repo_name(payload)}")

    async def _handle_repository_renamed(self, payload: Dict[str, Any]) -> None:
        logger.info(f"Repository renamed from {payload.get('old_name')} to {payload.get('new_name')}")

    async def _handle_repository_deleted(self, payload: Dict[str, Any]) -> None:
        logger.info(f"Repository deleted: {_repo_name(payload)}")

    async def _handle_repository_archived(self, payload: Dict[str, Any]) -> None:
        logger.info(f"Repository archived: {_repo_name(payload)}")

    async def _handle_branch_created(self, payload: Dict[str, Any]) -> None:
        branch = _section(payload, "branch").get("name", "unknown")
        logger.info(f"New branch created: {branch} in {_repo_name(payload)}")

    async def _handle_commit_pushed(self, payload: Dict[str, Any]) -> None:
        logger.info(f"New commit pushed to {_repo_name(payload)}")
