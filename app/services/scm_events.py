"""
Handling of SCM-native webhook deliveries (push, pull_request, ...).
"""

from typing import Any, Awaitable, Callable, Dict

from loguru import logger


ScmHandler = Callable[[Dict[str, Any]], Awaitable[None]]


def _section(payload: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = payload.get(key)
    return value if isinstance(value, dict) else {}


class ScmEventDispatcher:
    """Routes verified webhook deliveries by their ``x-github-event`` kind."""

    def __init__(self):
        self._handlers: Dict[str, ScmHandler] = {
            "push": self._handle_push,
            "pull_request": self._handle_pull_request,
        }

    def register_handler(self, event: str, handler: ScmHandler) -> None:
        self._handlers[event] = handler

    async def dispatch(self, event: str, payload: Dict[str, Any]) -> bool:
        repository = _section(payload, "repository").get("full_name", "unknown")
        logger.info(f"Received {event} event from {repository}")

        handler = self._handlers.get(event)
        if handler is None:
            logger.info(f"Unhandled webhook event type: {event}")
            return False
        await handler(payload)
        return True

    async def _handle_push(self, payload: Dict[str, Any]) -> None:
        pusher = _section(payload, "pusher").get("name", "unknown")
        logger.info(f"Push to {payload.get('ref')} by {pusher}")

    async def _handle_pull_request(self, payload: Dict[str, Any]) -> None:
        title = _section(payload, "pull_request").get("title", "")
        logger.info(f"Pull request {payload.get('action')}: {title}")
