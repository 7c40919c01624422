"""
Pytest configuration and shared fixtures for SCM event listener testing.
"""

import os

# Settings are read at import time, so the environment must be in place first.
os.environ.update({
    "UNIZO_API_URL": "https://unizo.test/api/v1",
    "UNIZO_API_KEY": "test-api-key",
    "UNIZO_AUTH_USER_ID": "test-user",
    "INTEGRATION_ID": "int-1",
    "EVENT_SECRET": "test-event-secret",
    "WEBHOOK_SECRET": "test-webhook-secret",
    "TARGET_ORGANIZATION": "org-1",
    "APP_URL": "https://listener.test",
    "LOG_FORMAT": "text",
    "RATE_LIMIT_MAX_REQUESTS": "10000",
})

from typing import Any, Callable, Dict, Generator, List
from unittest.mock import AsyncMock

import httpx
import pytest
from fastapi.testclient import TestClient

from app.core.config import settings
from app.integrations.unizo.client import ResilientClient
from app.integrations.unizo.gateway import UpstreamGateway
from app.integrations.unizo.models import (
    EventSubscription,
    OrganizationWebhookConfig,
    Repository,
    RepositoryPage,
    UnizoConfig,
    WebhookRegistration,
)
from app.integrations.unizo.retry import RetryPolicy
from app.main import app


@pytest.fixture
def unizo_config() -> UnizoConfig:
    """Explicit Unizo configuration used by unit tests."""
    return UnizoConfig(
        api_url="https://unizo.test/api/v1",
        api_key="test-api-key",
        auth_user_id="test-user",
        integration_id="int-1",
        event_secret="test-event-secret",
        webhook_secret="test-webhook-secret",
    )


@pytest.fixture
def sleeps() -> List[float]:
    """Delays requested by the client under test, in order."""
    return []


@pytest.fixture
def make_client(unizo_config, sleeps) -> Callable[..., ResilientClient]:
    """
    Build a ResilientClient on top of an httpx.MockTransport.

    The handler receives each httpx.Request and returns an httpx.Response
    (or raises an httpx transport error). Backoff sleeps are recorded
    instead of awaited.
    """
    async def fake_sleep(delay: float) -> None:
        sleeps.append(delay)

    def factory(handler, retry_policy: RetryPolicy = None) -> ResilientClient:
        return ResilientClient(
            unizo_config,
            retry_policy=retry_policy,
            transport=httpx.MockTransport(handler),
            sleep=fake_sleep,
        )

    return factory


@pytest.fixture
def mock_gateway() -> AsyncMock:
    """Create a mock upstream gateway."""
    return AsyncMock(spec=UpstreamGateway)


@pytest.fixture
def webhook_config() -> OrganizationWebhookConfig:
    return OrganizationWebhookConfig(url="https://cb.example/events", extra={"url": "https://cb.example/events"})


@pytest.fixture
def make_page() -> Callable[..., RepositoryPage]:
    def factory(*repository_ids: str, next_page_token: str = None) -> RepositoryPage:
        return RepositoryPage(
            items=[Repository(id=repo_id, full_name=f"acme/{repo_id}") for repo_id in repository_ids],
            next_page_token=next_page_token,
        )

    return factory


@pytest.fixture
def sample_webhook() -> WebhookRegistration:
    return WebhookRegistration(
        webhook_id="watch-1",
        status="ACTIVE",
        repository_id="r1",
        target_url="https://cb.example/events",
    )


@pytest.fixture
def sample_subscription() -> EventSubscription:
    return EventSubscription(
        subscription_id="sub-1",
        repository_id="r1",
        event_types={"repository:created", "commit:pushed"},
        callback_url="https://listener.test/events",
        secret="test-event-secret",
        active=True,
    )


@pytest.fixture
def sample_event_payload() -> Dict[str, Any]:
    return {
        "repository": {"id": "r1", "name": "widgets", "full_name": "acme/widgets"},
        "branch": {"name": "feature/login"},
    }


@pytest.fixture
def test_client() -> Generator[TestClient, None, None]:
    """Create a test client; dependency overrides are cleared afterwards."""
    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def app_settings():
    return settings


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
