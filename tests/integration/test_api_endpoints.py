"""
Integration tests for the HTTP surface: callbacks, registration and CRUD endpoints.

The real orchestrators run behind the routes; only the upstream gateway is mocked.
"""

import json
from unittest.mock import AsyncMock

import pytest

from app.core.dependencies import get_gateway, get_subscription_orchestrator
from app.integrations.unizo.exceptions import UpstreamNotFoundError, UpstreamServerError
from app.integrations.unizo.models import WebhookRegistration
from app.integrations.unizo.signatures import SignatureVerifier
from app.main import app


EVENT_SIGNER = SignatureVerifier.for_events("test-event-secret")
WEBHOOK_SIGNER = SignatureVerifier.for_webhooks("test-webhook-secret")


@pytest.fixture
def client(test_client, mock_gateway):
    app.dependency_overrides[get_gateway] = lambda: mock_gateway
    return test_client


def registered(repository_id, *args, **kwargs):
    return WebhookRegistration(webhook_id=f"watch-{repository_id}", status="ACTIVE", repository_id=repository_id)


@pytest.mark.integration
class TestEventCallback:
    """POST /api/v1/events"""

    def post_event(self, client, body: bytes, signature=None, event_type="repository:created"):
        headers = {"Content-Type": "application/json"}
        if signature is not None:
            headers["x-unizo-signature"] = signature
        if event_type is not None:
            headers["x-unizo-event"] = event_type
        return client.post("/api/v1/events", content=body, headers=headers)

    def test_valid_event_is_processed(self, client, sample_event_payload):
        body = json.dumps(sample_event_payload).encode()

        response = self.post_event(client, body, EVENT_SIGNER.sign(body))

        assert response.status_code == 200
        assert response.json() == {"message": "Event processed successfully"}
        assert "X-Request-ID" in response.headers

    def test_missing_signature_is_unauthorized(self, client, sample_event_payload):
        body = json.dumps(sample_event_payload).encode()

        response = self.post_event(client, body)

        assert response.status_code == 401
        assert response.json()["error_code"] == "INVALID_SIGNATURE"

    def test_bad_signature_is_unauthorized_without_details(self, client):
        orchestrator = AsyncMock()
        app.dependency_overrides[get_subscription_orchestrator] = lambda: orchestrator

        response = self.post_event(client, b'{"repository": {"id": "r1"}}', "sha256=deadbeef")

        assert response.status_code == 401
        assert response.json()["details"] == {}
        orchestrator.handle_event.assert_not_called()

    def test_signature_checked_before_event_type(self, client):
        response = self.post_event(client, b"{}", "sha256=deadbeef", event_type=None)

        assert response.status_code == 401

    def test_missing_event_type_is_bad_request(self, client):
        body = b"{}"

        response = self.post_event(client, body, EVENT_SIGNER.sign(body), event_type=None)

        assert response.status_code == 400

    def test_invalid_json_is_bad_request(self, client):
        body = b"not json"

        response = self.post_event(client, body, EVENT_SIGNER.sign(body))

        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_unknown_event_type_is_acknowledged(self, client):
        body = b'{"issue": {"id": 7}}'

        response = self.post_event(client, body, EVENT_SIGNER.sign(body), event_type="issue:opened")

        assert response.status_code == 200

    def test_handler_failure_is_server_error(self, client):
        orchestrator = AsyncMock()
        orchestrator.handle_event.side_effect = RuntimeError("handler failed")
        app.dependency_overrides[get_subscription_orchestrator] = lambda: orchestrator
        body = b"{}"

        response = self.post_event(client, body, EVENT_SIGNER.sign(body), event_type="commit:pushed")

        assert response.status_code == 500
        assert response.json()["error_code"] == "EVENT_PROCESSING_ERROR"


@pytest.mark.integration
class TestWebhookCallback:
    """POST /api/v1/webhook"""

    def test_valid_webhook_is_received(self, client):
        body = b'{"ref": "refs/heads/main", "repository": {"full_name": "acme/widgets"}}'

        response = client.post(
            "/api/v1/webhook",
            content=body,
            headers={"x-hub-signature-256": WEBHOOK_SIGNER.sign(body), "x-github-event": "push"},
        )

        assert response.status_code == 200
        assert response.json() == {"message": "Webhook received successfully"}

    def test_prefixed_signature_is_rejected(self, client):
        body = b"{}"
        prefixed = "sha256=" + WEBHOOK_SIGNER.sign(body)

        response = client.post(
            "/api/v1/webhook",
            content=body,
            headers={"x-hub-signature-256": prefixed, "x-github-event": "push"},
        )

        assert response.status_code == 401

    def test_missing_signature_is_unauthorized(self, client):
        response = client.post("/api/v1/webhook", content=b"{}", headers={"x-github-event": "push"})

        assert response.status_code == 401


@pytest.mark.integration
class TestBulkRegistration:
    """POST /api/v1/organizations/{organization_id}/repositories/register"""

    URL = "/api/v1/organizations/org-1/repositories/register"

    def test_registration_summary(self, client, mock_gateway, webhook_config, make_page):
        mock_gateway.get_organization_webhook_config.return_value = webhook_config
        mock_gateway.list_repositories.return_value = make_page("r1", "r2")

        async def register(repository_id, *args, **kwargs):
            if repository_id == "r2":
                raise UpstreamServerError("Unizo returned 500", status_code=500)
            return registered(repository_id)

        mock_gateway.register_webhook.side_effect = register

        response = client.post(self.URL, headers={"integrationId": "int-1"})

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Webhook registration process completed"
        assert data["summary"] == {
            "organization_id": "org-1",
            "total_repositories": 2,
            "registered": 1,
            "failed": 1,
            "partial": False,
        }
        mock_gateway.list_repositories.assert_awaited_once_with("org-1", None, "int-1")

    def test_missing_configuration_is_not_found(self, client, mock_gateway):
        mock_gateway.get_organization_webhook_config.return_value = None

        response = client.post(self.URL, headers={"integrationId": "int-1"})

        assert response.status_code == 404
        mock_gateway.register_webhook.assert_not_called()

    def test_missing_integration_header_is_bad_request(self, client, mock_gateway):
        response = client.post(self.URL)

        assert response.status_code == 400
        mock_gateway.get_organization_webhook_config.assert_not_called()

    def test_page_fetch_failure_is_server_error(self, client, mock_gateway, webhook_config):
        mock_gateway.get_organization_webhook_config.return_value = webhook_config
        mock_gateway.list_repositories.side_effect = UpstreamServerError("Unizo returned 503", status_code=503)

        response = client.post(self.URL, headers={"integrationId": "int-1"})

        assert response.status_code == 500
        assert response.json()["error_code"] == "UPSTREAM_ERROR"


@pytest.mark.integration
class TestRepositoryWebhooks:
    """/api/v1/repositories/{repository_id}/webhooks"""

    def test_create_webhook(self, client, mock_gateway, sample_webhook):
        mock_gateway.repository_exists.return_value = True
        mock_gateway.list_webhooks.return_value = []
        mock_gateway.create_webhook.return_value = sample_webhook

        response = client.post("/api/v1/repositories/r1/webhooks")

        assert response.status_code == 201
        assert response.json()["webhook_id"] == "watch-1"
        request = mock_gateway.create_webhook.call_args.args[0]
        assert request.target_url == "https://listener.test/webhook"

    def test_create_conflicts_with_existing_webhook(self, client, mock_gateway):
        mock_gateway.repository_exists.return_value = True
        mock_gateway.list_webhooks.return_value = [
            WebhookRegistration(webhook_id="watch-9", repository_id="r1", target_url="https://listener.test/webhook"),
        ]

        response = client.post("/api/v1/repositories/r1/webhooks")

        assert response.status_code == 409
        assert response.json()["error_code"] == "CONFLICT"

    def test_create_for_unknown_repository(self, client, mock_gateway):
        mock_gateway.repository_exists.return_value = False

        response = client.post("/api/v1/repositories/missing/webhooks")

        assert response.status_code == 404

    def test_upstream_not_found_maps_to_not_found(self, client, mock_gateway):
        mock_gateway.repository_exists.return_value = True
        mock_gateway.list_webhooks.return_value = []
        mock_gateway.create_webhook.side_effect = UpstreamNotFoundError("Unizo returned 404: no such integration")

        response = client.post("/api/v1/repositories/r1/webhooks")

        assert response.status_code == 404

    def test_list_webhooks(self, client, mock_gateway, sample_webhook):
        mock_gateway.repository_exists.return_value = True
        mock_gateway.list_webhooks.return_value = [sample_webhook]

        response = client.get("/api/v1/repositories/r1/webhooks")

        assert response.status_code == 200
        assert [hook["webhook_id"] for hook in response.json()] == ["watch-1"]

    def test_delete_webhook(self, client, mock_gateway):
        mock_gateway.repository_exists.return_value = True

        response = client.delete("/api/v1/repositories/r1/webhooks/watch-1")

        assert response.status_code == 204
        mock_gateway.delete_webhook.assert_awaited_once_with("r1", "watch-1")


@pytest.mark.integration
class TestSubscriptionEndpoints:
    """/api/v1/repositories/{repository_id}/subscriptions and /api/v1/subscriptions"""

    def test_create_subscription(self, client, mock_gateway, sample_subscription):
        mock_gateway.repository_exists.return_value = True
        mock_gateway.list_event_subscriptions.return_value = []
        mock_gateway.register_event_subscription.return_value = sample_subscription

        response = client.post("/api/v1/repositories/r1/subscriptions", json={"eventTypes": ["commit:pushed"]})

        assert response.status_code == 201
        data = response.json()
        assert data["subscription_id"] == "sub-1"
        assert "secret" not in data
        args = mock_gateway.register_event_subscription.call_args.args
        assert args[:3] == ("r1", ["commit:pushed"], "https://listener.test/events")

    def test_create_subscription_without_body_uses_defaults(self, client, mock_gateway, sample_subscription):
        mock_gateway.repository_exists.return_value = True
        mock_gateway.list_event_subscriptions.return_value = []
        mock_gateway.register_event_subscription.return_value = sample_subscription

        response = client.post("/api/v1/repositories/r1/subscriptions")

        assert response.status_code == 201
        assert len(mock_gateway.register_event_subscription.call_args.args[1]) == 6

    def test_create_duplicate_subscription(self, client, mock_gateway, sample_subscription):
        mock_gateway.repository_exists.return_value = True
        mock_gateway.list_event_subscriptions.return_value = [sample_subscription]

        response = client.post("/api/v1/repositories/r1/subscriptions")

        assert response.status_code == 409

    def test_list_subscriptions(self, client, mock_gateway, sample_subscription):
        mock_gateway.list_event_subscriptions.return_value = [sample_subscription]

        response = client.get("/api/v1/subscriptions", params={"repositoryId": "r1"})

        assert response.status_code == 200
        assert [sub["subscription_id"] for sub in response.json()] == ["sub-1"]
        mock_gateway.list_event_subscriptions.assert_awaited_once_with("r1")

    def test_update_subscription(self, client, mock_gateway, sample_subscription):
        mock_gateway.update_event_subscription.return_value = sample_subscription

        response = client.patch("/api/v1/subscriptions/sub-1", json={"active": False})

        assert response.status_code == 200
        mock_gateway.update_event_subscription.assert_awaited_once_with("sub-1", {"active": False})

    def test_update_without_changes_is_bad_request(self, client, mock_gateway):
        response = client.patch("/api/v1/subscriptions/sub-1", json={})

        assert response.status_code == 400
        mock_gateway.update_event_subscription.assert_not_called()

    def test_update_with_invalid_body_is_bad_request(self, client):
        response = client.patch("/api/v1/subscriptions/sub-1", json={"active": "sometimes"})

        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_delete_subscription(self, client, mock_gateway):
        response = client.delete("/api/v1/subscriptions/sub-1")

        assert response.status_code == 204
        mock_gateway.delete_event_subscription.assert_awaited_once_with("sub-1")


@pytest.mark.integration
class TestHealth:

    @pytest.mark.parametrize("path", ["/health", "/health/readiness", "/health/liveness"])
    def test_health_endpoints(self, client, path):
        response = client.get(path)

        assert response.status_code == 200
        assert response.json()["service"] == "scm-event-listener"

    def test_detailed_health_checks_upstream(self, client, mock_gateway, make_page):
        mock_gateway.list_repositories.return_value = make_page("r1")

        response = client.get("/health/detailed")

        assert response.status_code == 200
        assert response.json()["checks"]["unizoApi"]["status"] == "healthy"
        mock_gateway.list_repositories.assert_awaited_once_with("org-1")

    def test_detailed_health_reports_upstream_failure(self, client, mock_gateway):
        mock_gateway.list_repositories.side_effect = UpstreamServerError("down", status_code=503)

        response = client.get("/health/detailed")

        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"


@pytest.mark.integration
class TestRevisedBehaviour:
    """Upstream 404s on run-level fetches, loosely shaped events and watch updates."""

    def test_run_level_upstream_not_found_is_server_error(self, client, mock_gateway):
        mock_gateway.get_organization_webhook_config.side_effect = UpstreamNotFoundError(
            "Unizo returned 404: organization not found",
        )

        response = client.post(TestBulkRegistration.URL, headers={"integrationId": "int-1"})

        assert response.status_code == 500
        assert response.json()["error_code"] == "UPSTREAM_ERROR"

    def test_page_not_found_is_server_error(self, client, mock_gateway, webhook_config):
        mock_gateway.get_organization_webhook_config.return_value = webhook_config
        mock_gateway.list_repositories.side_effect = UpstreamNotFoundError("Unizo returned 404: organization not found")

        response = client.post(TestBulkRegistration.URL, headers={"integrationId": "int-1"})

        assert response.status_code == 500

    def test_event_with_scalar_repository_is_processed(self, client):
        body = b'{"repository": "acme/widgets"}'

        response = client.post(
            "/api/v1/events",
            content=body,
            headers={"x-unizo-signature": EVENT_SIGNER.sign(body), "x-unizo-event": "commit:pushed"},
        )

        assert response.status_code == 200

    def test_bodiless_webhook_create_is_created(self, client, mock_gateway):
        mock_gateway.repository_exists.return_value = True
        mock_gateway.list_webhooks.return_value = []
        mock_gateway.create_webhook.return_value = WebhookRegistration(
            status="created", repository_id="r1", target_url="https://listener.test/webhook",
        )

        response = client.post("/api/v1/repositories/r1/webhooks")

        assert response.status_code == 201
        assert response.json()["webhook_id"] is None
        assert response.json()["status"] == "created"

    def test_update_webhook(self, client, mock_gateway, sample_webhook):
        mock_gateway.repository_exists.return_value = True
        mock_gateway.update_webhook.return_value = sample_webhook

        response = client.put("/api/v1/repositories/r1/webhooks/watch-1", json={"url": "https://new.example/hook"})

        assert response.status_code == 200
        assert response.json()["webhook_id"] == "watch-1"
        update = mock_gateway.update_webhook.call_args.args[2]
        assert update.target_url == "https://new.example/hook"

    def test_update_webhook_without_changes(self, client, mock_gateway):
        response = client.put("/api/v1/repositories/r1/webhooks/watch-1", json={})

        assert response.status_code == 400
        mock_gateway.update_webhook.assert_not_called()
