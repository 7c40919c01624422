"""
Watch-hook registration: the organization-wide bulk pass and the
single-repository operations.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Union

from loguru import logger

from app.integrations.unizo.exceptions import UpstreamError, UpstreamNotFoundError, describe
from app.integrations.unizo.gateway import UpstreamGateway
from app.integrations.unizo.models import (
    OrganizationWebhookConfig,
    RegistrationSummary,
    Repository,
    WebhookRegistration,
    WebhookRegistrationRequest,
    WebhookUpdate,
)
from app.utils.exceptions import ConflictError, NotFoundError


@dataclass(frozen=True)
class Registered:
    """A repository whose webhook was created."""
    repository: Repository
    webhook: WebhookRegistration


@dataclass(frozen=True)
class Failed:
    """A repository whose webhook could not be created."""
    repository: Repository
    error: Exception


RegistrationOutcome = Union[Registered, Failed]


@dataclass(frozen=True)
class NotConfigured:
    """The organization has no SCM_WATCH_HOOK configuration; nothing was registered."""
    organization_id: str


def _run_failure(error: UpstreamNotFoundError) -> UpstreamError:
    """Run-level 404 as a plain UpstreamError, distinct from NotConfigured."""
    return UpstreamError(error.message, status_code=error.status_code, body=error.body)


def tally(summary: RegistrationSummary, outcome: RegistrationOutcome) -> None:
    summary.total_repositories += 1
    if isinstance(outcome, Registered):
        summary.registered += 1
    else:
        summary.failed += 1


class RegistrationOrchestrator:
    """
    Registers one watch hook per repository of an organization.

    Pages are pulled strictly in cursor order. A repository whose
    registration fails is counted and skipped; only a failure to fetch the
    configuration or a page ends the run early.
    """

    def __init__(
        self,
        gateway: UpstreamGateway,
        concurrency: int = 1,
        run_deadline: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.gateway = gateway
        self.concurrency = max(1, concurrency)
        self.run_deadline = run_deadline
        self._clock = clock

    async def register_organization(
        self,
        organization_id: str,
        integration_id: Optional[str] = None,
    ) -> Union[RegistrationSummary, NotConfigured]:
        logger.info(f"Starting webhook registration for organization {organization_id} (integration {integration_id})")

        try:
            webhook_config = await self.gateway.get_organization_webhook_config(organization_id)
        except UpstreamNotFoundError as e:
            raise _run_failure(e) from e
        if webhook_config is None:
            return NotConfigured(organization_id)

        summary = RegistrationSummary(organization_id=organization_id)
        deadline = self._clock() + self.run_deadline if self.run_deadline else None
        page_token: Optional[str] = None

        while True:
            try:
                page = await self.gateway.list_repositories(organization_id, page_token, integration_id)
            except UpstreamNotFoundError as e:
                raise _run_failure(e) from e
            logger.info(
                f"Retrieved {len(page.items)} repositories for {organization_id} "
                f"(cursor: {page_token}, more: {page.has_more})"
            )

            completed = await self._process_page(page.items, organization_id, webhook_config, integration_id, summary, deadline)
            if not completed:
                summary.partial = True
                logger.warning(f"Registration run for {organization_id} hit its deadline, returning partial summary")
                break

            if not page.has_more:
                break
            page_token = page.next_page_token

        logger.info(
            f"Webhook registration for {organization_id} finished: "
            f"{summary.registered}/{summary.total_repositories} registered, {summary.failed} failed"
        )
        return summary

    async def _process_page(
        self,
        repositories: List[Repository],
        organization_id: str,
        webhook_config: OrganizationWebhookConfig,
        integration_id: Optional[str],
        summary: RegistrationSummary,
        deadline: Optional[float],
    ) -> bool:
        """Register a page of repositories; False when the deadline cut it short."""
        for start in range(0, len(repositories), self.concurrency):
            if deadline is not None and self._clock() >= deadline:
                return False
            batch = repositories[start:start + self.concurrency]
            outcomes = await asyncio.gather(*(
                self._register_one(repository, organization_id, webhook_config, integration_id)
                for repository in batch
            ))
            for outcome in outcomes:
                tally(summary, outcome)
        return True

    async def _register_one(
        self,
        repository: Repository,
        organization_id: str,
        webhook_config: OrganizationWebhookConfig,
        integration_id: Optional[str],
    ) -> RegistrationOutcome:
        try:
            webhook = await self.gateway.register_webhook(repository.id, organization_id, webhook_config, integration_id)
        except Exception as e:
            logger.error(f"Failed to register webhook for {repository.full_name or repository.id}: {describe(e)}")
            return Failed(repository, e)
        logger.info(f"Registered webhook for {repository.full_name or repository.id}")
        return Registered(repository, webhook)


class WebhookService:
    """Single-repository watch-hook operations behind the CRUD endpoints."""

    def __init__(
        self,
        gateway: UpstreamGateway,
        organization_id: str,
        callback_url: str,
        secret: Optional[str] = None,
    ):
        self.gateway = gateway
        self.organization_id = organization_id
        self.callback_url = callback_url
        self.secret = secret

    async def _require_repository(self, repository_id: str) -> None:
        if not await self.gateway.repository_exists(repository_id):
            logger.warning(f"Repository {repository_id} not found")
            raise NotFoundError("Repository not found", details={"repository_id": repository_id})

    async def register_for_repository(self, repository_id: str) -> WebhookRegistration:
        await self._require_repository(repository_id)

        existing = await self.gateway.list_webhooks(repository_id)
        if any(hook.target_url == self.callback_url for hook in existing):
            logger.warning(f"Webhook already exists for repository {repository_id}")
            raise ConflictError(
                "Webhook already exists for this repository",
                details={"repository_id": repository_id},
            )

        return await self.gateway.create_webhook(WebhookRegistrationRequest(
            repository_id=repository_id,
            organization_id=self.organization_id,
            target_url=self.callback_url,
            secret=self.secret,
        ))

    async def list_for_repository(self, repository_id: str) -> List[WebhookRegistration]:
        await self._require_repository(repository_id)
        return await self.gateway.list_webhooks(repository_id)

    async def delete_for_repository(self, repository_id: str, webhook_id: str) -> None:
        await self._require_repository(repository_id)
        await self.gateway.delete_webhook(repository_id, webhook_id)

    async def update_for_repository(self, repository_id: str, webhook_id: str, update: WebhookUpdate) -> WebhookRegistration:
        await self._require_repository(repository_id)
        return await self.gateway.update_webhook(repository_id, webhook_id, update)
