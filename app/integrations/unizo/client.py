"""
Resilient HTTP client for calls to the Unizo platform.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
from loguru import logger

from .exceptions import (
    UpstreamConnectionError,
    UpstreamError,
    UpstreamTimeoutError,
    upstream_error_from_response,
)
from .models import UnizoConfig
from .retry import RetryPolicy, RetryState


Sleep = Callable[[float], Awaitable[Any]]


def decode_body(response: httpx.Response) -> Any:
    """JSON body when there is one, raw text otherwise."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class ResilientClient:
    """
    Wraps a single ``send`` primitive with failure classification and retry.

    Statuses in the policy's retryable set and transport failures (timeouts,
    resets, DNS) are retried with exponential backoff; any other error status
    is raised immediately.
    """

    def __init__(
        self,
        config: UnizoConfig,
        retry_policy: Optional[RetryPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        """Initialize the client."""
        self.config = config
        self.retry_policy = retry_policy or RetryPolicy(
            max_retries=config.max_retries,
            base_delay=config.retry_base_delay,
        )
        self._sleep = sleep

        self.client = httpx.AsyncClient(
            base_url=config.api_url.rstrip("/"),
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
                "User-Agent": "SCMEventListener/1.0",
            },
            timeout=config.request_timeout,
            transport=transport,
        )

        logger.info(f"Initialized Unizo client for {config.api_url}")

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    def build_request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Request:
        return self.client.build_request(method, path, params=params, json=json, headers=headers)

    async def request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Build and send a request relative to the API base URL."""
        return await self.send(self.build_request(method, path, **kwargs))

    async def send(self, request: httpx.Request) -> httpx.Response:
        """
        Send a request, retrying transient failures.

        Returns:
            The first response with a status below 400

        Raises:
            UpstreamError: terminal status, or the last failure once retries
                are exhausted
        """
        request.extensions.setdefault("timeout", self.client.timeout.as_dict())
        state = RetryState()

        while True:
            try:
                logger.debug(f"{request.method} {request.url} (attempt {state.attempt + 1})")
                response = await self.client.send(request)
            except httpx.TransportError as e:
                error = self._transport_error(request, e)
                state.record(error=error)
                if not self.retry_policy.should_retry(state):
                    logger.error(f"{request.method} {request.url.path} failed after {state.attempt + 1} attempts: {error}")
                    raise error from e
            else:
                logger.debug(f"{request.method} {request.url.path} -> {response.status_code}")
                if response.status_code < 400:
                    return response

                error = upstream_error_from_response(response.status_code, decode_body(response))
                state.record(status=response.status_code, error=error)
                if not self.retry_policy.is_retryable_status(response.status_code):
                    logger.error(f"{request.method} {request.url.path} failed: {response.status_code}")
                    raise error
                if not self.retry_policy.should_retry(state):
                    logger.error(
                        f"{request.method} {request.url.path} still failing with "
                        f"{response.status_code} after {state.attempt + 1} attempts"
                    )
                    raise error

            state.attempt += 1
            delay = self.retry_policy.delay_for(state.attempt)
            logger.info(
                f"Retrying {request.method} {request.url.path} (attempt {state.attempt}/"
                f"{self.retry_policy.max_retries}) after {delay}s, last status: {state.last_status}"
            )
            await self._sleep(delay)

    def _transport_error(self, request: httpx.Request, error: httpx.TransportError) -> UpstreamError:
        if isinstance(error, httpx.TimeoutException):
            return UpstreamTimeoutError(
                f"Request to {request.url.path} timed out: {error}",
                timeout=self.config.request_timeout,
            )
        return UpstreamConnectionError(f"Connection to {request.url.host} failed: {error}")
