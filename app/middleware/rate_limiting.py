"""
Inbound request rate limiting middleware.
"""

import asyncio
import time
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import redis.asyncio as redis
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse
from loguru import logger


@dataclass
class RateLimitConfig:
    """Rate limit configuration."""
    requests: int
    window_seconds: int


@dataclass
class RateLimitResult:
    """Rate limit check result."""
    allowed: bool
    remaining: int
    reset_time: int
    retry_after: Optional[int] = None
    current_usage: int = 0
    limit: int = 0


def _result(config: RateLimitConfig, current_time: float, oldest: Optional[float], count: int) -> RateLimitResult:
    allowed = count <= config.requests
    reset_time = int((oldest if oldest is not None else current_time) + config.window_seconds)
    return RateLimitResult(
        allowed=allowed,
        remaining=max(0, config.requests - count),
        reset_time=reset_time,
        retry_after=None if allowed else max(1, reset_time - int(current_time)),
        current_usage=count,
        limit=config.requests,
    )


class RedisRateLimiter:
    """Sliding window limiter on a Redis sorted set, shared across replicas."""

    def __init__(self, redis_client: redis.Redis):
        self.redis = redis_client

    async def check_rate_limit(
        self,
        key: str,
        config: RateLimitConfig,
        current_time: Optional[float] = None
    ) -> RateLimitResult:
        if current_time is None:
            current_time = time.time()
        redis_key = f"rate_limit:{key}"
        window_start = current_time - config.window_seconds
        member = f"{current_time}:{uuid.uuid4().hex[:8]}"

        pipe = self.redis.pipeline()
        pipe.zremrangebyscore(redis_key, 0, window_start)
        pipe.zadd(redis_key, {member: current_time})
        pipe.zcard(redis_key)
        pipe.zrange(redis_key, 0, 0, withscores=True)
        pipe.expire(redis_key, config.window_seconds)
        _, _, count, oldest, _ = await pipe.execute()

        oldest_score = oldest[0][1] if oldest else None
        result = _result(config, current_time, oldest_score, count)
        if not result.allowed:
            # rejected requests do not occupy the window
            await self.redis.zrem(redis_key, member)
        return result


class InMemoryRateLimiter:
    """Per-process sliding window limiter."""

    def __init__(self):
        self.storage: Dict[str, List[float]] = {}
        self.lock = asyncio.Lock()
        self._last_sweep = 0.0

    async def check_rate_limit(
        self,
        key: str,
        config: RateLimitConfig,
        current_time: Optional[float] = None
    ) -> RateLimitResult:
        if current_time is None:
            current_time = time.time()
        window_start = current_time - config.window_seconds

        async with self.lock:
            self._sweep(window_start, current_time, config.window_seconds)

            requests = [t for t in self.storage.get(key, []) if t > window_start]
            result = _result(config, current_time, requests[0] if requests else current_time, len(requests) + 1)
            if result.allowed:
                requests.append(current_time)
            self.storage[key] = requests
            return result

    def _sweep(self, window_start: float, current_time: float, window_seconds: int) -> None:
        """Drop keys whose newest request has left the window, at most once per window."""
        if current_time - self._last_sweep < window_seconds:
            return
        self._last_sweep = current_time
        for key in [k for k, times in self.storage.items() if not times or times[-1] <= window_start]:
            del self.storage[key]


class RateLimitMiddleware(BaseHTTPMiddleware):
    """FastAPI middleware for per-client rate limiting."""

    def __init__(
        self,
        app,
        config: RateLimitConfig,
        redis_url: Optional[str] = None,
        exempt_paths: Sequence[str] = ("/health",),
    ):
        super().__init__(app)
        self.config = config
        self.exempt_paths = tuple(exempt_paths)

        if redis_url:
            self.rate_limiter = RedisRateLimiter(redis.from_url(redis_url, decode_responses=True))
        else:
            self.rate_limiter = InMemoryRateLimiter()
            logger.info("Using in-memory rate limiter")

    async def dispatch(self, request: Request, call_next):
        """Process request through rate limiting middleware."""
        if request.url.path.startswith(self.exempt_paths):
            return await call_next(request)

        key = self._get_rate_limit_key(request)
        try:
            result = await self.rate_limiter.check_rate_limit(key, self.config)
        except Exception as e:
            # Fail open - allow request if rate limiting fails
            logger.error(f"Rate limiting middleware error: {e}")
            return await call_next(request)

        headers = {
            "X-RateLimit-Limit": str(result.limit),
            "X-RateLimit-Remaining": str(result.remaining),
            "X-RateLimit-Reset": str(result.reset_time),
        }

        if not result.allowed:
            logger.warning(f"Rate limit exceeded for key: {key}")
            return JSONResponse(
                status_code=429,
                content={
                    "message": "Too many requests, please try again later.",
                    "error_code": "RATE_LIMIT_EXCEEDED",
                    "details": {"retry_after": result.retry_after, "limit": result.limit},
                    "type": "listener_error",
                },
                headers={**headers, "Retry-After": str(result.retry_after)},
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response

    def _get_rate_limit_key(self, request: Request) -> str:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return f"ip:{forwarded_for.split(',')[0].strip()}"
        client_ip = request.client.host if request.client else "unknown"
        return f"ip:{client_ip}"
