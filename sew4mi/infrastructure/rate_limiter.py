"""Fixed-window rate limiting for milestone reviews.

Two backends share the same ``check_and_increment`` contract:

- InMemoryRateLimiter: per-process counters, used by default and in tests
- RedisRateLimiter: shared counters for multi-instance deployments

Both fail closed: if the counter cannot be read the request is denied.
"""

import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable

import redis.asyncio as redis
import structlog

from sew4mi.infrastructure.config import settings

logger = structlog.get_logger()


@dataclass
class _Window:
    count: int
    reset_time: float


class InMemoryRateLimiter:
    """Per-process fixed-window limiter.

    Attributes:
        max_requests: Requests allowed per window.
        window_seconds: Window length.
    """

    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: int = 60,
        time_func: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._time = time_func
        self._windows: dict[str, _Window] = {}
        self._next_prune = 0.0
        self._lock = Lock()

    async def check_and_increment(self, key: str) -> bool:
        current_time = self._time()

        with self._lock:
            if current_time >= self._next_prune:
                self._prune(current_time)

            window = self._windows.get(key)
            if window is None or current_time >= window.reset_time:
                window = _Window(count=0, reset_time=current_time + self.window_seconds)
                self._windows[key] = window

            if window.count >= self.max_requests:
                logger.warning(
                    "Rate limit exceeded",
                    key=key,
                    count=window.count,
                    limit=self.max_requests,
                )
                return False

            window.count += 1
            return True

    def _prune(self, current_time: float) -> None:
        """Drop expired windows, at most once per window length."""
        expired = [k for k, w in self._windows.items() if current_time >= w.reset_time]
        for key in expired:
            del self._windows[key]
        self._next_prune = current_time + self.window_seconds

    def reset(self) -> None:
        """Drop all counters."""
        with self._lock:
            self._windows.clear()


class RedisRateLimiter:
    """Fixed-window limiter backed by Redis ``INCR`` + ``EXPIRE NX``.

    The key expires one window after its first request, so the counter
    resets on its own.
    """

    def __init__(
        self,
        client: redis.Redis,
        max_requests: int = 10,
        window_seconds: int = 60,
        key_prefix: str = "rate_limit:milestone_review",
    ) -> None:
        self._client = client
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.key_prefix = key_prefix

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}:{key}"

    async def check_and_increment(self, key: str) -> bool:
        redis_key = self._key(key)
        try:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.incr(redis_key)
                pipe.expire(redis_key, self.window_seconds, nx=True)
                count, _ = await pipe.execute()
        except redis.RedisError as e:
            logger.error(
                "Rate limit check failed, denying request",
                key=key,
                error=str(e),
            )
            return False

        if int(count) > self.max_requests:
            logger.warning(
                "Rate limit exceeded",
                key=key,
                count=int(count),
                limit=self.max_requests,
            )
            return False
        return True


# ============================================================================
# Limiter Factory
# ============================================================================


_rate_limiter: InMemoryRateLimiter | RedisRateLimiter | None = None


def get_rate_limiter() -> InMemoryRateLimiter | RedisRateLimiter:
    """Get rate limiter singleton, Redis-backed when ``redis_url`` is set."""
    global _rate_limiter
    if _rate_limiter is None:
        if settings.redis_url:
            _rate_limiter = RedisRateLimiter(
                client=redis.Redis.from_url(settings.redis_url, decode_responses=True),
                max_requests=settings.rate_limit_max_requests,
                window_seconds=settings.rate_limit_window_seconds,
            )
        else:
            _rate_limiter = InMemoryRateLimiter(
                max_requests=settings.rate_limit_max_requests,
                window_seconds=settings.rate_limit_window_seconds,
            )
    return _rate_limiter


def reset_rate_limiter() -> None:
    """Reset rate limiter (for testing)."""
    global _rate_limiter
    _rate_limiter = None
