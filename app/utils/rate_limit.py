"""Fixed-window rate limiting for gatekeeper callers.

Callers depend only on ``RateLimitBackend.check``. The in-memory backend is
per process; a multi-process deployment swaps in ``RedisRateLimiter``.
"""

import math
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass

import redis.asyncio as redis

from app.config import RateLimitBackendName, Settings
from app.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RateDecision:
    """Outcome of one rate limit check."""

    allowed: bool
    limit: int
    remaining: int
    window_sec: int
    reset_in_sec: int

    @property
    def retry_after_sec(self) -> int:
        return max(1, self.reset_in_sec)


@dataclass
class RateState:
    window_start: float
    count: int


def make_rate_key(token: str, client_ip: str) -> str:
    """Rate limit key for a (credential, client IP) pair."""
    return f"{token}::{client_ip}"


class RateLimitBackend(ABC):
    """Contract for rate limit storage backends."""

    def __init__(self, max_requests: int, window_seconds: int):
        self.max_requests = max_requests
        self.window_seconds = max(1, window_seconds)

    @abstractmethod
    async def check(self, key: str) -> RateDecision:
        """Count one request against ``key`` and decide whether it is allowed."""

    async def reset(self, key: str) -> None:
        """Drop the counter for ``key``."""


class InMemoryRateLimiter(RateLimitBackend):
    """Fixed-window counter held in process memory.

    Best-effort: not linearizable across instances, and state is lost on
    restart. Expired windows are swept at most once per window length, so
    the table only holds keys seen in the last two windows.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: int,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(max_requests, window_seconds)
        self._clock = clock
        self._state: dict[str, RateState] = {}
        self._last_sweep = clock()

    @property
    def tracked_keys(self) -> int:
        return len(self._state)

    def _sweep(self, now: float) -> None:
        if now - self._last_sweep < self.window_seconds:
            return
        expired = [
            key for key, state in self._state.items() if now - state.window_start >= self.window_seconds
        ]
        for key in expired:
            del self._state[key]
        self._last_sweep = now
        if expired:
            logger.debug("Swept expired rate limit windows", count=len(expired))

    async def check(self, key: str) -> RateDecision:
        now = self._clock()
        self._sweep(now)
        state = self._state.get(key)

        if state is None or now - state.window_start >= self.window_seconds:
            self._state[key] = RateState(window_start=now, count=1)
            return RateDecision(
                allowed=True,
                limit=self.max_requests,
                remaining=max(0, self.max_requests - 1),
                window_sec=self.window_seconds,
                reset_in_sec=self.window_seconds,
            )

        reset_in = max(1, math.ceil(state.window_start + self.window_seconds - now))

        if state.count >= self.max_requests:
            return RateDecision(
                allowed=False,
                limit=self.max_requests,
                remaining=0,
                window_sec=self.window_seconds,
                reset_in_sec=reset_in,
            )

        state.count += 1
        return RateDecision(
            allowed=True,
            limit=self.max_requests,
            remaining=max(0, self.max_requests - state.count),
            window_sec=self.window_seconds,
            reset_in_sec=reset_in,
        )

    async def reset(self, key: str) -> None:
        self._state.pop(key, None)


class RedisRateLimiter(RateLimitBackend):
    """Fixed-window counter shared through Redis (INCR + EXPIRE NX)."""

    KEY_PREFIX = "ratelimit:"

    def __init__(self, client: redis.Redis, max_requests: int, window_seconds: int):
        super().__init__(max_requests, window_seconds)
        self._client = client

    async def check(self, key: str) -> RateDecision:
        redis_key = f"{self.KEY_PREFIX}{key}"
        try:
            pipe = self._client.pipeline()
            pipe.incr(redis_key)
            pipe.expire(redis_key, self.window_seconds, nx=True)
            pipe.ttl(redis_key)
            current_count, _, ttl = await pipe.execute()
        except redis.RedisError as e:
            logger.error("Rate limit check failed, allowing request", error=str(e))
            # Fail open: rate limiting is a soft defense
            return RateDecision(
                allowed=True,
                limit=self.max_requests,
                remaining=self.max_requests,
                window_sec=self.window_seconds,
                reset_in_sec=self.window_seconds,
            )

        reset_in = int(ttl) if isinstance(ttl, int) and ttl > 0 else self.window_seconds
        count = int(current_count)
        return RateDecision(
            allowed=count <= self.max_requests,
            limit=self.max_requests,
            remaining=max(0, self.max_requests - count),
            window_sec=self.window_seconds,
            reset_in_sec=reset_in,
        )

    async def reset(self, key: str) -> None:
        await self._client.delete(f"{self.KEY_PREFIX}{key}")

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except redis.RedisError as e:
            logger.warning("Redis ping failed", error=str(e))
            return False


def build_rate_limiter(settings: Settings) -> RateLimitBackend:
    """Create the rate limit backend selected in settings."""
    if settings.rate_limit_backend == RateLimitBackendName.REDIS:
        client = redis.from_url(settings.redis_url, decode_responses=True)
        logger.info("Using redis rate limit backend")
        return RedisRateLimiter(
            client,
            max_requests=settings.mcp_rate_limit_max,
            window_seconds=settings.mcp_rate_limit_window_sec,
        )
    return InMemoryRateLimiter(
        max_requests=settings.mcp_rate_limit_max,
        window_seconds=settings.mcp_rate_limit_window_sec,
    )
