"""Readiness checks with caching for frequent probes."""

from datetime import datetime, timedelta

from app.config import RateLimitBackendName, Settings
from app.core.logging import get_logger
from app.utils.rate_limit import RateLimitBackend, RedisRateLimiter

logger = get_logger(__name__)


def configuration_checks(settings: Settings) -> dict[str, str]:
    """Report which required settings are present without exposing their values."""
    return {
        "auth_token": "ok" if settings.mcp_auth_token else "missing",
        "allowed_owners": "ok" if settings.allowed_owners else "missing",
        "github_token": "ok" if settings.github_token else "missing",
        "vercel_token": "ok" if settings.vercel_token else "missing",
    }


class HealthChecker:
    """
    Readiness checker with caching for the rate limit store.

    Orchestrators may probe readiness every few seconds; the redis ping
    result is cached so probes do not add load to the rate limit store.
    """

    def __init__(self, cache_ttl_seconds: int = 30):
        """
        Initialize health checker.

        Args:
            cache_ttl_seconds: Time-to-live for cached ping results
        """
        self._last_check: datetime | None = None
        self._last_result: bool = False
        self._cache_ttl = timedelta(seconds=cache_ttl_seconds)

    async def check_rate_limit_store(self, backend: RateLimitBackend) -> bool:
        """
        Check the rate limit backend.

        The in-memory backend is always ready; the redis backend must answer
        a ping.
        """
        if not isinstance(backend, RedisRateLimiter):
            return True

        if self._last_check and datetime.now() - self._last_check < self._cache_ttl:
            logger.debug("Using cached rate limit store check", healthy=self._last_result)
            return self._last_result

        self._last_result = await backend.ping()
        self._last_check = datetime.now()
        if not self._last_result:
            logger.warning("Rate limit store is not reachable")
        return self._last_result

    async def readiness(self, settings: Settings, backend: RateLimitBackend) -> tuple[bool, dict]:
        """Overall readiness and the individual checks."""
        checks: dict[str, object] = {"config": configuration_checks(settings)}
        ready = all(value == "ok" for value in checks["config"].values())

        if settings.rate_limit_backend == RateLimitBackendName.REDIS:
            store_ok = await self.check_rate_limit_store(backend)
            checks["rate_limit_store"] = "ok" if store_ok else "failed"
            ready = ready and store_ok
        else:
            checks["rate_limit_store"] = "memory"

        return ready, checks

    def reset_cache(self) -> None:
        """Reset cached check result (useful for testing)."""
        self._last_check = None
        self._last_result = False


# Global health checker instance
health_checker = HealthChecker(cache_ttl_seconds=30)
