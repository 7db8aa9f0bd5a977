"""Pytest configuration and fixtures for storefront-factory tests.

This module provides centralized test fixtures for:
- Settings with test secrets and allowlist (patched on the global instance)
- In-memory GitHub and Vercel APIs (httpx.MockTransport)
- Clients and services wired to those fakes
- The FastAPI app with per-request clients overridden
"""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.api.deps import get_github_client, get_vercel_client
from app.config import RateLimitBackendName, Settings, settings as app_settings
from app.core.health import health_checker
from app.main import app, gatekeeper
from services.provisioning import GitHubClient, VercelClient
from tests.fakes import FakeGitHub, FakeVercel

AUTH_TOKEN = "test-shared-secret"


# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (full app, faked upstreams)")
    config.addinivalue_line("markers", "asyncio: Async tests")


# ============================================================================
# Settings Fixtures
# ============================================================================
# Note: Event loop is automatically managed by pytest-asyncio with asyncio_mode = "auto"


@pytest.fixture
def settings(monkeypatch) -> Settings:
    """
    Global settings patched with test values.

    Patches the process-wide instance so middleware, dependencies and
    services all see the same configuration; monkeypatch restores it.
    """
    values = {
        "mcp_auth_token": AUTH_TOKEN,
        "mcp_allowed_owners": "acme, storefront-labs",
        "mcp_rate_limit_max": 100,
        "mcp_rate_limit_window_sec": 60,
        "rate_limit_backend": RateLimitBackendName.MEMORY,
        "github_token": "ghp_testtoken",
        "vercel_token": "vercel-test-token",
        "vercel_team_id": None,
    }
    for name, value in values.items():
        monkeypatch.setattr(app_settings, name, value)
    return app_settings


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {AUTH_TOKEN}"}


# ============================================================================
# Upstream Fakes and Clients
# ============================================================================


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def fake_vercel() -> FakeVercel:
    return FakeVercel()


@pytest_asyncio.fixture
async def github(fake_github, settings) -> AsyncGenerator[GitHubClient, None]:
    """GitHubClient talking to the in-memory GitHub."""
    async with GitHubClient.from_settings(settings, transport=fake_github.transport()) as client:
        yield client


@pytest_asyncio.fixture
async def vercel(fake_vercel, settings) -> AsyncGenerator[VercelClient, None]:
    """VercelClient talking to the in-memory Vercel."""
    async with VercelClient.from_settings(settings, transport=fake_vercel.transport()) as client:
        yield client


# ============================================================================
# Application Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def client(settings, fake_github, fake_vercel, monkeypatch) -> AsyncGenerator[AsyncClient, None]:
    """
    Async HTTP client for the app, with upstream APIs faked.

    The gatekeeper gets a fresh rate limiter built from the patched settings.
    """

    async def github_override() -> AsyncGenerator[GitHubClient, None]:
        async with GitHubClient.from_settings(settings, transport=fake_github.transport()) as gh:
            yield gh

    async def vercel_override() -> AsyncGenerator[VercelClient, None]:
        async with VercelClient.from_settings(settings, transport=fake_vercel.transport()) as vc:
            yield vc

    monkeypatch.setattr(gatekeeper, "_rate_limiter", None)
    health_checker.reset_cache()
    app.dependency_overrides[get_github_client] = github_override
    app.dependency_overrides[get_vercel_client] = vercel_override
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()
