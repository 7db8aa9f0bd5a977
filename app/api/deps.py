"""Shared route dependencies."""

from __future__ import annotations

from collections.abc import AsyncGenerator

from fastapi import Depends, HTTPException, Request, status

from app.config import get_settings
from app.core.auth import AuthContext, Gatekeeper
from services.provisioning import GitHubClient, StorefrontPipeline, VercelClient


def get_gatekeeper(request: Request) -> Gatekeeper:
    """The application's gatekeeper, shared with the gatekeeper middleware."""
    return request.app.state.gatekeeper


def get_auth_context(request: Request) -> AuthContext:
    """AuthContext set by the gatekeeper middleware.

    Raises 401 if the request never passed the gatekeeper.
    """
    auth = getattr(request.state, "auth", None)
    if auth is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return auth


async def get_github_client() -> AsyncGenerator[GitHubClient, None]:
    """Per-request GitHub client, closed when the response is sent."""
    async with GitHubClient.from_settings(get_settings()) as github:
        yield github


async def get_vercel_client() -> AsyncGenerator[VercelClient, None]:
    """Per-request Vercel client, closed when the response is sent."""
    async with VercelClient.from_settings(get_settings()) as vercel:
        yield vercel


def get_pipeline(
    github: GitHubClient = Depends(get_github_client),
    vercel: VercelClient = Depends(get_vercel_client),
    gatekeeper: Gatekeeper = Depends(get_gatekeeper),
) -> StorefrontPipeline:
    return StorefrontPipeline(github, vercel, get_settings(), gatekeeper)
