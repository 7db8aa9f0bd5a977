"""Vercel REST client: projects and deployments."""

from typing import Any

import httpx

from app.config import Settings
from app.core.logging import get_logger
from app.utils.exceptions import UpstreamAPIError

logger = get_logger(__name__)

_BODY_PREVIEW = 500


class VercelClient:
    """Async wrapper over the Vercel REST API.

    One HTTP call per method, no retries. Every call is scoped to
    ``team_id`` when one is configured.
    """

    def __init__(
        self,
        token: str | None,
        api_url: str = "https://api.vercel.com",
        team_id: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.has_token = bool(token)
        self.team_id = team_id
        self._client = httpx.AsyncClient(
            base_url=api_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> "VercelClient":
        return cls(
            token=settings.vercel_token,
            api_url=settings.vercel_api_url,
            team_id=settings.vercel_team_id,
            timeout=settings.http_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "VercelClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        url: str,
        *,
        json: dict[str, Any] | None = None,
        allow_status: tuple[int, ...] = (),
    ) -> httpx.Response:
        params = {"teamId": self.team_id} if self.team_id else None
        try:
            response = await self._client.request(method, url, json=json, params=params)
        except httpx.HTTPError as e:
            logger.error("Vercel request failed", method=method, url=url, error=str(e))
            raise UpstreamAPIError(f"Vercel request failed: {e}") from e

        if response.is_success or response.status_code in allow_status:
            return response

        logger.warning("Vercel API error", method=method, url=url, status_code=response.status_code)
        raise UpstreamAPIError(
            f"Vercel API error: {response.status_code} for {method} {url}",
            status_code=response.status_code,
            body=response.text[:_BODY_PREVIEW],
        )

    async def get_project(self, name: str) -> dict[str, Any] | None:
        """Project by name, or None when it does not exist."""
        response = await self._request("GET", f"/v9/projects/{name}", allow_status=(404,))
        if response.status_code == 404:
            return None
        return response.json()

    async def create_project(
        self,
        name: str,
        framework: str,
        git_repository: dict[str, str] | None = None,
        environment_variables: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"name": name, "framework": framework}
        if git_repository:
            body["gitRepository"] = git_repository
        if environment_variables:
            body["environmentVariables"] = environment_variables
        response = await self._request("POST", "/v10/projects", json=body)
        return response.json()

    async def trigger_deployment(
        self, project_id: str, name: str, repo: str, ref: str
    ) -> dict[str, Any]:
        """Start a deployment of ``repo`` at ``ref`` for the project."""
        response = await self._request(
            "POST",
            "/v13/deployments",
            json={
                "name": name,
                "project": project_id,
                "gitSource": {"type": "github", "repo": repo, "ref": ref},
            },
        )
        return response.json()

    async def get_deployment(self, deployment_id: str) -> dict[str, Any]:
        response = await self._request("GET", f"/v13/deployments/{deployment_id}")
        return response.json()
