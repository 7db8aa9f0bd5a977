"""GitHub REST client for template reads and Git Data API writes.

All calls authenticate with the server-held token; callers never supply
their own credential.
"""

from typing import Any

import httpx

from app.config import Settings
from app.core.logging import get_logger
from app.utils.exceptions import UpstreamAPIError

logger = get_logger(__name__)

API_VERSION = "2022-11-28"
_BODY_PREVIEW = 500


def auth_header_value(token: str) -> str:
    """Classic PATs (``ghp_``) use the ``token`` scheme, everything else ``Bearer``."""
    prefix = "token" if token.startswith("ghp_") else "Bearer"
    return f"{prefix} {token}"


class GitHubClient:
    """Thin async wrapper over the GitHub REST API.

    Every method performs exactly one HTTP call (no retries) and raises
    ``UpstreamAPIError`` on a non-success status or a transport failure.

    Example:
        ```python
        async with GitHubClient.from_settings(settings) as github:
            tip = await github.get_branch_tip("acme", "store-1", "main")
        ```
    """

    def __init__(
        self,
        token: str | None,
        api_url: str = "https://api.github.com",
        user_agent: str = "frontends-mcp-server",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": user_agent,
            "X-GitHub-Api-Version": API_VERSION,
        }
        if token:
            headers["Authorization"] = auth_header_value(token)
        self.has_token = bool(token)
        self._client = httpx.AsyncClient(
            base_url=api_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> "GitHubClient":
        return cls(
            token=settings.github_token,
            api_url=settings.github_api_url,
            user_agent=settings.github_user_agent,
            timeout=settings.http_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> "GitHubClient":
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
        params: dict[str, str] | None = None,
        allow_status: tuple[int, ...] = (),
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, url, json=json, params=params)
        except httpx.HTTPError as e:
            logger.error("GitHub request failed", method=method, url=url, error=str(e))
            raise UpstreamAPIError(f"GitHub request failed: {e}") from e

        if response.is_success or response.status_code in allow_status:
            return response

        body = response.text[:_BODY_PREVIEW]
        logger.warning(
            "GitHub API error",
            method=method,
            url=url,
            status_code=response.status_code,
        )
        raise UpstreamAPIError(
            f"GitHub API error: {response.status_code} for {method} {url}",
            status_code=response.status_code,
            body=body,
        )

    # ------------------------------------------------------------------
    # Contents (read-only)

    async def get_contents(self, owner: str, repo: str, path: str, ref: str) -> Any:
        """Directory listing (list) or file metadata (dict) for ``path`` at ``ref``."""
        response = await self._request(
            "GET", f"/repos/{owner}/{repo}/contents/{path}", params={"ref": ref}
        )
        return response.json()

    async def download(self, url: str) -> httpx.Response:
        """Fetch a raw ``download_url``."""
        return await self._request("GET", url)

    # ------------------------------------------------------------------
    # Repositories

    async def get_authenticated_user(self) -> dict[str, Any]:
        response = await self._request("GET", "/user")
        return response.json()

    async def repo_exists(self, owner: str, repo: str) -> bool:
        response = await self._request("GET", f"/repos/{owner}/{repo}", allow_status=(404,))
        return response.status_code != 404

    async def create_repo(
        self,
        owner: str,
        repo: str,
        *,
        private: bool,
        description: str,
        for_authenticated_user: bool,
    ) -> dict[str, Any]:
        """Create a repository, auto-initialized so the Git Data API works right away."""
        endpoint = "/user/repos" if for_authenticated_user else f"/orgs/{owner}/repos"
        response = await self._request(
            "POST",
            endpoint,
            json={
                "name": repo,
                "description": description,
                "private": private,
                "auto_init": True,
            },
        )
        return response.json()

    # ------------------------------------------------------------------
    # Git Data API

    async def get_branch_tip(self, owner: str, repo: str, branch: str) -> str | None:
        """Tip commit SHA of ``branch``, or None when the branch (or any history) is absent."""
        response = await self._request(
            "GET",
            f"/repos/{owner}/{repo}/git/ref/heads/{branch}",
            allow_status=(404, 409),
        )
        if response.status_code in (404, 409):
            return None
        return response.json()["object"]["sha"]

    async def get_commit(self, owner: str, repo: str, sha: str) -> dict[str, Any]:
        response = await self._request("GET", f"/repos/{owner}/{repo}/git/commits/{sha}")
        return response.json()

    async def create_blob(self, owner: str, repo: str, content: str, encoding: str) -> str:
        response = await self._request(
            "POST",
            f"/repos/{owner}/{repo}/git/blobs",
            json={"content": content, "encoding": encoding},
        )
        return response.json()["sha"]

    async def create_tree(
        self,
        owner: str,
        repo: str,
        entries: list[dict[str, str]],
        base_tree: str | None = None,
    ) -> str:
        body: dict[str, Any] = {"tree": entries}
        if base_tree:
            body["base_tree"] = base_tree
        response = await self._request("POST", f"/repos/{owner}/{repo}/git/trees", json=body)
        return response.json()["sha"]

    async def create_commit(
        self,
        owner: str,
        repo: str,
        message: str,
        tree: str,
        parents: list[str],
    ) -> dict[str, Any]:
        response = await self._request(
            "POST",
            f"/repos/{owner}/{repo}/git/commits",
            json={"message": message, "tree": tree, "parents": parents},
        )
        return response.json()

    async def update_ref(self, owner: str, repo: str, branch: str, sha: str) -> dict[str, Any]:
        """Fast-forward ``branch`` to ``sha``. Never forced."""
        response = await self._request(
            "PATCH",
            f"/repos/{owner}/{repo}/git/refs/heads/{branch}",
            json={"sha": sha, "force": False},
        )
        return response.json()

    async def create_ref(self, owner: str, repo: str, branch: str, sha: str) -> dict[str, Any]:
        response = await self._request(
            "POST",
            f"/repos/{owner}/{repo}/git/refs",
            json={"ref": f"refs/heads/{branch}", "sha": sha},
        )
        return response.json()
