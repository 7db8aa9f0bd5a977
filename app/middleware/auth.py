"""Gatekeeper middleware.

Runs the gatekeeper for every gated path before the request reaches a route:
1. Authenticates the shared-secret credential (Bearer or X-MCP-Key)
2. Applies the per (credential, client IP) fixed-window rate limit
3. Audits the decision
4. Stores the AuthContext in request.state for handlers

Returns 401 for missing/invalid credentials, 429 with Retry-After when the
quota is exhausted, and 500 when the server is missing its secret.
Owner allowlisting happens later, in the mutating tool handlers.
"""

from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from app.config import settings
from app.core.auth import Gatekeeper
from app.core.logging import get_logger
from app.utils.exceptions import GatekeeperError, RateLimited, Unauthorized

logger = get_logger(__name__)


DOCS_PATHS = {
    f"{settings.api_prefix}/docs",
    f"{settings.api_prefix}/redoc",
    f"{settings.api_prefix}/openapi.json",
}


def is_public_path(path: str) -> bool:
    """
    Check if a path bypasses the gatekeeper.

    Only paths under the API prefix are gated; API docs are public.

    Args:
        path: Request path

    Returns:
        bool: True if path is public, False otherwise
    """
    normalized = path.rstrip("/") or "/"
    if normalized in DOCS_PATHS:
        return True
    return not (normalized == settings.api_prefix or normalized.startswith(f"{settings.api_prefix}/"))


def gatekeeper_error_response(exc: GatekeeperError, request_id: str | None) -> JSONResponse:
    """Build the HTTP response for a gatekeeper denial."""
    headers: dict[str, str] = {}
    content: dict[str, object] = {"detail": exc.message, "request_id": request_id}

    if isinstance(exc, RateLimited):
        headers["Retry-After"] = str(exc.retry_after)
        content["retry_after"] = exc.retry_after
    elif isinstance(exc, Unauthorized):
        headers["WWW-Authenticate"] = "Bearer"

    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


class GatekeeperMiddleware(BaseHTTPMiddleware):
    """
    Gatekeeper middleware.

    Admits gated requests through the Gatekeeper and sets
    ``request.state.auth`` for route handlers.
    """

    def __init__(self, app: ASGIApp, gatekeeper: Gatekeeper):
        super().__init__(app)
        self.gatekeeper = gatekeeper

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        """
        Process request through the gatekeeper.

        Args:
            request: Incoming request
            call_next: Next middleware/handler in chain

        Returns:
            Response: Response from handler or denial response
        """
        if is_public_path(request.url.path):
            logger.debug("Public endpoint, skipping gatekeeper", path=request.url.path)
            return await call_next(request)

        request_id = getattr(request.state, "request_id", None)

        try:
            auth = await self.gatekeeper.admit(
                headers=request.headers,
                request_id=request_id,
                peer_host=request.client.host if request.client else None,
                path=request.url.path,
                method=request.method,
            )
        except GatekeeperError as exc:
            logger.warning(
                "Request denied",
                status_code=exc.status_code,
                reason=exc.reason,
                path=request.url.path,
            )
            return gatekeeper_error_response(exc, request_id)

        request.state.auth = auth

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(auth.rate.limit)
        response.headers["X-RateLimit-Remaining"] = str(auth.rate.remaining)
        response.headers["X-RateLimit-Reset"] = str(auth.rate.reset_in_sec)
        return response
