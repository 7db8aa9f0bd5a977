"""Correlation ids for tool calls.

Every request gets an id that is echoed back in the response header, bound
to the logging context, and passed through to audit events and tool
responses so a storefront run can be traced from the caller to GitHub and
Vercel.
"""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.datastructures import QueryParams
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from app.core.auth import get_client_ip
from app.core.logging import (
    REDACTED,
    SENSITIVE_KEYS,
    bind_request_context,
    clear_request_context,
    get_context_logger,
)

# Set by Vercel on every request it routes to the function
PLATFORM_ID_HEADER = "X-Vercel-Id"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Assign a request id and bind it to the logging context.

    The id is taken from the caller's ``X-Request-ID`` header, then from the
    hosting platform's ``X-Vercel-Id``, and generated as a UUID4 otherwise.
    """

    def __init__(self, app: ASGIApp, header_name: str = "X-Request-ID") -> None:
        super().__init__(app)
        self.header_name = header_name

    def _sanitize_query_params(self, query_params: QueryParams) -> str:
        """Render query parameters for the access log with credentials masked."""
        return str(
            {
                name: REDACTED if any(s in name.lower() for s in SENSITIVE_KEYS) else value
                for name, value in query_params.items()
            }
        )

    def _resolve_request_id(self, request: Request) -> str:
        for header in (self.header_name, PLATFORM_ID_HEADER):
            value = request.headers.get(header)
            if value:
                return value
        return str(uuid.uuid4())

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = self._resolve_request_id(request)
        request.state.request_id = request_id
        bind_request_context(
            request_id=request_id,
            client_ip=get_client_ip(request.headers, request.client.host if request.client else None),
        )
        logger = get_context_logger(__name__)
        logger.info(
            "Request received",
            method=request.method,
            path=request.url.path,
            query_params=self._sanitize_query_params(request.query_params),
        )

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "Request failed",
                path=request.url.path,
                error=str(exc),
                error_type=type(exc).__name__,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
            )
            raise
        finally:
            clear_request_context()

        response.headers[self.header_name] = request_id
        logger.info(
            "Request finished",
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return response
