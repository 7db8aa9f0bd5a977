"""FastAPI application serving the storefront provisioning tools."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from app.api.v1 import api_router
from app.config import Settings, settings
from app.core.auth import Gatekeeper
from app.core.health import configuration_checks, health_checker
from app.core.logging import configure_logging, get_logger
from app.middleware import GatekeeperMiddleware, RequestIDMiddleware
from app.middleware.auth import gatekeeper_error_response
from app.utils.exceptions import GatekeeperError

configure_logging(log_level=settings.log_level.value, json_logs=settings.json_logs)
logger = get_logger(__name__)


def log_configuration_gaps(config: Settings) -> None:
    """Warn at startup about settings that will make tool calls fail."""
    missing = [name for name, state in configuration_checks(config).items() if state != "ok"]
    if missing:
        logger.warning("Configuration incomplete; affected tools will fail closed", missing=missing)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info(
        "Storefront factory starting",
        version=settings.app_version,
        environment=settings.environment,
        template_repo=f"{settings.template_repo_owner}/{settings.template_repo_name}",
        rate_limit_backend=settings.rate_limit_backend.value,
    )
    log_configuration_gaps(settings)
    yield
    logger.info("Storefront factory stopped")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="White-label storefront provisioning for Shopware Frontends",
    lifespan=lifespan,
    docs_url=f"{settings.api_prefix}/docs",
    redoc_url=f"{settings.api_prefix}/redoc",
    openapi_url=f"{settings.api_prefix}/openapi.json",
)

gatekeeper = Gatekeeper()
app.state.gatekeeper = gatekeeper

# Starlette wraps middleware in reverse order: request ids are assigned
# before the gatekeeper runs so denials carry one.
app.add_middleware(GatekeeperMiddleware, gatekeeper=gatekeeper)
app.add_middleware(RequestIDMiddleware, header_name=settings.request_id_header)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.debug else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=settings.api_prefix)


@app.exception_handler(GatekeeperError)
async def gatekeeper_error_handler(request: Request, exc: GatekeeperError) -> JSONResponse:
    """Denials raised inside tool handlers (owner allowlist, missing upstream tokens)."""
    logger.warning(
        "Tool call denied",
        status_code=exc.status_code,
        reason=exc.reason,
        path=request.url.path,
    )
    return gatekeeper_error_response(exc, getattr(request.state, "request_id", None))


@app.get("/health")
@app.get("/healthz")
async def health_check() -> JSONResponse:
    """Liveness probe. Never touches GitHub, Vercel or redis."""
    return JSONResponse(
        content={
            "status": "healthy",
            "service": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
        }
    )


@app.get("/readyz")
async def readiness_check() -> JSONResponse:
    """Readiness probe: secrets present and the rate limit store reachable."""
    ready, checks = await health_checker.readiness(settings, gatekeeper.rate_limiter)
    return JSONResponse(
        status_code=200 if ready else 503,
        content={
            "status": "ready" if ready else "not_ready",
            "service": settings.app_name,
            "checks": checks,
        },
    )


@app.get("/metrics")
async def metrics() -> Response:
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/")
async def root() -> JSONResponse:
    return JSONResponse(
        content={
            "message": f"Welcome to {settings.app_name}",
            "version": settings.app_version,
            "description": "Creates branded Shopware Frontends storefronts on GitHub and Vercel",
            "tools": f"{settings.api_prefix}/tools",
            "docs": f"{settings.api_prefix}/docs",
            "auth": f"Authorization: Bearer <token> or {settings.auth_fallback_header}: <token>",
        }
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level=settings.log_level.value.lower(),
    )
