"""Middleware for cross-cutting concerns."""

from app.middleware.auth import GatekeeperMiddleware
from app.middleware.request_id import RequestIDMiddleware

__all__ = ["GatekeeperMiddleware", "RequestIDMiddleware"]
