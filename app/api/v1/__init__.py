"""API v1 routes."""

from fastapi import APIRouter

from app.api.v1 import tools

api_router = APIRouter()

# Include sub-routers
api_router.include_router(tools.router, prefix="/tools", tags=["tools"])
