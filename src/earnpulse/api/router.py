"""Top-level API router. Mounts all domain routers under /api/v1."""

from fastapi import APIRouter

from earnpulse.api.routes import live, system

api_router = APIRouter()
api_router.include_router(live.router, prefix="/earnings/live", tags=["live"])
api_router.include_router(system.router, prefix="/system", tags=["system"])
