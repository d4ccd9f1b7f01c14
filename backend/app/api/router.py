"""Master API router: mounts all endpoint routers."""

from __future__ import annotations

from fastapi import APIRouter

from app.api import corrections, health, overlay

api_router = APIRouter(prefix="/api")

api_router.include_router(health.router)
api_router.include_router(overlay.router)
api_router.include_router(corrections.router)
