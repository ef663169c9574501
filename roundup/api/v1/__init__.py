"""API v1 routes."""

from fastapi import APIRouter

from roundup.api.v1 import count, health, iterations

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(iterations.router, prefix="/iterations", tags=["iterations"])
router.include_router(count.router, prefix="/count", tags=["count"])
