"""Health check endpoint with an iterations directory check."""

from typing import Annotated

from fastapi import APIRouter, Depends

from roundup.core.config import Settings, get_settings
from roundup.schemas.health import HealthResponse

router = APIRouter()


@router.get("/", response_model=HealthResponse)
def get_health(settings: Annotated[Settings, Depends(get_settings)]) -> HealthResponse:
    """
    Return service health status and whether ITERATIONS_DIR exists.
    Used by load balancers and monitoring.
    """
    return HealthResponse(
        status="ok",
        environment=settings.APP_ENV,
        iterations_dir="present" if settings.ITERATIONS_DIR.is_dir() else "missing",
    )
