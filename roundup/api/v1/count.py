"""Open ticket counts across finalized iterations."""

from typing import Annotated

from fastapi import APIRouter, Depends

from roundup.core.config import Settings, get_settings
from roundup.schemas.report import Counts
from roundup.services.count import count_open

router = APIRouter()


@router.get("/", response_model=Counts)
def get_count(settings: Annotated[Settings, Depends(get_settings)]) -> Counts:
    """Per-iteration counts; an unreadable ticket (HistoryCorrupt) becomes a 500 via the app handler."""
    return count_open(settings.ITERATIONS_DIR)
