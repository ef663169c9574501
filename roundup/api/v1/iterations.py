"""Read-only access to iteration outputs: listing, run summaries and ticket documents."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import PlainTextResponse

from roundup.core.config import Settings, get_settings
from roundup.schemas.report import IterationInfo, RunSummary
from roundup.services.history import ticket_filename
from roundup.services.iterations import iteration_dir, list_iterations, read_summary

router = APIRouter()


@router.get("/", response_model=list[IterationInfo])
def get_iterations(settings: Annotated[Settings, Depends(get_settings)]) -> list[IterationInfo]:
    """List iteration directories, ascending, with their finalization state."""
    return list_iterations(settings.ITERATIONS_DIR)


@router.get("/{number}/summary", response_model=RunSummary)
def get_summary(
    number: int,
    settings: Annotated[Settings, Depends(get_settings)],
) -> RunSummary:
    """Run summary of a finalized iteration; 404 when missing or not finalized."""
    summary = read_summary(iteration_dir(settings.ITERATIONS_DIR, number))
    if summary is None:
        raise HTTPException(status_code=404, detail=f"Iteration {number} is not finalized.")
    return summary


@router.get("/{number}/tickets/{identity}", response_class=PlainTextResponse)
def get_ticket(
    number: int,
    identity: str,
    settings: Annotated[Settings, Depends(get_settings)],
) -> PlainTextResponse:
    """Markdown of one ticket document or closure notice."""
    path = iteration_dir(settings.ITERATIONS_DIR, number) / ticket_filename(identity)
    if not path.is_file():
        raise HTTPException(status_code=404, detail=f"No ticket {identity} in iteration {number}.")
    return PlainTextResponse(path.read_text(encoding="utf-8"), media_type="text/markdown")
