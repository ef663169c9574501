"""Pydantic schemas for ticket decisions, rendered ticket documents and lifecycle history."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

ClosureReason = Literal["fixed", "whitelisted"]

TITLE_MAX_LENGTH = 255


class LifecycleStatus(str, Enum):
    """A ticket's state relative to the previous iteration."""

    NEW = "NEW"
    CARRIED = "CARRIED"
    RESOLVED = "RESOLVED"


class CveEntry(BaseModel):
    """One advisory listed on a ticket, with the channels it was observed in."""

    model_config = {"frozen": True}

    cve_id: str = Field(..., min_length=1)
    score: float | None = Field(default=None, ge=0, le=10)
    channels: tuple[str, ...] = Field(
        ...,
        min_length=1,
        description="Sorted channel names the advisory was reported for.",
    )
    description: str | None = Field(default=None)


class Suppression(BaseModel):
    """A finding kept off a ticket by a whitelist rule."""

    model_config = {"frozen": True}

    cve_id: str
    channel: str
    rule: str = Field(..., description="Human-readable form of the first matching rule.")
    comment: str | None = None


class TicketDecision(BaseModel):
    """Outcome of reconciling one ticket identity against history."""

    identity: str = Field(..., min_length=1)
    status: LifecycleStatus
    name: str = Field(..., min_length=1, description="Package name+version.")
    pname: str = Field(..., min_length=1)
    version: str = Field(default="")
    entries: list[CveEntry] = Field(
        default_factory=list,
        description="Advisories ordered by score descending, then CVE id ascending.",
    )
    patches: list[str] = Field(default_factory=list)
    maintainers: list[str] = Field(
        default_factory=list,
        description="De-duplicated, case-folded, sorted maintainer handles.",
    )
    previous_iteration: int | None = Field(
        default=None,
        description="Iteration in which the identity was last seen, if any.",
    )
    closure_reason: ClosureReason | None = Field(
        default=None,
        description="Why a RESOLVED ticket closed: advisories gone or all whitelisted.",
    )
    suppressed: list[Suppression] = Field(default_factory=list)

    @property
    def is_open(self) -> bool:
        return self.status in (LifecycleStatus.NEW, LifecycleStatus.CARRIED)

    @property
    def channels(self) -> list[str]:
        return sorted({c for e in self.entries for c in e.channels})

    @property
    def max_score(self) -> float | None:
        scores = [e.score for e in self.entries if e.score is not None]
        return max(scores) if scores else None


class TicketDocument(BaseModel):
    """Rendered markdown for one ticket decision."""

    identity: str = Field(..., min_length=1)
    status: LifecycleStatus
    filename: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=TITLE_MAX_LENGTH)
    body: str = Field(..., min_length=1, description="Full markdown including header and title.")


class LifecycleSnapshot(BaseModel):
    """Most recent lifecycle state of an identity as folded from prior iterations."""

    identity: str = Field(..., min_length=1)
    status: LifecycleStatus
    iteration: int = Field(..., ge=0, description="Iteration in which the identity was last seen.")
    closure_reason: ClosureReason | None = None

    @property
    def is_open(self) -> bool:
        return self.status in (LifecycleStatus.NEW, LifecycleStatus.CARRIED)


class IterationRecord(BaseModel):
    """Tickets persisted by one finalized iteration: identity -> (open?, closure reason)."""

    number: int = Field(..., ge=0)
    open: list[str] = Field(default_factory=list)
    resolved: dict[str, ClosureReason | None] = Field(default_factory=dict)
