"""Pydantic schemas for run output: diagnostics, run summary, counts and GitHub export results."""

from typing import Literal

from pydantic import BaseModel, Field

DiagnosticCategory = Literal[
    "malformed_input",
    "unresolved_package_path",
    "stale_whitelist_rule",
    "invalid_maintainer_handle",
    "unverified_maintainer_handle",
]


class Diagnostic(BaseModel):
    """Non-fatal problem collected during a run and reported in the summary."""

    model_config = {"frozen": True}

    category: DiagnosticCategory
    message: str = Field(..., min_length=1)
    channel: str | None = Field(default=None, description="Channel the problem was seen in.")
    subject: str | None = Field(
        default=None,
        description="Package, attribute, rule or handle the diagnostic refers to.",
    )


class DecisionCounts(BaseModel):
    """Number of ticket decisions per lifecycle status."""

    new: int = Field(default=0, ge=0)
    carried: int = Field(default=0, ge=0)
    resolved: int = Field(default=0, ge=0)


class GitHubCreatedIssue(BaseModel):
    """One created GitHub issue returned from export."""

    identity: str = Field(..., min_length=1, description="Ticket identity (package name+version).")
    number: int = Field(..., ge=1, description="GitHub issue number.")
    url: str = Field(..., min_length=1, description="Issue HTML URL.")


class GitHubExportResponse(BaseModel):
    """Result of exporting NEW tickets as GitHub issues."""

    issues: list[GitHubCreatedIssue] = Field(default_factory=list)
    errors: list[str] = Field(
        default_factory=list,
        description="Per-issue error messages (partial success).",
    )


class RunSummary(BaseModel):
    """Outcome of one roundup run; persisted as summary.json to finalize the iteration."""

    iteration: int = Field(..., ge=0)
    channels: list[str] = Field(default_factory=list)
    counts: DecisionCounts = Field(default_factory=DecisionCounts)
    findings: int = Field(default=0, ge=0, description="Normalized findings across all channels.")
    active_findings: int = Field(default=0, ge=0)
    suppressed_findings: int = Field(default=0, ge=0)
    not_installed_findings: int = Field(
        default=0,
        ge=0,
        description="Findings dropped because no store dump lists the package.",
    )
    tickets: list[str] = Field(
        default_factory=list,
        description="Ticket document file names written for this iteration.",
    )
    resolved: dict[str, str] = Field(
        default_factory=dict,
        description="Identity -> closure reason for tickets resolved in this iteration.",
    )
    unused_rules: list[str] = Field(
        default_factory=list,
        description="Whitelist rules that suppressed nothing.",
    )
    diagnostics: list[Diagnostic] = Field(default_factory=list)
    github: GitHubExportResponse | None = None


class IssueCount(BaseModel):
    """Open tickets and open CVE checklist items of one iteration."""

    tickets: int = Field(default=0, ge=0)
    resolved: int = Field(default=0, ge=0)
    open_cves: int = Field(default=0, ge=0)


class Counts(BaseModel):
    """Ticket counts per finalized iteration."""

    by_iteration: dict[int, IssueCount] = Field(default_factory=dict)
    current: IssueCount = Field(
        default_factory=IssueCount,
        description="Counts of the latest finalized iteration.",
    )


class IterationInfo(BaseModel):
    """Iteration directory listing entry."""

    number: int = Field(..., ge=0)
    finalized: bool
