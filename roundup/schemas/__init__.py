"""Pydantic schemas for findings, whitelist rules, tickets and run reports."""

from roundup.schemas.findings import Finding, RawScanRecord
from roundup.schemas.health import HealthResponse
from roundup.schemas.packages import PackageInfo
from roundup.schemas.report import (
    Counts,
    DecisionCounts,
    Diagnostic,
    GitHubCreatedIssue,
    GitHubExportResponse,
    IssueCount,
    IterationInfo,
    RunSummary,
)
from roundup.schemas.ticket import (
    CveEntry,
    IterationRecord,
    LifecycleSnapshot,
    LifecycleStatus,
    Suppression,
    TicketDecision,
    TicketDocument,
)
from roundup.schemas.whitelist import WhitelistRule

__all__ = [
    "Counts",
    "CveEntry",
    "DecisionCounts",
    "Diagnostic",
    "Finding",
    "GitHubCreatedIssue",
    "GitHubExportResponse",
    "HealthResponse",
    "IssueCount",
    "IterationInfo",
    "IterationRecord",
    "LifecycleSnapshot",
    "LifecycleStatus",
    "PackageInfo",
    "RawScanRecord",
    "RunSummary",
    "Suppression",
    "TicketDecision",
    "TicketDocument",
    "WhitelistRule",
]
