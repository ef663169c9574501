"""Run one roundup iteration end to end: ingest, filter, reconcile, render, persist."""

from __future__ import annotations

import asyncio
import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING

from roundup.core.errors import GitHubNotConfiguredError, IterationSuperseded
from roundup.schemas.findings import Finding
from roundup.schemas.report import DecisionCounts, Diagnostic, RunSummary
from roundup.schemas.ticket import LifecycleStatus
from roundup.services.github_export import export_tickets_to_github, is_github_configured
from roundup.services.handle_validation import drop_invalid_handles, validate_handles
from roundup.services.history import load_history, load_iterations, ticket_identity
from roundup.services.iterations import (
    begin_write,
    is_finalized,
    iteration_dir,
    list_iteration_dirs,
    load_package_metadata,
    load_scan,
    write_pings,
    write_summary,
    write_tickets,
)
from roundup.services.lifecycle import group_by_identity, reconcile
from roundup.services.maintainers import (
    MaintainerResolver,
    MappingPackageMetadataProvider,
    PackageMetadataProvider,
    build_ping_report,
)
from roundup.services.normalize import normalize
from roundup.services.store_filter import StoreContents, filter_installed
from roundup.services.ticket_renderer import render_all
from roundup.services.whitelist import SuppressedFinding, filter_findings, load_whitelists

if TYPE_CHECKING:
    from roundup.core.config import Settings

logger = logging.getLogger(__name__)

# name or name=rev; names carry no slash, "=" or whitespace.
_CHANNEL_SPEC = re.compile(r"^([^/=\s]+)(=(\S+))?$")


def parse_channels(specs: list[str]) -> list[str]:
    """
    Parse channel specs ("nixos-19.09" or "nixos-19.09=<rev>") into channel names.

    The revision is informational only. Raises ValueError on an invalid spec or a
    channel given twice.
    """
    channels: list[str] = []
    for spec in specs:
        m = _CHANNEL_SPEC.match(spec.strip())
        if not m:
            raise ValueError(f"invalid channel spec {spec!r} (expected NAME or NAME=REV)")
        name = m.group(1)
        if name in channels:
            raise ValueError(f"duplicate channel {name!r}")
        channels.append(name)
    return channels


def check_not_superseded(basedir: Path, iteration: int) -> None:
    """Raise IterationSuperseded when a finalized iteration above this one exists."""
    later = [n for n, p in list_iteration_dirs(basedir) if n > iteration and is_finalized(p)]
    if later:
        raise IterationSuperseded(
            f"iteration {iteration} cannot be rewritten: iteration {later[-1]} is already finalized"
        )


def run_roundup(
    iteration: int,
    channels: list[str],
    settings: Settings,
    *,
    notify: bool | None = None,
    validate: bool | None = None,
    export: bool = False,
    basedir: Path | None = None,
    whitelist_dir: Path | None = None,
    store_dumps_dir: Path | None = None,
) -> RunSummary:
    """
    Run the batch for one iteration.

    All channels are loaded before reconciliation starts. Outputs are written
    to ITERATIONS_DIR/<iteration>/ with summary.json last, which finalizes the
    iteration. An iteration is only (re)written while no later iteration is
    finalized. Fatal RoundupErrors propagate; per-record problems end up in
    RunSummary.diagnostics.
    """
    notify = settings.PING_MAINTAINERS if notify is None else notify
    validate = settings.VALIDATE_HANDLES if validate is None else validate
    basedir = Path(basedir or settings.ITERATIONS_DIR)
    whitelist_dir = Path(whitelist_dir or settings.WHITELIST_DIR)
    store_dumps_dir = store_dumps_dir or settings.STORE_DUMPS_DIR
    if export and not is_github_configured(settings):
        raise GitHubNotConfiguredError(
            "GitHub export requested but GITHUB_REPO and GITHUB_TOKEN are not set."
        )
    check_not_superseded(basedir, iteration)
    path = iteration_dir(basedir, iteration)
    logger.info("Starting roundup", extra={"iteration": iteration, "channels": channels})

    store = StoreContents.from_dir(Path(store_dumps_dir)) if store_dumps_dir else None
    whitelists = load_whitelists(whitelist_dir, channels)
    diagnostics: list[Diagnostic] = []
    findings: list[Finding] = []
    active: list[Finding] = []
    suppressed: list[SuppressedFinding] = []
    unused_rules: list[str] = []
    providers: dict[str, PackageMetadataProvider] = {}
    not_installed = 0

    for channel in channels:
        result = normalize(load_scan(path, channel), channel, settings.STORE_DIR)
        diagnostics.extend(result.diagnostics)
        metadata = load_package_metadata(path, channel)
        if metadata is not None:
            providers[channel] = MappingPackageMetadataProvider.from_json(metadata)
        channel_findings = result.findings
        if store is not None:
            installed = filter_installed(channel_findings, store, providers.get(channel))
            channel_findings = installed.kept
            not_installed += len(installed.dropped)
        findings.extend(channel_findings)
        filtered = filter_findings(channel_findings, whitelists.get(channel, []), channel)
        active.extend(filtered.active)
        suppressed.extend(filtered.suppressed)
        for rule in filtered.unused_rules:
            unused_rules.append(rule.describe())
            diagnostics.append(
                Diagnostic(
                    category="stale_whitelist_rule",
                    message=f"whitelist rule suppressed nothing: {rule.describe()}",
                    channel=channel,
                    subject=rule.describe(),
                )
            )
        logger.info(
            "Channel loaded",
            extra={
                "channel": channel,
                "findings": len(channel_findings),
                "active": len(filtered.active),
                "suppressed": len(filtered.suppressed),
            },
        )

    active_by_identity = group_by_identity(active)
    suppressed_by_identity: dict[str, list[SuppressedFinding]] = {}
    for s in suppressed:
        suppressed_by_identity.setdefault(ticket_identity(s.finding), []).append(s)

    resolution = MaintainerResolver(providers).resolve_pings(active)
    diagnostics.extend(resolution.diagnostics)
    pings = resolution.handles
    if validate:
        all_handles = sorted({h for hs in pings.values() for h in hs})
        validation = asyncio.run(validate_handles(all_handles, settings))
        diagnostics.extend(validation.diagnostics)
        pings = drop_invalid_handles(pings, validation)

    history = load_history(load_iterations(basedir, iteration))
    decisions = reconcile(
        active_by_identity,
        history,
        suppressed_by_identity=suppressed_by_identity,
        pings=pings,
    )
    documents = render_all(decisions, notify=notify)

    begin_write(path)
    written = write_tickets(path, documents)
    write_pings(path, build_ping_report(decisions))

    github = None
    if export:
        names = {d.identity: d.name for d in decisions}
        github = asyncio.run(export_tickets_to_github(documents, names, settings))

    summary = RunSummary(
        iteration=iteration,
        channels=list(channels),
        counts=DecisionCounts(
            new=sum(1 for d in decisions if d.status == LifecycleStatus.NEW),
            carried=sum(1 for d in decisions if d.status == LifecycleStatus.CARRIED),
            resolved=sum(1 for d in decisions if d.status == LifecycleStatus.RESOLVED),
        ),
        findings=len(findings),
        active_findings=len(active),
        suppressed_findings=len(suppressed),
        not_installed_findings=not_installed,
        tickets=written,
        resolved={
            d.identity: d.closure_reason or "fixed"
            for d in decisions
            if d.status == LifecycleStatus.RESOLVED
        },
        unused_rules=unused_rules,
        diagnostics=diagnostics,
        github=github,
    )
    write_summary(path, summary)
    logger.info(
        "Roundup completed",
        extra={
            "iteration": iteration,
            "new": summary.counts.new,
            "carried": summary.counts.carried,
            "resolved": summary.counts.resolved,
            "diagnostics": len(diagnostics),
        },
    )
    return summary
