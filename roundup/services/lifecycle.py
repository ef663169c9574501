"""Diff current findings against history and decide each ticket's lifecycle status."""

import logging

from roundup.core.errors import IdentityCollision
from roundup.schemas.findings import Finding
from roundup.schemas.ticket import (
    CveEntry,
    LifecycleSnapshot,
    LifecycleStatus,
    Suppression,
    TicketDecision,
)
from roundup.services.history import ticket_filename, ticket_identity
from roundup.services.maintainers import normalize_handles
from roundup.services.normalize import cve_sort_key, split_package_name
from roundup.services.whitelist import SuppressedFinding, finding_sort_key

logger = logging.getLogger(__name__)


def _check_collisions(identity: str, findings: list[Finding]) -> None:
    """
    Distinct packages sharing a name+version in one channel.

    Two attribute paths are the same package only when they point at the same
    derivation, store hash included: the hash-stripped file name is always
    <name>.drv and cannot tell builds apart.
    """
    seen: dict[str, Finding] = {}
    for f in findings:
        if not f.attr_path:
            continue
        other = seen.setdefault(f.channel, f)
        if other.attr_path == f.attr_path:
            continue
        if other.derivation and other.derivation == f.derivation:
            continue
        raise IdentityCollision(
            f"{identity}: attributes {other.attribute} and {f.attribute} "
            f"in {f.channel} share a ticket identity"
        )


def group_by_identity(findings: list[Finding]) -> dict[str, list[Finding]]:
    """
    Group active findings by ticket identity, in canonical order.

    Raises IdentityCollision when two distinct packages of one channel share a
    name+version, or when two identities would be written to the same file.
    """
    groups: dict[str, list[Finding]] = {}
    for f in sorted(findings, key=finding_sort_key):
        groups.setdefault(ticket_identity(f), []).append(f)
    filenames: dict[str, str] = {}
    for identity, group in groups.items():
        _check_collisions(identity, group)
        filename = ticket_filename(identity)
        if filename in filenames:
            raise IdentityCollision(
                f"{filenames[filename]} and {identity} map to the same ticket file {filename}"
            )
        filenames[filename] = identity
    return dict(sorted(groups.items()))


def entry_sort_key(entry: CveEntry) -> tuple:
    """Score descending with absent scores last, then CVE id ascending."""
    return (entry.score is None, -(entry.score or 0.0), cve_sort_key(entry.cve_id))


def build_entries(findings: list[Finding]) -> list[CveEntry]:
    """Union CVEs across channels: max score, sorted channels, first non-empty description."""
    by_cve: dict[str, list[Finding]] = {}
    for f in sorted(findings, key=finding_sort_key):
        by_cve.setdefault(f.cve_id, []).append(f)
    entries: list[CveEntry] = []
    for cve_id, group in by_cve.items():
        scores = [f.score for f in group if f.score is not None]
        description = next((f.description for f in group if f.description), None)
        entries.append(
            CveEntry(
                cve_id=cve_id,
                score=max(scores) if scores else None,
                channels=tuple(sorted({f.channel for f in group})),
                description=description,
            )
        )
    return sorted(entries, key=entry_sort_key)


def _suppressions(items: list[SuppressedFinding]) -> list[Suppression]:
    out = {
        (s.finding.cve_id, s.finding.channel): Suppression(
            cve_id=s.finding.cve_id,
            channel=s.finding.channel,
            rule=s.rule.describe(),
            comment=s.rule.comment,
        )
        for s in items
    }
    return [out[k] for k in sorted(out, key=lambda k: (cve_sort_key(k[0]), k[1]))]


def _open_decision(
    identity: str,
    findings: list[Finding],
    snapshot: LifecycleSnapshot | None,
    handles: list[str] | None,
) -> TicketDecision:
    first = findings[0]
    carried = snapshot is not None and snapshot.is_open
    if handles is None:
        handles = normalize_handles(h for f in findings for h in f.maintainers)
    return TicketDecision(
        identity=identity,
        status=LifecycleStatus.CARRIED if carried else LifecycleStatus.NEW,
        name=first.name,
        pname=first.pname,
        version=first.version,
        entries=build_entries(findings),
        patches=sorted({p for f in findings for p in f.patches}),
        maintainers=handles,
        previous_iteration=snapshot.iteration if snapshot else None,
    )


def _resolved_decision(
    identity: str,
    snapshot: LifecycleSnapshot,
    suppressed: list[SuppressedFinding],
) -> TicketDecision:
    if suppressed:
        first = sorted((s.finding for s in suppressed), key=finding_sort_key)[0]
        name, pname, version = first.name, first.pname, first.version
    else:
        name = identity
        pname, version = split_package_name(identity)
    return TicketDecision(
        identity=identity,
        status=LifecycleStatus.RESOLVED,
        name=name,
        pname=pname or name,
        version=version,
        previous_iteration=snapshot.iteration,
        closure_reason="whitelisted" if suppressed else "fixed",
        suppressed=_suppressions(suppressed),
    )


def reconcile(
    active_by_identity: dict[str, list[Finding]],
    history: dict[str, LifecycleSnapshot],
    *,
    suppressed_by_identity: dict[str, list[SuppressedFinding]] | None = None,
    pings: dict[str, list[str]] | None = None,
) -> list[TicketDecision]:
    """
    Decide NEW, CARRIED or RESOLVED for every identity that is active or open in history.

    Identities with neither active findings nor an open history entry produce no
    decision. Output is sorted by identity and depends only on the inputs.
    """
    suppressed_by_identity = suppressed_by_identity or {}
    open_history = {i for i, s in history.items() if s.is_open}
    decisions: list[TicketDecision] = []
    for identity in sorted(set(active_by_identity) | open_history):
        findings = active_by_identity.get(identity) or []
        snapshot = history.get(identity)
        if findings:
            handles = pings.get(identity, []) if pings is not None else None
            decisions.append(_open_decision(identity, findings, snapshot, handles))
        elif snapshot is not None:
            decisions.append(
                _resolved_decision(identity, snapshot, suppressed_by_identity.get(identity, []))
            )
    logger.debug(
        "Reconciled tickets",
        extra={
            "new": sum(1 for d in decisions if d.status == LifecycleStatus.NEW),
            "carried": sum(1 for d in decisions if d.status == LifecycleStatus.CARRIED),
            "resolved": sum(1 for d in decisions if d.status == LifecycleStatus.RESOLVED),
        },
    )
    return decisions
