"""Ticket identity, ticket file headers and the lifecycle history of prior iterations."""

import logging
import re
from pathlib import Path

from roundup.core.errors import HistoryCorrupt
from roundup.schemas.findings import Finding
from roundup.schemas.ticket import (
    ClosureReason,
    IterationRecord,
    LifecycleSnapshot,
    LifecycleStatus,
)
from roundup.services.iterations import is_finalized, list_iteration_dirs, read_ticket_files

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._+-]")
_WHITESPACE = re.compile(r"\s+")

OPEN_HEADER = "<!-- roundup:open {identity} -->"
RESOLVED_HEADER = "<!-- roundup:resolved {identity} {reason} -->"
_HEADER = re.compile(
    r"^<!-- roundup:(?:(?P<open>open) (?P<open_id>\S+)"
    r"|resolved (?P<res_id>\S+) (?P<reason>fixed|whitelisted)) -->$"
)


def identity_from_name(name: str) -> str:
    return _WHITESPACE.sub("_", name.strip())


def ticket_identity(finding: Finding) -> str:
    """Ticket identity: the package name+version, independent of CVE, channel and iteration."""
    return identity_from_name(finding.name)


def ticket_filename(identity: str) -> str:
    return f"ticket.{_UNSAFE_FILENAME_CHARS.sub('_', identity)}.md"


def format_ticket_header(identity: str, closure_reason: ClosureReason | None = None) -> str:
    """First line of a ticket file: open ticket, or closure notice when a reason is given."""
    if closure_reason is None:
        return OPEN_HEADER.format(identity=identity)
    return RESOLVED_HEADER.format(identity=identity, reason=closure_reason)


def parse_ticket_header(text: str) -> tuple[str, bool, ClosureReason | None]:
    """
    Parse the header line of a ticket file.

    Returns (identity, is_open, closure_reason). Raises HistoryCorrupt when the
    first line is not a roundup header.
    """
    first = text.split("\n", 1)[0].rstrip("\r")
    m = _HEADER.match(first)
    if not m:
        raise HistoryCorrupt(f"missing or unparsable ticket header: {first[:80]!r}")
    if m.group("open"):
        return m.group("open_id"), True, None
    return m.group("res_id"), False, m.group("reason")  # type: ignore[return-value]


def read_iteration(number: int, path: Path) -> IterationRecord:
    """Parse every ticket file of one iteration back into identities."""
    open_ids: list[str] = []
    resolved: dict[str, ClosureReason | None] = {}
    for ticket in read_ticket_files(path):
        try:
            text = ticket.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise HistoryCorrupt(f"iteration {number}: cannot read {ticket.name}: {e}") from e
        try:
            identity, is_open, reason = parse_ticket_header(text)
        except HistoryCorrupt as e:
            raise HistoryCorrupt(f"iteration {number}: {ticket.name}: {e.message}") from e
        if ticket_filename(identity) != ticket.name:
            raise HistoryCorrupt(
                f"iteration {number}: {ticket.name} header names {identity!r}"
            )
        if is_open:
            open_ids.append(identity)
        else:
            resolved[identity] = reason
    return IterationRecord(number=number, open=sorted(open_ids), resolved=resolved)


def load_iterations(basedir: Path, before: int) -> list[IterationRecord]:
    """
    Read every finalized iteration numbered below before, ascending.

    Unfinalized iteration directories (no summary.json) are skipped with a warning.
    """
    records: list[IterationRecord] = []
    for number, path in list_iteration_dirs(basedir):
        if number >= before:
            continue
        if not is_finalized(path):
            logger.warning("Skipping unfinalized iteration", extra={"iteration": number})
            continue
        records.append(read_iteration(number, path))
    return records


def load_history(iterations: list[IterationRecord]) -> dict[str, LifecycleSnapshot]:
    """
    Fold prior iterations into the most recent lifecycle state per identity.

    In the latest iteration an open ticket is CARRIED when it was also open in
    the iteration before, else NEW; a closure notice is RESOLVED. Identities last
    seen in an older iteration are RESOLVED.
    """
    ordered = sorted(iterations, key=lambda r: r.number)
    history: dict[str, LifecycleSnapshot] = {}
    if not ordered:
        return history
    latest = ordered[-1]
    previous_open = set(ordered[-2].open) if len(ordered) > 1 else set()

    for record in reversed(ordered):
        for identity in record.open:
            if identity in history:
                continue
            if record is latest:
                status = LifecycleStatus.CARRIED if identity in previous_open else LifecycleStatus.NEW
            else:
                status = LifecycleStatus.RESOLVED
            history[identity] = LifecycleSnapshot(
                identity=identity, status=status, iteration=record.number
            )
        for identity, reason in record.resolved.items():
            if identity in history:
                continue
            history[identity] = LifecycleSnapshot(
                identity=identity,
                status=LifecycleStatus.RESOLVED,
                iteration=record.number,
                closure_reason=reason,
            )
    return history
