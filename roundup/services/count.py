"""Count open tickets and unchecked CVE checklist items per finalized iteration."""

import re
from pathlib import Path

from roundup.core.errors import HistoryCorrupt
from roundup.schemas.report import Counts, IssueCount
from roundup.services.history import parse_ticket_header
from roundup.services.iterations import is_finalized, list_iteration_dirs, read_ticket_files

OPEN_CVE = re.compile(r"\[ \] \[CVE-\d+-\d+\]")


def count_iteration(path: Path) -> IssueCount:
    count = IssueCount()
    for ticket in read_ticket_files(path):
        try:
            text = ticket.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise HistoryCorrupt(f"cannot read {ticket}: {e}") from e
        _, is_open, _ = parse_ticket_header(text)
        if is_open:
            count.tickets += 1
            count.open_cves += len(OPEN_CVE.findall(text))
        else:
            count.resolved += 1
    return count


def count_open(basedir: Path) -> Counts:
    """Counts for every finalized iteration; current is the latest one."""
    by_iteration: dict[int, IssueCount] = {}
    for number, path in list_iteration_dirs(basedir):
        if is_finalized(path):
            by_iteration[number] = count_iteration(path)
    current = by_iteration[max(by_iteration)] if by_iteration else IssueCount()
    return Counts(by_iteration=by_iteration, current=current)
