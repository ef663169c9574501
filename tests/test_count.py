"""Unit tests for roundup.services.count: open tickets and unchecked CVE items per iteration."""

import tempfile
import unittest
from pathlib import Path

from roundup.core.errors import HistoryCorrupt
from roundup.schemas.report import IssueCount
from roundup.schemas.ticket import CveEntry, LifecycleStatus, TicketDecision
from roundup.services.count import count_iteration, count_open
from roundup.services.iterations import SUMMARY_FILE
from roundup.services.ticket_renderer import render


def _open(identity: str, cves: list[str]) -> TicketDecision:
    return TicketDecision(
        identity=identity,
        status=LifecycleStatus.NEW,
        name=identity,
        pname=identity.split("-")[0],
        entries=[CveEntry(cve_id=c, channels=("c",)) for c in cves],
    )


def _resolved(identity: str) -> TicketDecision:
    return TicketDecision(
        identity=identity,
        status=LifecycleStatus.RESOLVED,
        name=identity,
        pname=identity.split("-")[0],
        closure_reason="fixed",
    )


def _write(path: Path, decisions: list[TicketDecision], finalized: bool = True) -> None:
    path.mkdir(parents=True, exist_ok=True)
    for d in decisions:
        doc = render(d)
        (path / doc.filename).write_text(doc.body)
    if finalized:
        (path / SUMMARY_FILE).write_text("{}\n")


class TestCountIteration(unittest.TestCase):
    """Counting one iteration directory's ticket files."""

    def test_counts_open_and_resolved(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp)
            _write(path, [
                _open("foo-1.0", ["CVE-2020-0001", "CVE-2020-0002"]),
                _open("bar-2.0", ["CVE-2019-0001"]),
                _resolved("old-1.0"),
            ])
            self.assertEqual(count_iteration(path), IssueCount(tickets=2, resolved=1, open_cves=3))

    def test_checked_items_not_counted(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp)
            _write(path, [_open("foo-1.0", ["CVE-2020-0001", "CVE-2020-0002"])])
            ticket = path / "ticket.foo-1.0.md"
            ticket.write_text(ticket.read_text().replace("* [ ] [CVE-2020-0002]", "* [x] [CVE-2020-0002]"))
            self.assertEqual(count_iteration(path).open_cves, 1)

    def test_unparseable_ticket(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp)
            (path / "ticket.foo-1.0.md").write_text("no header\n")
            with self.assertRaises(HistoryCorrupt):
                count_iteration(path)


class TestCountOpen(unittest.TestCase):
    """Counts across every finalized iteration."""

    def test_finalized_iterations_only(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            base = Path(tmp)
            _write(base / "1", [_open("foo-1.0", ["CVE-2020-0001"])])
            _write(base / "2", [_open("foo-1.0", ["CVE-2020-0001"]), _open("bar-2.0", ["CVE-2020-0002"])])
            _write(base / "3", [_open("baz-1.0", ["CVE-2020-0003"])], finalized=False)
            (base / "notes").mkdir()
            counts = count_open(base)
            self.assertEqual(sorted(counts.by_iteration), [1, 2])
            self.assertEqual(counts.current.tickets, 2)
            self.assertEqual(counts.by_iteration[1].open_cves, 1)

    def test_missing_basedir(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            counts = count_open(Path(tmp) / "absent")
            self.assertEqual(counts.by_iteration, {})
            self.assertEqual(counts.current, IssueCount())
