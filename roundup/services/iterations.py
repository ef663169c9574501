"""Iteration directory store: scanner inputs, ticket documents, ping report and run summary.

Layout under ITERATIONS_DIR/<N>/:

    vulnix.<channel>.json       scanner output (input)
    maintainers.<channel>.json  package metadata (optional input)
    ticket.<identity>.md        rendered tickets and closure notices
    pings.json                  maintainer handle -> package names
    summary.json                run summary; its presence finalizes the iteration
"""

import json
import logging
from pathlib import Path
from typing import Any

from roundup.core.errors import ScanArtifactInvalid, ScanArtifactMissing
from roundup.schemas.report import IterationInfo, RunSummary
from roundup.schemas.ticket import TicketDocument

logger = logging.getLogger(__name__)

SUMMARY_FILE = "summary.json"
PINGS_FILE = "pings.json"
TICKET_GLOB = "ticket.*.md"


def iteration_dir(basedir: Path, number: int) -> Path:
    return Path(basedir) / str(number)


def list_iteration_dirs(basedir: Path) -> list[tuple[int, Path]]:
    """Numbered iteration directories in ascending order; other entries are ignored."""
    base = Path(basedir)
    if not base.is_dir():
        return []
    out: list[tuple[int, Path]] = []
    for entry in base.iterdir():
        if entry.is_dir() and entry.name.isdigit():
            out.append((int(entry.name), entry))
    return sorted(out)


def is_finalized(path: Path) -> bool:
    return (Path(path) / SUMMARY_FILE).is_file()


def list_iterations(basedir: Path) -> list[IterationInfo]:
    return [IterationInfo(number=n, finalized=is_finalized(p)) for n, p in list_iteration_dirs(basedir)]


def _read_json(path: Path, channel: str) -> Any:
    try:
        with path.open(encoding="utf-8") as fh:
            return json.load(fh)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ScanArtifactInvalid(f"{path.name} is not valid JSON: {e}") from e
    except OSError as e:
        raise ScanArtifactInvalid(f"{path.name} for {channel} cannot be read: {e}") from e


def load_scan(path: Path, channel: str) -> Any:
    """Read vulnix.<channel>.json from an iteration directory."""
    scan = Path(path) / f"vulnix.{channel}.json"
    if not scan.is_file():
        raise ScanArtifactMissing(f"scanner output {scan.name} missing in {path}")
    return _read_json(scan, channel)


def load_package_metadata(path: Path, channel: str) -> dict[str, Any] | None:
    """Read maintainers.<channel>.json if present; None when the channel has no metadata."""
    meta = Path(path) / f"maintainers.{channel}.json"
    if not meta.is_file():
        return None
    data = _read_json(meta, channel)
    if not isinstance(data, dict):
        raise ScanArtifactInvalid(f"{meta.name} must contain an object keyed by attribute path")
    return data


def dump_json(data: Any) -> str:
    """Stable JSON text: sorted keys, two-space indent, trailing newline."""
    return json.dumps(data, sort_keys=True, indent=2, ensure_ascii=False) + "\n"


def begin_write(path: Path) -> None:
    """Create the iteration directory and drop any previous finalization marker."""
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    (path / SUMMARY_FILE).unlink(missing_ok=True)


def write_tickets(path: Path, documents: list[TicketDocument]) -> list[str]:
    """
    Write ticket documents and remove stale ticket files of the same iteration.

    Returns the sorted file names written.
    """
    path = Path(path)
    wanted = {d.filename: d for d in documents}
    for stale in path.glob(TICKET_GLOB):
        if stale.name not in wanted:
            logger.info("Removing stale ticket", extra={"file": stale.name})
            stale.unlink()
    for filename in sorted(wanted):
        (path / filename).write_text(wanted[filename].body, encoding="utf-8", newline="\n")
    return sorted(wanted)


def write_pings(path: Path, pings: dict[str, list[str]]) -> None:
    (Path(path) / PINGS_FILE).write_text(dump_json(pings), encoding="utf-8", newline="\n")


def write_summary(path: Path, summary: RunSummary) -> None:
    """Write summary.json; must be the last write of a run."""
    (Path(path) / SUMMARY_FILE).write_text(
        dump_json(summary.model_dump(mode="json")), encoding="utf-8", newline="\n"
    )


def read_summary(path: Path) -> RunSummary | None:
    summary = Path(path) / SUMMARY_FILE
    if not summary.is_file():
        return None
    return RunSummary.model_validate_json(summary.read_text(encoding="utf-8"))


def read_ticket_files(path: Path) -> list[Path]:
    return sorted(Path(path).glob(TICKET_GLOB))
