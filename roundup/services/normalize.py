"""Normalize raw scanner records to the unified Finding representation."""

import logging
import re
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from roundup.core.errors import MalformedInput
from roundup.schemas.findings import Finding, RawScanRecord, _validate_score
from roundup.schemas.report import Diagnostic
from roundup.services.scanner_mappers import extract_records, map_vulnix_to_raw

logger = logging.getLogger(__name__)

DEFAULT_STORE_DIR = "/nix/store"

# CVE-YEAR-SEQUENCE, sequence of any length.
_CVE_PATTERN = re.compile(r"^CVE-(\d{4})-(\d+)$")
# Package name/version boundary as in builtins.parseDrvName: first dash followed by a digit.
VERSION_SPLIT = re.compile(r"-[0-9]")
# Nix store hashes are 32 characters of base32.
_STORE_HASH = r"[0-9a-z]{32}-"


class NormalizeResult(BaseModel):
    """Findings of one channel plus the per-record problems encountered."""

    findings: list[Finding] = Field(default_factory=list)
    diagnostics: list[Diagnostic] = Field(default_factory=list)


def is_valid_cve(cve_id: str | None) -> bool:
    return bool(cve_id) and _CVE_PATTERN.match(cve_id) is not None


def cve_sort_key(cve_id: str) -> tuple[int, int, str]:
    """Numeric (year, sequence) order; malformed ids sort last by text."""
    m = _CVE_PATTERN.match(cve_id or "")
    if not m:
        return (10**9, 10**18, cve_id or "")
    return (int(m.group(1)), int(m.group(2)), cve_id)


def strip_store_paths(text: str | None, store_dir: str = DEFAULT_STORE_DIR) -> str | None:
    """Rewrite <store_dir>/<hash>-name occurrences in free text to name."""
    if text is None:
        return None
    prefix = re.escape(store_dir.rstrip("/")) + "/" + _STORE_HASH
    return re.sub(prefix, "", text)


def split_package_name(name: str) -> tuple[str, str]:
    """Split "libtiff-4.0.9" into ("libtiff", "4.0.9"). Names without a version keep an empty version."""
    m = VERSION_SPLIT.search(name)
    if not m:
        return name, ""
    return name[: m.start()], name[m.start() + 1 :]


def parse_score(value: Any, cve_id: str = "", name: str = "") -> float | None:
    """
    Return a CVSS score in [0, 10] or None.

    Booleans, non-numeric values and out-of-range numbers are dropped with a warning.
    """
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        logger.warning(
            "Dropping non-numeric score",
            extra={"cve_id": cve_id, "package": name, "score": repr(value)},
        )
        return None
    try:
        return _validate_score(float(value))
    except ValueError:
        logger.warning(
            "Dropping out-of-range score",
            extra={"cve_id": cve_id, "package": name, "score": value},
        )
        return None


def _package_identity(raw: RawScanRecord) -> tuple[str, str, str]:
    """Return (name, pname, version); raise MalformedInput when the record names no package."""
    if raw.name:
        name = raw.name
        pname, version = split_package_name(name)
        if raw.pname:
            pname = raw.pname
        if raw.version:
            version = raw.version
        return name, pname, version
    if raw.pname:
        version = raw.version or ""
        name = f"{raw.pname}-{version}" if version else raw.pname
        return name, raw.pname, version
    raise MalformedInput("scanner record has no package name")


def normalize_record(
    obj: Any,
    channel: str,
    store_dir: str = DEFAULT_STORE_DIR,
) -> tuple[list[Finding], list[Diagnostic]]:
    """
    Convert one scanner record into one Finding per valid CVE id.

    Raises MalformedInput when the record is not an object, lacks package identity
    or carries no CVE id at all. Invalid CVE ids are skipped with a diagnostic so
    the record's valid CVEs survive.
    """
    if not isinstance(obj, dict):
        raise MalformedInput(f"scanner record is not an object: {type(obj).__name__}")
    try:
        raw = RawScanRecord.model_validate(map_vulnix_to_raw(obj))
    except ValidationError as e:
        raise MalformedInput(f"scanner record has invalid shape: {e.error_count()} errors") from e
    name, pname, version = _package_identity(raw)
    if not raw.cves:
        raise MalformedInput(f"{name}: scanner record lists no CVE id")

    diagnostics: list[Diagnostic] = []
    patches = tuple(p for p in (strip_store_paths(p, store_dir) for p in raw.patches) if p)
    maintainers = tuple(raw.maintainers)
    source_ref = strip_store_paths(raw.derivation, store_dir) or ""
    findings: list[Finding] = []
    for cve in raw.cves:
        cve_id = cve.strip().upper()
        if not is_valid_cve(cve_id):
            diagnostics.append(
                Diagnostic(
                    category="malformed_input",
                    message=f"{name}: invalid CVE id {cve!r} skipped",
                    channel=channel,
                    subject=name,
                )
            )
            continue
        description = raw.descriptions.get(cve) or raw.descriptions.get(cve_id)
        findings.append(
            Finding(
                attr_path=tuple(raw.attr_path),
                name=name,
                pname=pname,
                version=version,
                channel=channel,
                cve_id=cve_id,
                score=parse_score(raw.scores.get(cve, raw.scores.get(cve_id)), cve_id, name),
                description=strip_store_paths(description, store_dir) or None,
                patches=patches,
                maintainers=maintainers,
                source_ref=source_ref,
                derivation=raw.derivation or "",
                outputs=tuple(raw.outputs),
            )
        )
    return findings, diagnostics


def deduplicate_findings(findings: list[Finding]) -> list[Finding]:
    """Collapse duplicate (name, CVE id) pairs within one channel; the first occurrence wins."""
    seen: set[tuple[str, str, str]] = set()
    result: list[Finding] = []
    for f in findings:
        key = (f.channel, f.name, f.cve_id)
        if key in seen:
            continue
        seen.add(key)
        result.append(f)
    return result


def normalize(
    raw_records: Any,
    channel: str,
    store_dir: str = DEFAULT_STORE_DIR,
) -> NormalizeResult:
    """
    Normalize one channel's scanner output.

    Malformed records are excluded and reported as diagnostics; the batch continues.
    Pure: performs no I/O.
    """
    findings: list[Finding] = []
    diagnostics: list[Diagnostic] = []
    for index, obj in enumerate(extract_records(raw_records)):
        try:
            record_findings, record_diagnostics = normalize_record(obj, channel, store_dir)
        except MalformedInput as e:
            logger.warning(
                "Skipping malformed scanner record",
                extra={"channel": channel, "index": index, "reason": e.message},
            )
            diagnostics.append(
                Diagnostic(
                    category="malformed_input",
                    message=f"record {index}: {e.message}",
                    channel=channel,
                )
            )
            continue
        findings.extend(record_findings)
        diagnostics.extend(record_diagnostics)
    deduped = deduplicate_findings(findings)
    if len(deduped) != len(findings):
        logger.debug(
            "Collapsed duplicate findings",
            extra={"channel": channel, "duplicates": len(findings) - len(deduped)},
        )
    return NormalizeResult(findings=deduped, diagnostics=diagnostics)
