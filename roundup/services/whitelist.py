"""Load release-scoped whitelist files and suppress the findings they cover."""

import logging
import tomllib
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from roundup.core.errors import WhitelistInvalid
from roundup.schemas.findings import Finding
from roundup.schemas.whitelist import WhitelistRule
from roundup.services.normalize import cve_sort_key, is_valid_cve, split_package_name
from roundup.services.versions import compare_versions, parse_constraint, satisfies

logger = logging.getLogger(__name__)

_GLOB_CHARS = frozenset("*?[")
_RULE_FIELDS = frozenset({"cve", "version", "comment", "issue_url", "until"})


class SuppressedFinding(BaseModel):
    """A finding together with the first rule (in canonical order) that matched it."""

    finding: Finding
    rule: WhitelistRule


class FilterResult(BaseModel):
    """Outcome of applying one release's whitelist to one channel's findings."""

    active: list[Finding] = Field(default_factory=list)
    suppressed: list[SuppressedFinding] = Field(default_factory=list)
    unused_rules: list[WhitelistRule] = Field(default_factory=list)


def finding_sort_key(f: Finding) -> tuple:
    return (f.name, cve_sort_key(f.cve_id), f.channel, f.attribute)


class RuleMatcher:
    """Compiled rule: release and CVE checks shared, package/version predicate per subclass."""

    def __init__(self, rule: WhitelistRule) -> None:
        self.rule = rule

    def matches(self, finding: Finding) -> bool:
        if finding.channel != self.rule.release or finding.cve_id != self.rule.cve_id:
            return False
        return self._matches_package(finding)

    def _matches_package(self, finding: Finding) -> bool:
        raise NotImplementedError


class ExactMatcher(RuleMatcher):
    """Package name equality, optionally pinned to one exact version."""

    def _matches_package(self, finding: Finding) -> bool:
        if finding.pname != self.rule.package:
            return False
        if self.rule.version in (None, "*"):
            return True
        return compare_versions(finding.version, self.rule.version) == 0


def _glob_matches(pattern: str | None, finding: Finding) -> bool:
    """Globs match the package name or the full name+version."""
    pattern = pattern or ""
    return fnmatchcase(finding.pname, pattern) or fnmatchcase(finding.name, pattern)


class PatternMatcher(RuleMatcher):
    """Glob over the package name (or name+version), any version unless pinned."""

    def _matches_package(self, finding: Finding) -> bool:
        if not _glob_matches(self.rule.package_pattern, finding):
            return False
        if self.rule.version in (None, "*"):
            return True
        return compare_versions(finding.version, self.rule.version) == 0


class VersionRangeMatcher(RuleMatcher):
    """Package name or glob plus a comma-separated comparator range."""

    def __init__(self, rule: WhitelistRule) -> None:
        super().__init__(rule)
        self.comparators = parse_constraint(rule.version)

    def _matches_package(self, finding: Finding) -> bool:
        if self.rule.package is not None:
            if finding.pname != self.rule.package:
                return False
        elif not _glob_matches(self.rule.package_pattern, finding):
            return False
        return satisfies(finding.version, self.comparators)


def _is_range(version: str | None) -> bool:
    if version is None:
        return False
    v = version.strip()
    return "," in v or v[:1] in ("<", ">", "=", "!")


def compile_rule(rule: WhitelistRule) -> RuleMatcher:
    """Pick the matcher variant for a rule's shape."""
    if _is_range(rule.version):
        return VersionRangeMatcher(rule)
    if rule.package_pattern is not None:
        return PatternMatcher(rule)
    return ExactMatcher(rule)


def _as_str_list(value: Any, field: str, where: str) -> list[str]:
    if isinstance(value, str):
        return [value]
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return list(value)
    raise WhitelistInvalid(f"{where}: {field} must be a string or a list of strings")


def _optional_str(entry: dict[str, Any], field: str, where: str) -> str | None:
    value = entry.get(field)
    if value is None:
        return None
    if not isinstance(value, str):
        raise WhitelistInvalid(f"{where}: {field} must be a string")
    return value.strip() or None


def parse_whitelist(data: dict[str, Any], release: str, source: str = "<whitelist>") -> list[WhitelistRule]:
    """
    Turn a decoded whitelist document into rules, one per (package spec, CVE).

    Table keys are package specs: "name-version", "name" or a glob such as
    "python3*-acoustics". A "version" field overrides the version in the key.
    """
    rules: list[WhitelistRule] = []
    for spec, entry in data.items():
        where = f"{source} [{spec}]"
        if not isinstance(entry, dict):
            raise WhitelistInvalid(f"{where}: entry must be a table")
        unknown = set(entry) - _RULE_FIELDS
        if unknown:
            raise WhitelistInvalid(f"{where}: unknown fields {sorted(unknown)}")
        if "cve" not in entry:
            raise WhitelistInvalid(f"{where}: cve is required")
        cves = _as_str_list(entry["cve"], "cve", where)
        if not cves:
            raise WhitelistInvalid(f"{where}: cve must not be empty")
        for cve in cves:
            if not is_valid_cve(cve.strip()):
                raise WhitelistInvalid(f"{where}: invalid CVE id {cve!r}")

        spec = spec.strip()
        if not spec:
            raise WhitelistInvalid(f"{where}: empty package spec")
        package: str | None = None
        pattern: str | None = None
        key_version: str | None = None
        if _GLOB_CHARS & set(spec):
            pattern = spec
        else:
            package, key_version = split_package_name(spec)
            key_version = key_version or None
        version = _optional_str(entry, "version", where) or key_version
        try:
            parse_constraint(version)
        except ValueError as e:
            raise WhitelistInvalid(f"{where}: {e}") from e

        for cve in cves:
            try:
                rules.append(
                    WhitelistRule(
                        release=release,
                        package=package,
                        package_pattern=pattern,
                        version=version,
                        cve_id=cve.strip(),
                        comment=_optional_str(entry, "comment", where),
                        issue_url=_optional_str(entry, "issue_url", where),
                    )
                )
            except ValidationError as e:
                raise WhitelistInvalid(f"{where}: {e.error_count()} validation errors") from e
    return sorted(rules, key=lambda r: r.key)


def load_whitelist(path: Path, release: str) -> list[WhitelistRule]:
    """Read one release's TOML whitelist. A missing file means no rules."""
    if not path.exists():
        logger.debug("No whitelist for release", extra={"release": release, "path": str(path)})
        return []
    try:
        with path.open("rb") as fh:
            data = tomllib.load(fh)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise WhitelistInvalid(f"{path}: {e}") from e
    rules = parse_whitelist(data, release, str(path))
    logger.info("Loaded whitelist", extra={"release": release, "rules": len(rules)})
    return rules


def load_whitelists(whitelist_dir: Path, releases: list[str]) -> dict[str, list[WhitelistRule]]:
    """Load <whitelist_dir>/<release>.toml for every scanned release."""
    return {r: load_whitelist(whitelist_dir / f"{r}.toml", r) for r in releases}


def filter_findings(
    findings: list[Finding],
    rules: list[WhitelistRule],
    channel: str,
) -> FilterResult:
    """
    Split findings into active and suppressed.

    Only rules whose release equals channel take part. A finding matched by
    several rules is reported once, paired with the first match in canonical
    rule order; every matching rule counts as used. Output order is canonical.
    """
    matchers = [compile_rule(r) for r in sorted(rules, key=lambda r: r.key) if r.release == channel]
    used: set[tuple[str, str, str, str]] = set()
    active: list[Finding] = []
    suppressed: list[SuppressedFinding] = []
    for f in sorted(findings, key=finding_sort_key):
        first: WhitelistRule | None = None
        for m in matchers:
            if m.matches(f):
                used.add(m.rule.key)
                if first is None:
                    first = m.rule
        if first is None:
            active.append(f)
        else:
            suppressed.append(SuppressedFinding(finding=f, rule=first))
    unused = [m.rule for m in matchers if m.rule.key not in used]
    return FilterResult(active=active, suppressed=suppressed, unused_rules=unused)
