"""Resolve maintainer handles to ping for each ticket."""

import logging
from typing import Any, Iterable, Protocol

from pydantic import BaseModel, Field

from roundup.core.errors import UnresolvedPackagePath
from roundup.schemas.findings import Finding
from roundup.schemas.packages import PackageInfo
from roundup.schemas.report import Diagnostic
from roundup.schemas.ticket import TicketDecision
from roundup.services.history import ticket_identity
from roundup.services.scanner_mappers import flatten_maintainers, str_list

logger = logging.getLogger(__name__)


def normalize_handle(handle: str | None) -> str | None:
    """Strip whitespace and a leading "@", case-fold. Empty handles become None."""
    if not handle:
        return None
    h = handle.strip().lstrip("@").strip().casefold()
    return h or None


def normalize_handles(handles: Iterable[str]) -> list[str]:
    """De-duplicated, case-folded, sorted handles."""
    return sorted({h for h in (normalize_handle(x) for x in handles) if h})


def maintainer_contacts(maintainers: Any) -> list[str]:
    """GitHub handles from plain strings, {github, email} objects or nested lists."""
    return normalize_handles(flatten_maintainers(maintainers))


class PackageMetadataProvider(Protocol):
    """Source of package metadata per attribute path (one per channel)."""

    def resolve(self, attr_path: tuple[str, ...]) -> PackageInfo | None: ...


class MappingPackageMetadataProvider:
    """Provider backed by an attribute -> PackageInfo mapping (maintainers.<channel>.json)."""

    def __init__(self, packages: dict[str, PackageInfo]) -> None:
        self.packages = packages

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "MappingPackageMetadataProvider":
        """Build from {attr: {name, maintainers, outputsToInstall}}; entries that are not objects are ignored."""
        packages: dict[str, PackageInfo] = {}
        for attr, entry in data.items():
            if not isinstance(entry, dict) or not attr:
                logger.debug("Ignoring package metadata entry", extra={"attr": attr})
                continue
            name = entry.get("name")
            packages[attr] = PackageInfo(
                attr=attr,
                name=name if isinstance(name, str) else "",
                maintainers=maintainer_contacts(entry.get("maintainers")),
                outputs=str_list(entry.get("outputsToInstall", entry.get("outputs"))),
            )
        return cls(packages)

    def resolve(self, attr_path: tuple[str, ...]) -> PackageInfo | None:
        return self.packages.get(".".join(attr_path))


class PingResolution(BaseModel):
    """Maintainer handles per ticket identity plus unresolved-path diagnostics."""

    handles: dict[str, list[str]] = Field(default_factory=dict)
    diagnostics: list[Diagnostic] = Field(default_factory=list)


class MaintainerResolver:
    """
    Union scanner-reported handles with handles from per-channel metadata providers.

    A channel without a provider contributes only the scanner-reported handles.
    """

    def __init__(self, providers: dict[str, PackageMetadataProvider] | None = None) -> None:
        self.providers = providers or {}

    def _lookup(self, finding: Finding) -> PackageInfo | None:
        provider = self.providers.get(finding.channel)
        if provider is None or not finding.attr_path:
            return None
        info = provider.resolve(finding.attr_path)
        if info is None:
            raise UnresolvedPackagePath(
                f"{finding.channel}: cannot resolve attribute {finding.attribute}",
                attr=finding.attribute,
                channel=finding.channel,
            )
        return info

    def resolve_pings(self, findings: list[Finding]) -> PingResolution:
        collected: dict[str, set[str]] = {}
        unresolved: dict[tuple[str, str], UnresolvedPackagePath] = {}
        for f in findings:
            handles = collected.setdefault(ticket_identity(f), set())
            handles.update(f.maintainers)
            try:
                info = self._lookup(f)
            except UnresolvedPackagePath as e:
                unresolved.setdefault((e.channel, e.attr), e)
                continue
            if info is not None:
                handles.update(info.maintainers)
        diagnostics = []
        for (channel, attr), e in sorted(unresolved.items()):
            logger.warning("Unresolved package path", extra={"channel": channel, "attr": attr})
            diagnostics.append(
                Diagnostic(
                    category="unresolved_package_path",
                    message=e.message,
                    channel=channel,
                    subject=attr,
                )
            )
        return PingResolution(
            handles={k: normalize_handles(v) for k, v in sorted(collected.items())},
            diagnostics=diagnostics,
        )


def build_ping_report(decisions: list[TicketDecision]) -> dict[str, list[str]]:
    """Map each handle to the sorted package names of its open tickets."""
    report: dict[str, set[str]] = {}
    for d in decisions:
        if not d.is_open:
            continue
        for handle in d.maintainers:
            report.setdefault(handle, set()).add(d.name)
    return {h: sorted(names) for h, names in sorted(report.items())}
