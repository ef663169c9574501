"""Restrict a roundup to packages present in at least one Nix store dump."""

import logging
from collections.abc import Iterable, Iterator
from pathlib import Path

from pydantic import BaseModel, Field

from roundup.core.errors import StoreDumpInvalid
from roundup.schemas.findings import Finding
from roundup.services.maintainers import PackageMetadataProvider

logger = logging.getLogger(__name__)

# "/nix/store/" plus the 32-character hash and its dash.
_FULL_PATH_PREFIX = 44
_HASH_PREFIX = 33


def extract_derivations(listing: str) -> Iterator[str]:
    """
    Yield package names from a store listing, one path per line.

    Lines may be full store paths (/nix/store/<hash>-name), bare store entries
    (<hash>-name) or plain names. Blank lines are skipped.
    """
    for line in listing.splitlines():
        sp = line.strip()
        if not sp:
            continue
        if len(sp) > _FULL_PATH_PREFIX and sp[_FULL_PATH_PREFIX - 1] == "-":
            yield sp[_FULL_PATH_PREFIX:]
        elif len(sp) > _HASH_PREFIX and sp[_HASH_PREFIX - 1] == "-":
            yield sp[_HASH_PREFIX:]
        else:
            yield sp


class StoreContents:
    """Package names known from a directory of store dumps (one file per machine)."""

    def __init__(self, known: Iterable[str]) -> None:
        self.known = set(known)

    @classmethod
    def from_dir(cls, directory: Path) -> "StoreContents":
        """Read every regular, non-hidden file in directory."""
        directory = Path(directory)
        if not directory.is_dir():
            raise StoreDumpInvalid(f"store dump directory {directory} does not exist")
        known: set[str] = set()
        try:
            for entry in sorted(directory.iterdir()):
                if entry.is_file() and not entry.name.startswith("."):
                    known.update(extract_derivations(entry.read_text(encoding="utf-8")))
        except (OSError, UnicodeDecodeError) as e:
            raise StoreDumpInvalid(f"cannot read store dumps in {directory}: {e}") from e
        logger.info("Loaded store dumps", extra={"dir": str(directory), "paths": len(known)})
        return cls(known)

    def is_installed(self, name: str, outputs: Iterable[str] = ()) -> bool:
        """True when name, or name-<output> for a declared output, was seen in a dump."""
        if name in self.known:
            return True
        return any(f"{name}-{out}" in self.known for out in outputs)


class StoreFilterResult(BaseModel):
    kept: list[Finding] = Field(default_factory=list)
    dropped: list[Finding] = Field(default_factory=list)


def filter_installed(
    findings: list[Finding],
    contents: StoreContents,
    provider: PackageMetadataProvider | None = None,
) -> StoreFilterResult:
    """
    Keep findings whose package appears in the store dumps.

    Outputs come from the scanner record and, when the channel has package
    metadata for the attribute path, from its outputsToInstall.
    """
    result = StoreFilterResult()
    for f in findings:
        outputs = set(f.outputs)
        if provider is not None and f.attr_path:
            info = provider.resolve(f.attr_path)
            if info is not None:
                outputs.update(info.outputs)
        if contents.is_installed(f.name, sorted(outputs)):
            result.kept.append(f)
        else:
            result.dropped.append(f)
    if result.dropped:
        logger.debug(
            "Dropped findings not present in store dumps",
            extra={"dropped": len(result.dropped), "kept": len(result.kept)},
        )
    return result
