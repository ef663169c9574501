"""Pydantic schemas for scanner findings: raw ingestion shape and the normalized finding."""

from typing import Any

from pydantic import BaseModel, Field, field_validator

SCORE_MIN = 0.0
SCORE_MAX = 10.0


def _validate_score(value: float | None) -> float | None:
    """Ensure a CVSS score is in [0, 10] when present."""
    if value is None:
        return None
    if not SCORE_MIN <= value <= SCORE_MAX:
        raise ValueError("score must be between 0 and 10")
    return value


class RawScanRecord(BaseModel):
    """Scanner record after shape mapping. All fields optional to accept varying scanner versions."""

    model_config = {"extra": "ignore"}

    name: str | None = Field(
        default=None,
        description="Package name+version as reported by the scanner (e.g. libtiff-4.0.9).",
    )
    pname: str | None = Field(default=None, description="Package name without version.")
    version: str | None = Field(default=None, description="Package version.")
    attr_path: list[str] = Field(
        default_factory=list,
        description="Attribute path segments, empty when the scanner did not report one.",
    )
    derivation: str | None = Field(
        default=None,
        description="Derivation path the scanner examined.",
    )
    cves: list[str] = Field(
        default_factory=list,
        description="Advisory identifiers affecting this package.",
    )
    scores: dict[str, Any] = Field(
        default_factory=dict,
        description="CVE id -> CVSSv3 base score as reported (validated by the normalizer).",
    )
    descriptions: dict[str, str] = Field(
        default_factory=dict,
        description="CVE id -> advisory description.",
    )
    patches: list[str] = Field(
        default_factory=list,
        description="Patches applied to the package.",
    )
    maintainers: list[str] = Field(
        default_factory=list,
        description="Maintainer handles reported alongside the record.",
    )
    outputs: list[str] = Field(
        default_factory=list,
        description="Outputs to install (outputsToInstall), used by the store-dump filter.",
    )


class Finding(BaseModel):
    """One (package, version, channel, CVE) vulnerability instance."""

    model_config = {"frozen": True}

    attr_path: tuple[str, ...] = Field(
        default=(),
        description="Attribute path segments, e.g. ('python3Packages', 'acoustics').",
    )
    name: str = Field(..., min_length=1, description="Package name+version.")
    pname: str = Field(..., min_length=1, description="Package name without version.")
    version: str = Field(default="", description="Package version.")
    channel: str = Field(..., min_length=1, description="Channel the scan ran against.")
    cve_id: str = Field(..., min_length=1, description="CVE identifier.")
    score: float | None = Field(
        default=None,
        description="CVSSv3 base score; absent scores rank lowest.",
    )
    description: str | None = Field(default=None, description="Advisory description.")
    patches: tuple[str, ...] = Field(default=(), description="Applied patches.")
    maintainers: tuple[str, ...] = Field(
        default=(),
        description="Maintainer handles reported by the scanner record.",
    )
    source_ref: str = Field(
        default="",
        description="Scanner record reference (derivation file name without store hash).",
    )
    derivation: str = Field(
        default="",
        description="Derivation path as reported, store hash included. Distinguishes aliases from distinct builds.",
    )
    outputs: tuple[str, ...] = Field(
        default=(),
        description="Package outputs installed alongside the default one (e.g. 'bin', 'lib').",
    )

    @field_validator("score")
    @classmethod
    def validate_score_if_present(cls, v: float | None) -> float | None:
        return _validate_score(v)

    @property
    def attribute(self) -> str:
        """Dotted attribute path, falling back to the package name."""
        return ".".join(self.attr_path) if self.attr_path else self.pname
