"""Pydantic schemas for release-scoped whitelist rules."""

from pydantic import BaseModel, Field


class WhitelistRule(BaseModel):
    """
    Suppression directive for one package/CVE combination in one release.

    Exactly one of package or package_pattern is set. version is None or "*" for
    any version, a plain version for an exact match, or a comma-separated range
    of comparators (e.g. ">=1.1.0, <1.1.1").
    """

    model_config = {"frozen": True}

    release: str = Field(..., min_length=1, description="Release (channel) the rule applies to.")
    package: str | None = Field(default=None, description="Exact package name (pname).")
    package_pattern: str | None = Field(
        default=None,
        description="Glob matched against the package name, e.g. python3*-acoustics.",
    )
    version: str | None = Field(default=None, description="Version constraint.")
    cve_id: str = Field(..., min_length=1, description="Suppressed CVE identifier.")
    comment: str | None = Field(default=None, description="Free-text justification.")
    issue_url: str | None = Field(default=None, description="Tracking issue for the suppression.")

    @property
    def key(self) -> tuple[str, str, str, str]:
        """Canonical ordering key."""
        return (
            self.release,
            self.package or self.package_pattern or "",
            self.version or "",
            self.cve_id,
        )

    def describe(self) -> str:
        """Short human-readable form used in diagnostics and closure notices."""
        name = self.package or self.package_pattern or "?"
        if self.version and self.version != "*":
            name = f"{name} ({self.version})"
        return f"{self.release}: {name} {self.cve_id}"
