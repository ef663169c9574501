"""Pydantic schemas for package metadata supplied by the package tree evaluation."""

from pydantic import BaseModel, Field


class PackageInfo(BaseModel):
    """Resolved metadata for one attribute path."""

    attr: str = Field(..., min_length=1, description="Dotted attribute path.")
    name: str = Field(default="", description="Package name+version the attribute evaluates to.")
    maintainers: list[str] = Field(
        default_factory=list,
        description="Maintainer GitHub handles as listed in package meta.",
    )
    outputs: list[str] = Field(
        default_factory=list,
        description="meta.outputsToInstall; a store dump may list name-<output> instead of name.",
    )
