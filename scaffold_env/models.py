"""
Data models exchanged with the environment collaborators.
Uses Pydantic for validation and serialization.
"""

from pathlib import Path
from typing import Any

from pydantic import BaseModel
from pydantic import Field


class PackageMetadata(BaseModel):
    """Registry document for a package: every published manifest by version."""

    name: str = Field(..., description="Package name")
    versions: dict[str, dict[str, Any]] = Field(
        default_factory=dict, description="Manifest per published version"
    )
    error: str | None = Field(
        default=None, description="Set instead of raising when the fetch failed"
    )

    @property
    def ok(self) -> bool:
        return self.error is None

    def manifest(self, version: str) -> dict[str, Any]:
        return self.versions.get(version, {})

    def peer_dependencies(self, version: str) -> dict[str, str]:
        """Peer dependencies declared by one published version."""
        return dict(self.manifest(version).get("peerDependencies") or {})


class LookupOptions(BaseModel):
    """What a filesystem lookup should search for."""

    package_patterns: list[str] = Field(
        default_factory=lambda: ["*"], description="fnmatch patterns for package names"
    )
    file_patterns: list[str] | None = Field(
        default=None, description="Glob patterns relative to the package root"
    )
    single_result: bool = Field(
        default=False, description="Stop at the first generator found"
    )
    search_paths: list[Path] | None = Field(
        default=None, description="Override the lookup's own search paths"
    )


class GeneratorMeta(BaseModel):
    """A generator discovered on disk."""

    namespace: str = Field(..., description="Namespace derived from package and path")
    path: Path = Field(..., description="Python file defining the generator")
    package_path: Path = Field(..., description="Root directory of the package")
