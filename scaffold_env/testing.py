"""
Testing utilities for scaffold-env.
Provides in-memory collaborators and helpers for environment and compose tests.
"""

from collections.abc import Callable
from pathlib import Path
from typing import Any

from .environment import Environment
from .models import GeneratorMeta
from .models import LookupOptions
from .models import PackageMetadata
from .settings import EnvironmentSettings
from .task_queue import TaskQueue
from .versions import satisfies


class InMemoryRepository:
    """Package repository keeping installed versions in a dict."""

    def __init__(
        self,
        installed: dict[str, str] | None = None,
        on_install: Callable[[dict[str, str | None]], None] | None = None,
        succeed: bool = True,
    ):
        self.installed = dict(installed or {})
        self.on_install = on_install
        self.succeed = succeed
        self.install_calls: list[dict[str, str | None]] = []
        self.verify_calls: list[tuple[str, str | None]] = []

    def verify_installed_version(self, package_hint: str, version_range: str | None) -> str | None:
        self.verify_calls.append((package_hint, version_range))
        version = self.installed.get(package_hint)
        if version is None:
            return None
        if version_range and not satisfies(version, version_range):
            return None
        return version

    async def install(self, packages: dict[str, str | None]) -> bool:
        """Record the batch, then let on_install register what it "installed"."""
        self.install_calls.append(dict(packages))
        if not self.succeed:
            return False
        for name in packages:
            self.installed.setdefault(name, "1.0.0")
        if self.on_install is not None:
            self.on_install(dict(packages))
        return True


class FakeRegistryClient:
    """Registry returning canned metadata; unknown packages come back with an error."""

    def __init__(self, packages: dict[str, dict[str, dict[str, Any]]] | None = None):
        """
        Args:
            packages: Package name to {version: manifest}
        """
        self.packages = dict(packages or {})
        self.calls: list[str] = []

    async def fetch_all(self, package_hint: str) -> PackageMetadata:
        self.calls.append(package_hint)
        versions = self.packages.get(package_hint)
        if versions is None:
            return PackageMetadata(name=package_hint, error=f"{package_hint} not found")
        return PackageMetadata(name=package_hint, versions=versions)


class RecordingLookup:
    """Lookup returning preset results per package pattern and recording queries."""

    def __init__(self, results: dict[str, list[GeneratorMeta]] | None = None):
        self.results = dict(results or {})
        self.calls: list[LookupOptions] = []

    def lookup(self, options: LookupOptions) -> list[GeneratorMeta]:
        self.calls.append(options)
        found: list[GeneratorMeta] = []
        for pattern in options.package_patterns:
            found.extend(self.results.get(pattern, []))
        if options.single_result:
            return found[:1]
        return found


def create_test_environment(
    tmp_path: Path,
    *,
    repository: Any = None,
    registry: Any = None,
    lookup: Any = None,
    **settings: Any,
) -> Environment:
    """
    Create an environment rooted in a temporary directory with in-memory collaborators.

    Args:
        tmp_path: Directory used as the environment home
        repository: Repository collaborator (InMemoryRepository by default)
        registry: Registry collaborator (FakeRegistryClient by default)
        lookup: Lookup collaborator (RecordingLookup by default)
        **settings: EnvironmentSettings field overrides

    Returns:
        Environment with a TaskQueue collecting queued generators
    """
    return Environment(
        EnvironmentSettings(home=tmp_path, **settings),
        repository=repository or InMemoryRepository(),
        registry=registry or FakeRegistryClient(),
        lookup=lookup or RecordingLookup(),
        task_queue=TaskQueue(),
    )
