"""
Collaborator interfaces used by the compose and resolution core.
Uses Protocol classes for structural subtyping (no inheritance required).

Default implementations live in repository.py, registry.py, lookup.py and
task_queue.py; tests substitute the fakes from testing.py.
"""

from collections.abc import Callable
from typing import Any
from typing import Protocol
from typing import runtime_checkable

from .models import GeneratorMeta
from .models import LookupOptions
from .models import PackageMetadata


@runtime_checkable
class GeneratorProtocol(Protocol):
    """Interface a generator instance offers to its compose context."""

    options: dict[str, Any]

    @property
    def config(self) -> dict[str, Any]: ...

    @property
    def generator_config(self) -> dict[str, Any]: ...

    @property
    def instance_config(self) -> dict[str, Any]: ...

    def list_public_operations(self) -> dict[str, Callable[..., Any]]:
        """
        Operations exposed through the generator API.

        Returns:
            Mapping of operation name to bound callable, in declaration order
        """
        ...


@runtime_checkable
class PackageRepositoryProtocol(Protocol):
    """Local store of installed generator packages."""

    def verify_installed_version(
        self, package_hint: str, version_range: str | None
    ) -> str | None:
        """
        Check whether an installed package satisfies a range.

        Args:
            package_hint: Package name
            version_range: Semver range, None for any version

        Returns:
            Installed version, or None when missing or incompatible
        """
        ...

    async def install(self, packages: dict[str, str | None]) -> bool:
        """
        Install a batch of packages.

        Args:
            packages: Package name to semver range (None for latest)

        Returns:
            True if the installer reported success
        """
        ...


@runtime_checkable
class RegistryClientProtocol(Protocol):
    """Package registry metadata source."""

    async def fetch_all(self, package_hint: str) -> PackageMetadata:
        """
        Fetch all published versions of a package.

        Must not raise for unavailable packages or network failures; the
        returned metadata carries an `error` instead.
        """
        ...


@runtime_checkable
class LookupProtocol(Protocol):
    """Filesystem discovery of generators."""

    def lookup(self, options: LookupOptions) -> list[GeneratorMeta]: ...


@runtime_checkable
class TaskQueueProtocol(Protocol):
    """Receives generators whose scheduled work should run."""

    def queue_tasks(self, generator: GeneratorProtocol) -> None: ...
