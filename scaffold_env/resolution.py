"""Registry-assisted resolution of generator packages and their peers.

Generator packages declare the generators they compose with as peer
dependencies. Before a missing package is installed, its peers (and theirs,
recursively) are collected into the same install batch so transitive
generators land before their dependents.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from dataclasses import field

from .interfaces import PackageRepositoryProtocol
from .interfaces import RegistryClientProtocol
from .versions import max_satisfying

logger = logging.getLogger(__name__)


def is_generator_package(package_name: str, prefix: str) -> bool:
    """True for `<prefix>name` and `@scope/<prefix>name`."""
    return package_name.rsplit("/", 1)[-1].startswith(prefix)


@dataclass
class InstallBatch:
    """Packages to install in one call, plus every name already walked.

    Insertion order of `packages` is install order: peers precede the
    package that declared them.
    """

    packages: dict[str, str | None] = field(default_factory=dict)
    visited: set[str] = field(default_factory=set)

    def __contains__(self, package_name: object) -> bool:
        return package_name in self.packages or package_name in self.visited

    def __bool__(self) -> bool:
        return bool(self.packages)

    def add(self, package_name: str, version_range: str | None) -> None:
        self.packages.setdefault(package_name, version_range)


class PeerResolver:
    """Walks registry peer dependencies into an InstallBatch.

    The walk is sequential and depth-first: each branch reads the batch the
    previous branches filled, so it must not run concurrently.
    """

    def __init__(
        self,
        registry: RegistryClientProtocol,
        repository: PackageRepositoryProtocol,
        generator_prefix: str = "generator-",
    ) -> None:
        self.registry = registry
        self.repository = repository
        self.generator_prefix = generator_prefix

    async def collect(
        self, package_name: str, version_range: str | None, batch: InstallBatch
    ) -> bool:
        """
        Add the generator peers of a package version to the batch.

        Args:
            package_name: Package to inspect
            version_range: Range selecting the version whose peers are read
            batch: Batch and memo shared by the whole walk

        Returns:
            False when the registry could not describe the package (soft failure)
        """
        batch.visited.add(package_name)

        metadata = await self.registry.fetch_all(package_name)
        if not metadata.ok:
            logger.debug(f"Could not find registry package {package_name}: {metadata.error}")
            return False

        version = max_satisfying(metadata.versions.keys(), version_range)
        if version is None:
            logger.debug(f"No published version of {package_name} satisfies {version_range!r}")
            return False

        for peer_name, peer_range in metadata.peer_dependencies(version).items():
            if not is_generator_package(peer_name, self.generator_prefix) or peer_name in batch:
                continue
            if self.repository.verify_installed_version(peer_name, peer_range):
                logger.debug(f"Peer {peer_name}@{peer_range} of {package_name} already installed")
                continue
            logger.debug(f"Adding peer {peer_name}@{peer_range} required by {package_name}@{version}")
            batch.add(peer_name, peer_range)
            await self.collect(peer_name, peer_range, batch)

        return True
