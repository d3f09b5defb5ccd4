"""Local store of installed generator packages.

Packages are installed with npm into `<repository>/node_modules/<name>` and
identified by the `version` of their `package.json`. The install policy is
owned here: failures are logged and reported as False, and callers re-check
what is actually installed afterwards.
"""

from __future__ import annotations

import asyncio
import logging
import subprocess
from pathlib import Path

from .io import read_json
from .versions import satisfies

logger = logging.getLogger(__name__)


class PackageRepository:
    """npm-backed package store rooted at a directory."""

    def __init__(self, repository_path: Path, npm_command: str = "npm") -> None:
        """
        Args:
            repository_path: Directory used as npm --prefix.
            npm_command: npm executable name or path.
        """
        self.repository_path = repository_path
        self.npm_command = npm_command

    @property
    def node_modules(self) -> Path:
        return self.repository_path / "node_modules"

    def package_path(self, package_hint: str) -> Path:
        return self.node_modules.joinpath(*package_hint.split("/"))

    def installed_version(self, package_hint: str) -> str | None:
        manifest = read_json(self.package_path(package_hint) / "package.json")
        version = manifest.get("version")
        return version if isinstance(version, str) else None

    def verify_installed_version(
        self, package_hint: str, version_range: str | None
    ) -> str | None:
        """Installed version if it satisfies the range, else None."""
        version = self.installed_version(package_hint)
        if version is None:
            return None
        if version_range and not satisfies(version, version_range):
            logger.debug(
                f"Installed {package_hint}@{version} does not satisfy {version_range}"
            )
            return None
        return version

    async def install(self, packages: dict[str, str | None]) -> bool:
        """Install a batch of packages with a single npm call."""
        if not packages:
            return True

        specs = [f"{name}@{rng}" if rng else name for name, rng in packages.items()]
        self.repository_path.mkdir(parents=True, exist_ok=True)
        logger.info(f"Installing {', '.join(specs)} into {self.repository_path}")

        try:
            await asyncio.to_thread(
                subprocess.run,
                [
                    self.npm_command,
                    "install",
                    "--prefix",
                    str(self.repository_path),
                    "--no-audit",
                    "--no-fund",
                    *specs,
                ],
                check=True,
                capture_output=True,
                text=True,
            )
        except subprocess.CalledProcessError as e:
            logger.error(
                f"Failed to install {', '.join(specs)}.\nstdout: {e.stdout}\nstderr: {e.stderr}"
            )
            return False
        except FileNotFoundError:
            logger.error(
                f"{self.npm_command} is not installed. Please install Node.js and npm: https://nodejs.org/"
            )
            return False
        return True
