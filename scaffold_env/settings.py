"""Settings for scaffold-env.

Philosophy: Simple, scope-aware YAML settings.

Resolution order (most specific wins):
1. Environment variables (SCAFFOLD_ENV_REGISTRY_URL, SCAFFOLD_ENV_REPOSITORY)
2. project (.scaffold-env/settings.yaml in the working directory)
3. global (<home>/settings.yaml)
4. Defaults below
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel
from pydantic import Field
from pydantic import ValidationError

from .dicts import deep_merge

logger = logging.getLogger(__name__)

SETTINGS_FILENAME = "settings.yaml"


def get_scaffold_home() -> Path:
    """Get the scaffold-env home directory.

    Resolves in order:
    1. SCAFFOLD_ENV_HOME environment variable
    2. ~/.scaffold-env (default)
    """
    env_home = os.environ.get("SCAFFOLD_ENV_HOME")
    if env_home:
        return Path(env_home).expanduser().resolve()
    return (Path.home() / ".scaffold-env").resolve()


class EnvironmentSettings(BaseModel):
    """Tunable policy of an Environment."""

    home: Path = Field(default_factory=get_scaffold_home)
    repository_path: Path | None = Field(
        default=None, description="Package store root; <home>/repository when unset"
    )
    registry_url: str = Field(default="https://registry.npmjs.org")
    registry_timeout: float = Field(default=10.0, gt=0, description="Seconds per registry request")
    config_filename: str = Field(default=".scaffold-rc.json")
    lookups: list[str] = Field(
        default_factory=lambda: ["generators", "lib/generators"],
        description="Directories inside a package that hold generators",
    )
    generator_prefix: str = Field(
        default="generator-", description="Peer dependencies with this prefix are generators"
    )
    search_paths: list[Path] = Field(
        default_factory=list, description="Extra directories holding generator packages"
    )

    @property
    def resolved_repository_path(self) -> Path:
        return self.repository_path or self.home / "repository"


def _read_settings_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            content = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Ignoring unreadable settings file {path}: {e}")
        return {}
    if not isinstance(content, dict):
        logger.warning(f"Ignoring settings file {path}: expected a mapping")
        return {}
    return content


def load_settings(
    home: Path | None = None, project_dir: Path | None = None, **overrides: Any
) -> EnvironmentSettings:
    """Load settings from YAML scopes, environment variables and overrides.

    Args:
        home: Home directory (defaults to get_scaffold_home()).
        project_dir: Directory holding .scaffold-env/settings.yaml (defaults to cwd).
        **overrides: Field values that win over every other source.

    Returns:
        Validated settings. A malformed settings file is logged and skipped.
    """
    home = home or get_scaffold_home()
    project_dir = project_dir or Path.cwd()

    merged: dict[str, Any] = {"home": home}
    for path in (home / SETTINGS_FILENAME, project_dir / ".scaffold-env" / SETTINGS_FILENAME):
        merged = deep_merge(merged, _read_settings_file(path))

    env_values: dict[str, Any] = {}
    if registry_url := os.environ.get("SCAFFOLD_ENV_REGISTRY_URL"):
        env_values["registry_url"] = registry_url
    if repository := os.environ.get("SCAFFOLD_ENV_REPOSITORY"):
        env_values["repository_path"] = repository
    explicit = {key: value for key, value in overrides.items() if value is not None}

    merged.update(env_values)
    merged.update(explicit)

    try:
        return EnvironmentSettings(**merged)
    except ValidationError as e:
        logger.warning(f"Invalid settings file values, using defaults: {e}")
        return EnvironmentSettings(**{"home": home, **env_values, **explicit})
