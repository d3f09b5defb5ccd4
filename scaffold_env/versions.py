"""npm-style semver range helpers.

Thin wrappers over node-semver so a missing range means "any version" and a
malformed range never raises.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

import nodesemver

logger = logging.getLogger(__name__)

ANY_VERSION = "*"


def valid_range(version_range: str | None) -> bool:
    """True when the range is absent or parses as an npm range."""
    if version_range is None:
        return True
    try:
        return nodesemver.valid_range(version_range, False) is not None
    except (ValueError, TypeError):
        return False


def satisfies(version: str, version_range: str | None) -> bool:
    try:
        return bool(nodesemver.satisfies(version, version_range or ANY_VERSION, False))
    except (ValueError, TypeError) as e:
        logger.debug(f"Cannot compare {version} with {version_range!r}: {e}")
        return False


def max_satisfying(versions: Iterable[str], version_range: str | None) -> str | None:
    """Highest version satisfying the range, or None."""
    try:
        return nodesemver.max_satisfying(list(versions), version_range or ANY_VERSION, False)
    except (ValueError, TypeError) as e:
        logger.debug(f"Cannot select a version for {version_range!r}: {e}")
        return None
