"""JSON document reading with graceful defaults."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def read_json(path: Path, default: dict[str, Any] | None = None) -> dict[str, Any]:
    """Read a JSON object from disk.

    Missing files, unreadable files, invalid JSON and non-object documents all
    return `default` (an empty dict when not given). Never raises.
    """
    fallback = {} if default is None else default
    if not path.exists():
        return fallback

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
        logger.debug(f"Using default for {path} (load failed: {e})")
        return fallback

    if not isinstance(data, dict):
        logger.debug(f"Using default for {path} (not a JSON object)")
        return fallback
    return data
