"""Dictionary helpers for settings and configuration documents."""

from __future__ import annotations

from typing import Any


def deep_merge(parent: dict[str, Any], child: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries.

    Child values override parent values. For nested dicts, merge recursively.
    For other types (including lists), child replaces parent.

    Returns:
        Merged dictionary (new dict, inputs not modified).
    """
    result = parent.copy()

    for key, child_value in child.items():
        parent_value = result.get(key)
        if isinstance(parent_value, dict) and isinstance(child_value, dict):
            result[key] = deep_merge(parent_value, child_value)
        else:
            result[key] = child_value

    return result


def get_nested(data: Any, path: list[str], default: Any = None) -> Any:
    """Get a value from a nested dictionary by path.

    Example:
        >>> get_nested({'a': {'b': {'c': 1}}}, ['a', 'b', 'c'])
        1
        >>> get_nested({'a': 1}, ['a', 'b'], default={})
        {}
    """
    current = data
    for key in path:
        if not isinstance(current, dict) or key not in current:
            return default
        current = current[key]
    return current
