"""
One-shot load events for a compose context.
Each namespace id owns a cell that is resolved at most once with the
generator API; listeners registered before resolution fire exactly once.
"""

import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass
from dataclasses import field
from typing import Any

logger = logging.getLogger(__name__)

GENERATOR_LOAD = "generator:load"


@dataclass
class LoadListener:
    """Registered one-shot listener."""

    callback: Callable[[Any], Any]
    name: str | None = None


@dataclass
class LoadCell:
    """State of one id: unresolved, or resolved with a value."""

    resolved: bool = False
    value: Any = None
    listeners: list[LoadListener] = field(default_factory=list)


async def invoke(callback: Callable[..., Any], *args: Any) -> Any:
    """Call a sync or async callable and return its (awaited) result."""
    result = callback(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


class LoadEvents:
    """
    Per-context notification channel keyed by namespace id.
    Loading is monotonic, so a cell never goes back to unresolved.
    """

    def __init__(self):
        self._cells: dict[str, LoadCell] = {}

    def _cell(self, key: str) -> LoadCell:
        cell = self._cells.get(key)
        if cell is None:
            cell = self._cells[key] = LoadCell()
        return cell

    def is_resolved(self, key: str) -> bool:
        cell = self._cells.get(key)
        return cell is not None and cell.resolved

    def listener_count(self, key: str) -> int:
        cell = self._cells.get(key)
        return len(cell.listeners) if cell else 0

    async def once(
        self, key: str, callback: Callable[[Any], Any], name: str | None = None
    ) -> Any:
        """
        Run callback with the resolved value, now or on resolution.

        Args:
            key: Namespace id
            callback: Sync or async callable receiving the value
            name: Optional listener name for debugging

        Returns:
            Callback result if the cell is already resolved, otherwise None
        """
        cell = self._cell(key)
        if cell.resolved:
            return await invoke(callback, cell.value)

        listener = LoadListener(callback=callback, name=name or getattr(callback, "__name__", None))
        cell.listeners.append(listener)
        logger.debug(f"Registered load listener '{listener.name}' for '{key}'")
        return None

    def resolve(self, key: str, value: Any) -> list[LoadListener]:
        """
        Resolve the cell and detach its pending listeners without running them.

        The listener list is detached before any callback can run, so a
        listener registered afterwards sees the resolved cell instead.

        Returns:
            Listeners the caller must invoke (empty on a repeated resolve)
        """
        cell = self._cell(key)
        if cell.resolved:
            logger.warning(f"Ignoring repeated {GENERATOR_LOAD} for '{key}'")
            return []

        cell.resolved = True
        cell.value = value
        listeners, cell.listeners = cell.listeners, []
        return listeners

    async def emit(self, key: str, value: Any) -> None:
        """
        Resolve the cell and fire every pending listener once.

        Every listener runs even when an earlier one fails. The first
        listener error is then raised; later ones are logged.
        """
        listeners = self.resolve(key, value)
        logger.debug(
            f"Emitting {GENERATOR_LOAD} for '{key}' to {len(listeners)} listeners"
        )

        first_error: Exception | None = None
        for listener in listeners:
            try:
                await invoke(listener.callback, value)
            except Exception as e:
                logger.error(
                    f"Error in load listener '{listener.name}' for '{key}': {e}",
                    exc_info=True,
                )
                if first_error is None:
                    first_error = e

        if first_error is not None:
            raise first_error
