"""FIFO of generators whose scheduled work is waiting to run."""

import inspect
import logging
from typing import Any

from .interfaces import GeneratorProtocol

logger = logging.getLogger(__name__)


class TaskQueue:
    """
    Default task-queue collaborator.

    Running generator tasks belongs to the execution runtime; this queue only
    records the order in which generators were queued. drain() hands them to
    an optional runner (sync or async callable) in that order.
    """

    def __init__(self):
        self._pending: list[GeneratorProtocol] = []

    @property
    def pending(self) -> list[GeneratorProtocol]:
        return list(self._pending)

    def queue_tasks(self, generator: GeneratorProtocol) -> None:
        self._pending.append(generator)
        logger.debug(f"Queued tasks of {generator!r}")

    async def drain(self, runner: Any = None) -> list[GeneratorProtocol]:
        """Remove and return queued generators, running each through `runner` if given."""
        drained, self._pending = self._pending, []
        if runner is not None:
            for generator in drained:
                result = runner(generator)
                if inspect.isawaitable(result):
                    await result
        return drained
