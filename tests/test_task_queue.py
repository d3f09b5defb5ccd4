"""Tests for the task queue collaborator."""

import pytest

from scaffold_env.generator import Generator
from scaffold_env.interfaces import TaskQueueProtocol
from scaffold_env.task_queue import TaskQueue


class TestTaskQueue:
    """Tests for TaskQueue."""

    def test_satisfies_protocol(self) -> None:
        assert isinstance(TaskQueue(), TaskQueueProtocol)

    def test_queue_order(self) -> None:
        queue = TaskQueue()
        first, second = Generator(), Generator()
        queue.queue_tasks(first)
        queue.queue_tasks(second)
        assert queue.pending == [first, second]

    @pytest.mark.asyncio
    async def test_drain_runs_in_order(self) -> None:
        """drain() empties the queue and awaits async runners."""
        queue = TaskQueue()
        generators = [Generator(), Generator()]
        for generator in generators:
            queue.queue_tasks(generator)
        ran = []

        async def runner(generator):
            ran.append(generator)

        assert await queue.drain(runner) == generators
        assert ran == generators
        assert queue.pending == []

    @pytest.mark.asyncio
    async def test_drain_without_runner(self) -> None:
        queue = TaskQueue()
        queue.queue_tasks(Generator())
        assert len(await queue.drain()) == 1
        assert await queue.drain() == []
