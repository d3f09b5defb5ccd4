"""
Shared fixtures for scaffold-env tests.

- created: list collecting every generator instance constructed in a test
- env: environment with in-memory collaborators and foo:app / foo:sub registered
- compose: root compose context at tmp_path/project
"""

import asyncio
from pathlib import Path

import pytest

from scaffold_env.compose import ComposeContext
from scaffold_env.environment import Environment
from scaffold_env.generator import Generator
from scaffold_env.generator import public
from scaffold_env.testing import create_test_environment


def make_generator_class(created: list) -> type:
    """Generator class recording its instances in `created`."""

    class RecordingGenerator(Generator):
        def __init__(self, args=None, options=None):
            super().__init__(args, options)
            created.append(self)

        @public
        def run(self, value=None):
            suffix = f":{value}" if value is not None else ""
            return f"run:{self.instance_id or '-'}{suffix}"

        @public
        async def finish(self):
            await asyncio.sleep(0)
            return "finished"

    return RecordingGenerator


@pytest.fixture
def created() -> list:
    return []


@pytest.fixture
def env(tmp_path: Path, created: list) -> Environment:
    environment = create_test_environment(tmp_path / "home")
    generator_class = make_generator_class(created)
    environment.register_stub(generator_class, "foo:app")
    environment.register_stub(generator_class, "foo:sub")
    return environment


@pytest.fixture
def project(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def compose(env: Environment, project: Path) -> ComposeContext:
    return env.create_compose(project, {"color": "shared", "level": "shared"})
