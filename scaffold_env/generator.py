"""Base class for generators.

Generators declare the operations other generators may call through the
compose API with the `@public` decorator. The list is recorded when the class
is defined, in declaration order, subclasses appending to their parents' list.

Example:
    class AppGenerator(Generator):
        @public
        def add_dependency(self, name: str) -> None:
            self.dependencies.append(name)

        @public
        async def render(self) -> str:
            ...
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING
from typing import Any

if TYPE_CHECKING:
    from .compose import ComposeContext
    from .environment import Environment
    from .namespace import Namespace

logger = logging.getLogger(__name__)

PUBLIC_MARKER = "__scaffold_public__"


def public(fn: Callable) -> Callable:
    """Mark a generator method as part of its public API."""
    setattr(fn, PUBLIC_MARKER, True)
    return fn


class Generator:
    """Minimal generator implementing GeneratorProtocol.

    Options recognized (passed by the compose context):
        destination_root: Working directory of the generator.
        compose: ComposeContext that owns the instance.
        env: Environment that created the instance.
        namespace: Parsed Namespace of the instance.
    """

    public_operations: tuple[str, ...] = ()

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        declared = [
            name
            for name, value in vars(cls).items()
            if getattr(value, PUBLIC_MARKER, False)
        ]
        inherited = [name for name in cls.public_operations if name not in declared]
        cls.public_operations = tuple(inherited + declared)

    def __init__(
        self, args: list[Any] | None = None, options: dict[str, Any] | None = None
    ) -> None:
        self.args = list(args or [])
        self.options = dict(options or {})
        self.env: Environment | None = self.options.get("env")
        self.compose: ComposeContext | None = self.options.get("compose")
        self.namespace: Namespace | None = self.options.get("namespace")
        root = self.options.get("destination_root")
        self.destination_root = Path(root) if root else Path.cwd()
        self.instance_id = self.args[0] if self.args else None

    @property
    def config(self) -> dict[str, Any]:
        """Package-level configuration."""
        if self.compose is None or self.namespace is None:
            return {}
        return self.compose.get_config(self.namespace.without_methods().with_instance(None))

    @property
    def generator_config(self) -> dict[str, Any]:
        """Configuration of this generator inside its package config."""
        if self.compose is None or self.namespace is None:
            return {}
        return self.compose.get_config(
            self.namespace.without_methods().with_instance(None), generator_config=True
        )

    @property
    def instance_config(self) -> dict[str, Any]:
        """Configuration of this instance, empty when not instanced."""
        if self.compose is None or self.namespace is None or self.instance_id is None:
            return {}
        return self.compose.get_config(self.namespace.with_instance(self.instance_id))

    def list_public_operations(self) -> dict[str, Callable[..., Any]]:
        """Bound public operations in declaration order."""
        return {name: getattr(self, name) for name in self.public_operations}

    def __repr__(self) -> str:
        namespace = self.namespace.id if self.namespace else "?"
        return f"<{self.__class__.__name__} {namespace} at {self.destination_root}>"
