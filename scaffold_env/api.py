"""Public API objects built for loaded generators."""

from __future__ import annotations

from collections.abc import Callable
from collections.abc import Iterator
from types import MappingProxyType
from typing import Any

from .exceptions import UnknownOperationError
from .interfaces import GeneratorProtocol

RESERVED_NAMES = frozenset({"generator", "config", "generator_config", "instance_config", "operations"})


class GeneratorApi:
    """
    Read-only view of a generator's public operations.

    The member set is fixed at creation. Operations stay bound to the
    generator, so calling them may still change generator state.
    """

    __slots__ = ("_generator", "_operations")

    def __init__(
        self, generator: GeneratorProtocol, operations: dict[str, Callable[..., Any]]
    ):
        for name, operation in operations.items():
            if name in RESERVED_NAMES:
                raise ValueError(f"Public operation name '{name}' is reserved")
            if not callable(operation):
                raise TypeError(f"Public operation '{name}' is not callable")
        object.__setattr__(self, "_generator", generator)
        object.__setattr__(self, "_operations", MappingProxyType(dict(operations)))

    @classmethod
    def from_generator(cls, generator: GeneratorProtocol) -> "GeneratorApi":
        return cls(generator, generator.list_public_operations())

    @property
    def generator(self) -> GeneratorProtocol:
        return self._generator

    @property
    def config(self) -> dict[str, Any]:
        return self._generator.config

    @property
    def generator_config(self) -> dict[str, Any]:
        return self._generator.generator_config

    @property
    def instance_config(self) -> dict[str, Any]:
        return self._generator.instance_config

    @property
    def operations(self) -> MappingProxyType:
        return self._operations

    def __getattr__(self, name: str) -> Callable[..., Any]:
        try:
            return self._operations[name]
        except KeyError:
            raise UnknownOperationError(
                f"Generator {self._generator!r} has no public operation '{name}'"
            ) from None

    def __getitem__(self, name: str) -> Callable[..., Any]:
        return self.__getattr__(name)

    def __contains__(self, name: object) -> bool:
        return name in self._operations

    def __iter__(self) -> Iterator[str]:
        return iter(self._operations)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("GeneratorApi is read-only")

    def __delattr__(self, name: str) -> None:
        raise AttributeError("GeneratorApi is read-only")

    def __dir__(self) -> list[str]:
        return sorted(set(super().__dir__()) | set(self._operations))

    def __repr__(self) -> str:
        return f"GeneratorApi({self._generator!r}, operations={list(self._operations)})"
