"""Namespace parsing and canonical keys.

A namespace names a generator, optionally narrowed to an instance, decorated
with methods to invoke and a version range to install:

    [@scope/]package[:generator/path][#instance][:method1,method2][@range]

Examples:
    foo                         package "foo", no generator
    foo:app                     generator "app" of package "foo"
    @acme/foo:sub/deep#one      scoped package, nested generator, instance "one"
    foo:sub#*                   every persisted instance of foo:sub
    foo:sub#one:run,finish      invoke run() then finish() on instance "one"
    foo:sub@^1.0.0              install foo with a semver range if missing

The `id` (no methods, no range) is the identity of a loaded generator and the
key under which its configuration is persisted, so its format must stay stable.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from dataclasses import field
from dataclasses import replace

from .exceptions import InvalidNamespaceError

WILDCARD = "*"
INSTANCE_MARKER = "#"
DEFAULT_GENERATOR_NAME = "app"

_NAME = r"[a-z0-9-~][a-z0-9-._~]*"
_METHOD = r"[A-Za-z_][A-Za-z0-9_]*"

_NAMESPACE_PATTERN = re.compile(
    rf"^(?:@(?P<scope>{_NAME})/)?"
    rf"(?P<package>{_NAME})"
    rf"(?::(?P<generator>{_NAME}(?:/{_NAME})*))?"
    rf"(?:#(?P<instance>{_NAME}|\*))?"
    rf"(?::(?P<methods>{_METHOD}(?:,{_METHOD})*))?"
    r"(?:@(?P<range>[^@]*))?$"
)


@dataclass(frozen=True, eq=False)
class Namespace:
    """Parsed namespace. Equality and hashing use `id` only."""

    package: str
    scope: str | None = None
    generator_path: str = ""
    instance_id: str | None = None
    methods: tuple[str, ...] = field(default_factory=tuple)
    version_range: str | None = None

    @property
    def package_hint(self) -> str:
        """Registry lookup name, also the top-level config key."""
        if self.scope:
            return f"@{self.scope}/{self.package}"
        return self.package

    @property
    def namespace(self) -> str:
        """Generator namespace without instance."""
        if self.generator_path:
            return f"{self.package_hint}:{self.generator_path}"
        return self.package_hint

    @property
    def unscoped(self) -> str:
        if self.generator_path:
            return f"{self.package}:{self.generator_path}"
        return self.package

    @property
    def generator_name(self) -> str:
        """Config key of the generator inside its package config."""
        return self.generator_path or DEFAULT_GENERATOR_NAME

    @property
    def instance_name(self) -> str | None:
        """Config key of the instance inside its generator config."""
        if self.instance_id is None:
            return None
        return f"{INSTANCE_MARKER}{self.instance_id}"

    @property
    def is_wildcard(self) -> bool:
        return self.instance_id == WILDCARD

    @property
    def id(self) -> str:
        return to_id(self)

    @property
    def complete(self) -> str:
        return to_complete(self)

    def with_instance(self, instance_id: str | None) -> Namespace:
        """Copy with another instance id (used for wildcard fan-out)."""
        return replace(self, instance_id=instance_id)

    def with_methods(self, methods: list[str] | tuple[str, ...]) -> Namespace:
        return replace(self, methods=tuple(methods))

    def without_methods(self) -> Namespace:
        return replace(self, methods=())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Namespace):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)

    def __str__(self) -> str:
        return self.complete


def to_id(namespace: Namespace) -> str:
    """Canonical identity string: namespace plus instance, no methods or range."""
    if namespace.instance_id is None:
        return namespace.namespace
    return f"{namespace.namespace}{INSTANCE_MARKER}{namespace.instance_id}"


def to_complete(namespace: Namespace) -> str:
    """Full string including methods and version range."""
    complete = to_id(namespace)
    if namespace.methods:
        complete += ":" + ",".join(namespace.methods)
    if namespace.version_range is not None:
        complete += f"@{namespace.version_range}"
    return complete


def parse_namespace(raw: str | Namespace) -> Namespace:
    """Parse a namespace string.

    Args:
        raw: Namespace string, or an already parsed Namespace (returned as is).

    Returns:
        Parsed Namespace.

    Raises:
        InvalidNamespaceError: If the string does not match the grammar.
    """
    if isinstance(raw, Namespace):
        return raw
    if not isinstance(raw, str):
        raise InvalidNamespaceError(f"Namespace must be a string, got {type(raw).__name__}")

    match = _NAMESPACE_PATTERN.match(raw.strip())
    if not match:
        raise InvalidNamespaceError(f"Invalid namespace: {raw!r}")

    version_range = match.group("range")
    if version_range is not None:
        version_range = version_range.strip()
        if not version_range:
            raise InvalidNamespaceError(f"Empty version range in namespace: {raw!r}")

    methods = match.group("methods")
    return Namespace(
        package=match.group("package"),
        scope=match.group("scope"),
        generator_path=match.group("generator") or "",
        instance_id=match.group("instance"),
        methods=tuple(methods.split(",")) if methods else (),
        version_range=version_range,
    )
