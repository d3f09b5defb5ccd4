"""Exception hierarchy for scaffold-env."""

from __future__ import annotations


class ScaffoldEnvError(Exception):
    """Base exception for all scaffold-env errors."""


class InvalidNamespaceError(ScaffoldEnvError, ValueError):
    """Namespace string does not match the namespace grammar."""


class NotLoadedError(ScaffoldEnvError):
    """Generator is not loaded in the compose context."""


class WildcardNotAllowedError(ScaffoldEnvError):
    """Operation does not accept the `*` instance id."""


class MalformedNamespaceError(ScaffoldEnvError):
    """Namespace carries methods or a version range where only an id is accepted."""


class NoMethodsSpecifiedError(ScaffoldEnvError):
    """Namespace passed to call() names no methods."""


class GeneratorRequiredError(ScaffoldEnvError):
    """Namespace has no generator path component."""


class UnknownOperationError(ScaffoldEnvError, AttributeError):
    """Generator API does not expose the requested operation."""


class GeneratorNotFoundError(ScaffoldEnvError):
    """No generator is registered for the namespace."""


class GeneratorLoadError(ScaffoldEnvError):
    """Generator file was found but could not be imported."""


class EnvironmentPreparationError(ScaffoldEnvError):
    """Some required namespaces could not be installed or found."""

    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__(f"Error preparing environment for {','.join(self.missing)}")
