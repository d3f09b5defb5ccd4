"""
Registry of generators known to an environment.
Entries are either classes registered directly or files found by a lookup,
imported on first use.
"""

import importlib.util
import logging
import re
import sys
from pathlib import Path
from typing import Any

from .exceptions import GeneratorLoadError
from .generator import Generator
from .models import GeneratorMeta

logger = logging.getLogger(__name__)


def _module_name(namespace: str) -> str:
    return "scaffold_generator_" + re.sub(r"[^0-9a-zA-Z_]", "_", namespace)


class GeneratorStore:
    """Maps generator namespaces (no instance) to generator classes."""

    def __init__(self):
        self._classes: dict[str, type] = {}
        self._metas: dict[str, GeneratorMeta] = {}

    def add(self, meta: GeneratorMeta) -> None:
        """Register a generator file; it is imported lazily by get()."""
        if meta.namespace in self._metas and self._metas[meta.namespace].path == meta.path:
            return
        self._metas[meta.namespace] = meta
        self._classes.pop(meta.namespace, None)
        logger.debug(f"Registered generator '{meta.namespace}' from {meta.path}")

    def add_class(self, namespace: str, generator_class: type) -> None:
        """Register an already imported generator class."""
        self._classes[namespace] = generator_class
        self._metas.pop(namespace, None)
        logger.debug(f"Registered generator class {generator_class.__name__} as '{namespace}'")

    def __contains__(self, namespace: object) -> bool:
        return namespace in self._classes or namespace in self._metas

    def namespaces(self) -> list[str]:
        return sorted(set(self._classes) | set(self._metas))

    def get_meta(self, namespace: str) -> GeneratorMeta | None:
        return self._metas.get(namespace)

    def get(self, namespace: str) -> type | None:
        """
        Get the generator class for a namespace.

        Returns:
            Generator class, or None if nothing is registered

        Raises:
            GeneratorLoadError: Registered file could not be imported
        """
        if namespace in self._classes:
            return self._classes[namespace]
        meta = self._metas.get(namespace)
        if meta is None:
            return None
        generator_class = self._load_file(namespace, meta.path)
        self._classes[namespace] = generator_class
        return generator_class

    def _load_file(self, namespace: str, path: Path) -> type:
        module_name = _module_name(namespace)
        search_locations = [str(path.parent)] if path.name == "__init__.py" else None
        try:
            spec = importlib.util.spec_from_file_location(
                module_name, path, submodule_search_locations=search_locations
            )
            if spec is None or spec.loader is None:
                raise GeneratorLoadError(f"Cannot import generator '{namespace}' from {path}")
            module = importlib.util.module_from_spec(spec)
            sys.modules[module_name] = module
            spec.loader.exec_module(module)
        except GeneratorLoadError:
            raise
        except Exception as e:
            sys.modules.pop(module_name, None)
            raise GeneratorLoadError(f"Failed to import generator '{namespace}' from {path}: {e}") from e

        generator_class = self._find_generator_class(module)
        if generator_class is None:
            raise GeneratorLoadError(f"No generator class defined in {path}")
        logger.info(f"Loaded generator '{namespace}' from {path}")
        return generator_class

    @staticmethod
    def _find_generator_class(module: Any) -> type | None:
        """Explicit __generator__ first, else the first Generator subclass defined in the module."""
        declared = getattr(module, "__generator__", None)
        if declared is not None:
            return declared
        for value in vars(module).values():
            if (
                isinstance(value, type)
                and issubclass(value, Generator)
                and value is not Generator
                and value.__module__ == module.__name__
            ):
                return value
        return None
