"""Filesystem discovery of generators.

Search paths hold package directories (scoped packages under `@scope/`).
Inside a package, generators live below one of the lookup prefixes:

    <search path>/foo/generators/app/__init__.py     -> foo:app
    <search path>/foo/generators/sub.py              -> foo:sub
    <search path>/@acme/foo/lib/generators/x.py      -> @acme/foo:x
    <search path>/foo/generators/sub/deep.py         -> foo:sub/deep (explicit patterns only)
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from fnmatch import fnmatch
from pathlib import Path

from .exceptions import InvalidNamespaceError
from .models import GeneratorMeta
from .models import LookupOptions
from .namespace import parse_namespace

logger = logging.getLogger(__name__)


def default_file_patterns(lookups: list[str]) -> list[str]:
    """Patterns matching the top-level generators below the lookup prefixes.

    Nested generators (foo:sub/deep) are only found through explicit patterns,
    so helper modules inside a generator package are never mistaken for one.
    """
    patterns = []
    for prefix in lookups:
        patterns.append(f"{prefix}/*/__init__.py")
        patterns.append(f"{prefix}/*.py")
    return patterns


class GeneratorLookup:
    """Scan search paths for generator packages and files."""

    def __init__(self, search_paths: list[Path], lookups: list[str]) -> None:
        """
        Args:
            search_paths: Directories containing package directories.
            lookups: Directories inside a package that hold generators.
        """
        self.search_paths = list(search_paths)
        self.lookups = list(lookups)

    def lookup(self, options: LookupOptions) -> list[GeneratorMeta]:
        """Find generators matching the options, in search path order."""
        results: list[GeneratorMeta] = []
        seen: set[str] = set()
        file_patterns = options.file_patterns or default_file_patterns(self.lookups)

        for search_path in options.search_paths or self.search_paths:
            if not search_path.is_dir():
                logger.debug(f"Lookup path does not exist: {search_path}")
                continue

            for package_name, package_dir in self._package_dirs(search_path):
                if not any(fnmatch(package_name, p) for p in options.package_patterns):
                    continue

                for pattern in file_patterns:
                    for path in sorted(package_dir.glob(pattern)):
                        namespace = self._namespace_for(package_name, package_dir, path)
                        if namespace is None or namespace in seen:
                            continue
                        seen.add(namespace)
                        results.append(
                            GeneratorMeta(namespace=namespace, path=path, package_path=package_dir)
                        )
                        logger.debug(f"Discovered generator '{namespace}' at {path}")
                        if options.single_result:
                            return results

        return results

    def _package_dirs(self, search_path: Path) -> Iterator[tuple[str, Path]]:
        for item in sorted(search_path.iterdir()):
            if not item.is_dir():
                continue
            if item.name.startswith("@"):
                for scoped in sorted(item.iterdir()):
                    if scoped.is_dir():
                        yield f"{item.name}/{scoped.name}", scoped
            elif not item.name.startswith("."):
                yield item.name, item

    def _namespace_for(self, package_name: str, package_dir: Path, path: Path) -> str | None:
        relative = path.relative_to(package_dir).as_posix()

        generator_path = None
        for prefix in sorted(self.lookups, key=len, reverse=True):
            prefix = prefix.strip("/")
            if prefix in ("", "."):
                generator_path = relative
                break
            if relative.startswith(prefix + "/"):
                generator_path = relative[len(prefix) + 1 :]
                break
        if generator_path is None:
            return None

        if generator_path.endswith("/__init__.py"):
            generator_path = generator_path[: -len("/__init__.py")]
        elif generator_path.endswith(".py") and not generator_path.endswith("__init__.py"):
            generator_path = generator_path[: -len(".py")]
        else:
            return None

        try:
            namespace = parse_namespace(f"{package_name}:{generator_path}")
        except InvalidNamespaceError:
            namespace = None
        # Names outside the grammar may still parse as a method list.
        if namespace is None or namespace.generator_path != generator_path:
            logger.debug(f"Skipping {path}: '{generator_path}' is not a valid generator path")
            return None
        return namespace.namespace
