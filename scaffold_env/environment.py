"""
Environment: generator registry, instantiation and environment preparation.

The environment knows which generators exist (registered classes and files
found by lookups), creates generator instances for compose contexts, and
prepares itself for a set of namespaces by installing missing packages from
the registry or falling back to local lookup.
"""

import logging
import re
from pathlib import Path
from typing import Any

from .compose import ComposeContext
from .exceptions import EnvironmentPreparationError
from .exceptions import GeneratorNotFoundError
from .interfaces import GeneratorProtocol
from .interfaces import LookupProtocol
from .interfaces import PackageRepositoryProtocol
from .interfaces import RegistryClientProtocol
from .interfaces import TaskQueueProtocol
from .lookup import GeneratorLookup
from .models import GeneratorMeta
from .models import LookupOptions
from .namespace import DEFAULT_GENERATOR_NAME
from .namespace import Namespace
from .namespace import parse_namespace
from .registry import RegistryClient
from .repository import PackageRepository
from .resolution import InstallBatch
from .resolution import PeerResolver
from .settings import EnvironmentSettings
from .settings import load_settings
from .store import GeneratorStore
from .task_queue import TaskQueue
from .versions import valid_range

logger = logging.getLogger(__name__)


class Environment:
    """
    Owns the generator store and the collaborators used to fill it.

    Collaborators default to the npm-backed repository, the httpx registry
    client, filesystem lookup and an in-memory task queue; any of them can be
    injected.
    """

    def __init__(
        self,
        settings: EnvironmentSettings | None = None,
        *,
        repository: PackageRepositoryProtocol | None = None,
        registry: RegistryClientProtocol | None = None,
        lookup: LookupProtocol | None = None,
        task_queue: TaskQueueProtocol | None = None,
        store: GeneratorStore | None = None,
    ):
        """
        Initialize environment.

        Args:
            settings: Environment settings (loaded from disk and env vars when omitted)
            repository: Package store collaborator
            registry: Registry metadata collaborator
            lookup: Filesystem lookup collaborator
            task_queue: Receives generators whose tasks should run
            store: Generator store (fresh when omitted)
        """
        self.settings = settings or load_settings()
        self.store = store or GeneratorStore()
        self.repository = repository or PackageRepository(self.settings.resolved_repository_path)
        self.registry = registry or RegistryClient(
            self.settings.registry_url, timeout=self.settings.registry_timeout
        )
        self.lookup_provider = lookup or GeneratorLookup(
            search_paths=[self.repository_packages_path, *self.settings.search_paths],
            lookups=self.settings.lookups,
        )
        self.task_queue = task_queue or TaskQueue()
        self.root_generator: GeneratorProtocol | None = None
        self._aliases: list[tuple[re.Pattern, str]] = []

        # A bare package name means its default generator.
        self.alias(r"^([^:]+)$", rf"\1:{DEFAULT_GENERATOR_NAME}")

    @property
    def lookups(self) -> list[str]:
        return self.settings.lookups

    @property
    def repository_packages_path(self) -> Path:
        return self.settings.resolved_repository_path / "node_modules"

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def require_namespace(self, namespace: str | Namespace) -> Namespace:
        """Parse a namespace, raising InvalidNamespaceError when malformed."""
        return parse_namespace(namespace)

    def alias(self, match: str, value: str) -> None:
        """
        Register a namespace alias.

        Args:
            match: Regular expression matched against generator namespaces
            value: Replacement (re.sub syntax, e.g. r"\\1:app")
        """
        self._aliases.append((re.compile(match), value))

    def resolve_alias(self, namespace: str) -> str:
        """Apply every alias in registration order."""
        for pattern, value in self._aliases:
            if pattern.search(namespace):
                namespace = pattern.sub(value, namespace)
        return namespace

    def register(self, path: Path, namespace: str | Namespace) -> None:
        """Register a generator file under a namespace (imported lazily)."""
        ns = self.require_namespace(namespace)
        self.store.add(GeneratorMeta(namespace=ns.namespace, path=Path(path), package_path=Path(path).parent))

    def register_stub(self, generator_class: type, namespace: str | Namespace) -> None:
        """Register an in-memory generator class under a namespace."""
        ns = self.require_namespace(namespace)
        self.store.add_class(ns.namespace, generator_class)

    def _store_key(self, namespace: Namespace) -> str | None:
        if namespace.namespace in self.store:
            return namespace.namespace
        aliased = self.resolve_alias(namespace.namespace)
        if aliased in self.store:
            return aliased
        return None

    def is_registered(self, namespace: str | Namespace) -> bool:
        """True when a generator is known for the namespace, without importing it."""
        return self._store_key(self.require_namespace(namespace)) is not None

    def get_by_namespace(self, namespace: str | Namespace) -> type | None:
        """Get the generator class for a namespace, or None."""
        key = self._store_key(self.require_namespace(namespace))
        return self.store.get(key) if key else None

    def create(
        self,
        namespace: str | Namespace,
        arguments: list[Any] | None = None,
        options: dict[str, Any] | None = None,
    ) -> GeneratorProtocol:
        """
        Instantiate the generator registered for a namespace.

        Raises:
            GeneratorNotFoundError: Nothing is registered for the namespace
        """
        ns = self.require_namespace(namespace)
        generator_class = self.get_by_namespace(ns)
        if generator_class is None:
            raise GeneratorNotFoundError(
                f"You don't seem to have a generator with the name '{ns.namespace}' installed"
            )
        logger.debug(f"Instantiating {generator_class.__name__} for '{ns.id}'")
        return generator_class(
            list(arguments or []), {**(options or {}), "env": self, "namespace": ns}
        )

    def queue_tasks(self, generator: GeneratorProtocol) -> None:
        self.task_queue.queue_tasks(generator)

    def create_compose(
        self, destination_root: Path | str, options: dict[str, Any] | None = None
    ) -> ComposeContext:
        """Create a root compose context, loading the root generator if set."""
        return ComposeContext(
            self,
            destination_root,
            shared_options=options,
            root_generator=self.root_generator,
        )

    # ------------------------------------------------------------------
    # Lookup and install
    # ------------------------------------------------------------------

    def lookup(self, options: LookupOptions) -> list[GeneratorMeta]:
        """Run the lookup collaborator and register what it finds."""
        found = self.lookup_provider.lookup(options)
        for meta in found:
            self.store.add(meta)
        if found:
            logger.info(f"Registered {len(found)} generators from lookup")
        return found

    def lookup_namespaces(
        self, namespaces: list[str | Namespace], lookups: list[str] | None = None
    ) -> list[GeneratorMeta]:
        """
        Search the lookup locations for the given namespaces.

        Namespaces with a generator path only match that generator's files;
        bare package namespaces register every generator of the package.
        """
        lookups = lookups or self.lookups
        found: list[GeneratorMeta] = []
        for namespace in namespaces:
            ns = self.require_namespace(namespace)
            options = LookupOptions(package_patterns=[ns.package_hint])
            if ns.generator_path:
                options.file_patterns = [
                    pattern
                    for prefix in lookups
                    for pattern in (
                        f"{prefix}/{ns.generator_path}/__init__.py",
                        f"{prefix}/{ns.generator_path}.py",
                    )
                ]
                options.single_result = True
            found.extend(self.lookup(options))
        return found

    def lookup_local_namespaces(self, namespaces: list[str | Namespace]) -> list[GeneratorMeta]:
        """Look up namespaces whose packages are installed in the repository with a compatible version."""
        parsed = [self.require_namespace(ns) for ns in namespaces]
        compatible = [
            ns
            for ns in parsed
            if self.repository.verify_installed_version(ns.package_hint, ns.version_range) is not None
        ]
        if not compatible:
            return []
        return self.lookup(
            LookupOptions(
                package_patterns=[ns.package_hint for ns in compatible],
                search_paths=[self.repository_packages_path],
            )
        )

    async def install_local_generators(self, packages: dict[str, str | None]) -> bool:
        """Install packages into the repository and register their generators."""
        if not packages:
            return True
        success = await self.repository.install(packages)
        if not success:
            logger.warning(f"Install reported failure for {', '.join(packages)}")
        self.lookup(
            LookupOptions(
                package_patterns=list(packages),
                search_paths=[self.repository_packages_path],
            )
        )
        return success

    async def prepare_environment(self, namespaces: str | Namespace | list[str | Namespace]) -> bool:
        """
        Make every namespace resolvable, installing or looking up what is missing.

        Args:
            namespaces: Namespace or list of namespaces (version ranges honored)

        Returns:
            True when every namespace is registered

        Raises:
            EnvironmentPreparationError: Some namespaces are still missing
        """
        if not isinstance(namespaces, list):
            namespaces = [namespaces]
        logger.debug(f"Preparing {[str(ns) for ns in namespaces]}")
        missing = [self.require_namespace(ns) for ns in namespaces]

        def update_missing() -> list[Namespace]:
            nonlocal missing
            missing = [ns for ns in missing if not self.is_registered(ns)]
            return missing

        if not update_missing():
            return True

        batch = InstallBatch()
        resolver = PeerResolver(self.registry, self.repository, self.settings.generator_prefix)
        to_lookup: list[Namespace] = []

        for ns in missing:
            package_name = ns.package_hint
            version_range = ns.version_range
            if not valid_range(version_range):
                logger.debug(f"Not installing {ns.complete}: invalid version range")
                continue
            if self.repository.verify_installed_version(package_name, version_range):
                continue
            if package_name in batch.packages:
                continue
            if await resolver.collect(package_name, version_range, batch):
                batch.add(package_name, version_range)
            else:
                to_lookup.append(ns)

        if batch:
            logger.debug(f"Installing {batch.packages}")
            await self.install_local_generators(batch.packages)
            if not update_missing():
                return True

        # At last, try to lookup if install failed.
        if to_lookup:
            logger.debug(f"Registry unavailable for {[ns.complete for ns in to_lookup]}, looking up locally")
        self.lookup_namespaces(missing)

        if update_missing():
            raise EnvironmentPreparationError([ns.complete for ns in missing])
        return True
