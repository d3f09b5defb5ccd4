"""
Compose contexts - the hierarchy that owns generator instances.

A context holds the generators loaded for one destination directory, at most
one instance per namespace id, and the public API built for each of them.
Children are created lazily per sub-namespace and share the root's
SharedState. Generators coordinate through the primitives below:

- do: get a loaded API or fail
- if_loaded: branch on whether a generator is loaded, never waits
- once: run a callback when a generator loads (or now)
- require: load a generator if needed and return its API
- call: invoke the methods named by a namespace
- compose_with: require then call, fanning out over `#*` instances
"""

import asyncio
import logging
import re
import weakref
from collections import UserDict
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING
from typing import Any

from .api import GeneratorApi
from .dicts import get_nested
from .events import LoadEvents
from .events import invoke
from .exceptions import GeneratorRequiredError
from .exceptions import MalformedNamespaceError
from .exceptions import NoMethodsSpecifiedError
from .exceptions import NotLoadedError
from .exceptions import WildcardNotAllowedError
from .interfaces import GeneratorProtocol
from .io import read_json
from .namespace import INSTANCE_MARKER
from .namespace import Namespace

if TYPE_CHECKING:
    from .environment import Environment

logger = logging.getLogger(__name__)


def api_key(namespace: Namespace) -> str:
    """Attribute-style key of a generator in the context's api surface."""
    return re.sub(r"[^0-9a-zA-Z]+", "_", namespace.unscoped).strip("_").lower()


class SharedState(UserDict):
    """
    Mutable mapping shared by every context of one compose tree.

    The root context creates it and children receive the same object. There
    is no locking: contexts run on one event loop and must not hold a
    read-modify-write across an await.
    """


class ComposeContext:
    """
    Generator container for one destination directory.

    Provides:
    - Lazily created child contexts keyed by namespace id
    - Configuration reads from the destination's config document
    - Load-once synchronization primitives between generators
    """

    def __init__(
        self,
        env: "Environment",
        destination_root: Path | str,
        *,
        parent: "ComposeContext | None" = None,
        shared_options: dict[str, Any] | None = None,
        namespace_options: dict[str, dict[str, Any]] | None = None,
        root_generator: GeneratorProtocol | None = None,
    ):
        """
        Initialize compose context.

        Args:
            env: Environment that creates generators
            destination_root: Directory this context scopes
            parent: Parent context (held weakly)
            shared_options: Options passed to every generator of this context
            namespace_options: Per-namespace option overrides
            root_generator: Already created generator to register at once
        """
        self.env = env
        self._destination_root = Path(destination_root)
        self._parent = weakref.ref(parent) if parent is not None else None
        self._children: dict[str, ComposeContext] = {}

        # Generators and their apis by namespace id.
        self._generators: dict[str, GeneratorProtocol] = {}
        self._generators_api: dict[str, GeneratorApi] = {}
        self._namespace_options: dict[str, dict[str, Any]] = {
            env.require_namespace(ns).id: dict(opts)
            for ns, opts in (namespace_options or {}).items()
        }
        self._shared_options = {**(shared_options or {}), "compose": self}
        self._pending: dict[str, asyncio.Future] = {}

        # Generator apis by unscoped name; instanced generators nest by instance id.
        self.api: dict[str, Any] = {}
        self.events = LoadEvents()
        self.shared: SharedState = parent.shared if parent is not None else SharedState()

        if root_generator is not None:
            api = self._register_generator(root_generator)
            self.events.resolve(root_generator.options["namespace"].id, api)

    @property
    def destination_root(self) -> Path:
        return self._destination_root

    @property
    def loaded(self) -> list[str]:
        """Ids of the generators loaded in this context, in load order."""
        return list(self._generators_api)

    def get_parent(self) -> "ComposeContext | None":
        return self._parent() if self._parent is not None else None

    def get_generator(self, namespace: str | Namespace) -> GeneratorProtocol | None:
        return self._generators.get(self.env.require_namespace(namespace).id)

    def set_namespace_options(self, namespace: str | Namespace, options: dict[str, Any]) -> None:
        """Set option overrides used when the namespace is instantiated here."""
        self._namespace_options[self.env.require_namespace(namespace).id] = dict(options)

    def create_child(
        self,
        id: str | Namespace,
        destination_root: Path | str,
        options: dict[str, dict[str, Any]] | None = None,
    ) -> "ComposeContext":
        """
        Get or create the child context registered under a namespace id.

        Args:
            id: Namespace identifying the child
            destination_root: Directory the child scopes (ignored if it exists)
            options: Per-namespace option overrides for the child's generators

        Returns:
            Child context
        """
        namespace = self.env.require_namespace(id)
        child = self._children.get(namespace.id)
        if child is None:
            inherited = {k: v for k, v in self._shared_options.items() if k != "compose"}
            child = ComposeContext(
                self.env,
                destination_root,
                parent=self,
                shared_options=inherited,
                namespace_options=options,
            )
            self._children[namespace.id] = child
            logger.debug(f"Created compose child '{namespace.id}' at {destination_root}")
        return child

    def get_config(self, namespace: str | Namespace, generator_config: bool = False) -> dict[str, Any]:
        """
        Get configuration of a namespace from the destination's config document.

        Args:
            namespace: Namespace to read the configuration for
            generator_config: Return the generator config instead of the package config

        Returns:
            Configuration dict, empty when the file or any key is missing
        """
        namespace = self.env.require_namespace(namespace)
        document = read_json(self._destination_root / self.env.settings.config_filename)
        config = get_nested(document, [namespace.package_hint], {})
        if generator_config or namespace.instance_id:
            config = get_nested(config, [namespace.generator_name], {})
        if namespace.instance_id:
            config = get_nested(config, [namespace.instance_name], {})
        return config if isinstance(config, dict) else {}

    def _instance_names(self, namespace: str | Namespace) -> list[str]:
        """Instance ids persisted in the generator config."""
        namespace = self.env.require_namespace(namespace)
        config = self.get_config(namespace.without_methods().with_instance(None), generator_config=True)
        return [
            name[len(INSTANCE_MARKER) :]
            for name in config
            if name.startswith(INSTANCE_MARKER)
        ]

    # ------------------------------------------------------------------
    # Synchronization primitives
    # ------------------------------------------------------------------

    async def do(self, namespace: str | Namespace) -> GeneratorApi:
        """
        Get the api of a loaded generator.

        Raises:
            WildcardNotAllowedError: Namespace uses the `*` instance
            MalformedNamespaceError: Namespace carries methods or a version range
            NotLoadedError: Generator is not loaded in this context
        """
        namespace = self.env.require_namespace(namespace)
        if namespace.is_wildcard:
            raise WildcardNotAllowedError(f"Namespace must not be globby: {namespace.complete}")
        if namespace.complete != namespace.id:
            raise MalformedNamespaceError(f"Namespace {namespace.complete} should be {namespace.id}")
        generator_api = self._generators_api.get(namespace.id)
        if generator_api is not None:
            return generator_api
        raise NotLoadedError(f"Generator {namespace.complete} isn't loaded")

    async def if_loaded(
        self,
        namespace: str | Namespace,
        callback: Callable[[GeneratorApi], Any],
        else_callback: Callable[[], Any] | None = None,
    ) -> Any:
        """Run callback with the api if loaded, else run else_callback. Never waits."""
        try:
            generator_api = await self.do(namespace)
        except NotLoadedError:
            if else_callback is None:
                return None
            return await invoke(else_callback)
        return await invoke(callback, generator_api)

    async def once(self, namespace: str | Namespace, callback: Callable[[GeneratorApi], Any]) -> Any:
        """
        Run callback with the api now if loaded, else exactly once when it loads.

        Returns:
            Callback result when run immediately, otherwise None
        """
        namespace = self.env.require_namespace(namespace)
        if namespace.is_wildcard:
            raise WildcardNotAllowedError(f"Wildcard not supported: {namespace.complete}")
        return await self.events.once(namespace.id, callback)

    async def require(
        self, namespace: str | Namespace, options: dict[str, Any] | None = None
    ) -> GeneratorApi:
        """
        Load the generator if it isn't loaded.

        Concurrent calls for the same id share one load.

        Args:
            namespace: Namespace id of the generator
            options: Call-site options, winning over every other option source

        Returns:
            Generator api
        """
        namespace = self.env.require_namespace(namespace)
        try:
            return await self.do(namespace)
        except NotLoadedError:
            pass

        if namespace.id in self._pending:
            return await asyncio.shield(self._pending[namespace.id])

        future: asyncio.Future[GeneratorApi] = asyncio.get_running_loop().create_future()
        self._pending[namespace.id] = future
        try:
            generator_api = await self._queue(namespace, options)
            future.set_result(generator_api)
            return generator_api
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            # Waiters get the same exception as the caller.
            future.set_exception(e)
            future.exception()
            raise
        finally:
            self._pending.pop(namespace.id, None)

    async def call(self, namespace: str | Namespace, *args: Any) -> Any:
        """
        Call the methods named by the namespace on its loaded generator.

        Returns:
            The result for a single method, a list of results in method order otherwise
        """
        logger.debug(f"Calling {namespace} at {self._destination_root}")
        namespace = self.env.require_namespace(namespace)
        if not namespace.methods:
            raise NoMethodsSpecifiedError(f"Namespace with method is required: {namespace.complete}")
        if namespace.is_wildcard:
            raise WildcardNotAllowedError(f"Wildcard not supported: {namespace.complete}")

        generator_api = self._generators_api.get(namespace.id)
        if generator_api is None:
            raise NotLoadedError(f"Generator {namespace.id} isn't loaded")

        operations = [generator_api[method] for method in namespace.methods]
        if len(operations) == 1:
            return await invoke(operations[0], *args)
        return list(await asyncio.gather(*(invoke(operation, *args) for operation in operations)))

    async def compose_with(
        self, namespace: str | Namespace, options: dict[str, Any] | None = None
    ) -> Any:
        """
        Load the namespace's generator and call its methods.

        A `#*` instance fans out to every persisted instance concurrently and
        returns their results in instance order.

        Returns:
            call() result, or None when the namespace names no methods
        """
        logger.debug(f"Compose with generator {namespace} at {self._destination_root}")
        namespace = self.env.require_namespace(namespace)
        if not namespace.generator_path:
            raise GeneratorRequiredError(f"Namespace with generator is required: {namespace.id}")

        if namespace.is_wildcard:
            instance_ids = self._instance_names(namespace)
            if instance_ids and not self.env.is_registered(namespace):
                # One preparation for every instance of the generator.
                await self.env.prepare_environment([namespace.without_methods().with_instance(None)])
            return list(
                await asyncio.gather(
                    *(
                        self.compose_with(namespace.with_instance(instance_id), options)
                        for instance_id in instance_ids
                    )
                )
            )

        if namespace.id not in self._generators_api and not self.env.is_registered(namespace):
            await self.env.prepare_environment([namespace.without_methods()])

        await self.require(namespace.id, options)
        if not namespace.methods:
            return None
        return await self.call(namespace)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def _queue(self, namespace: Namespace, options: dict[str, Any] | None) -> GeneratorApi:
        """Instantiate the generator and queue its tasks."""
        logger.debug(f"Queueing generator {namespace} at {self._destination_root}")
        if not self.env.is_registered(namespace):
            await self.env.prepare_environment([namespace])
        generator_api = await self._load(namespace, options)
        self.env.queue_tasks(generator_api.generator)
        return generator_api

    async def _load(self, namespace: Namespace, options: dict[str, Any] | None) -> GeneratorApi:
        if not namespace.generator_path:
            raise GeneratorRequiredError(f"Namespace with generator is required: {namespace.id}")
        if namespace.complete != namespace.id:
            raise MalformedNamespaceError(f"Namespace {namespace.complete} should be {namespace.id}")
        generator_api = self._generators_api.get(namespace.id)
        if generator_api is not None:
            return generator_api

        logger.debug(f"Creating generator {namespace} at {self._destination_root}")
        generator = self._create_generator(namespace, options)
        generator_api = self._register_generator(generator)
        await self.events.emit(namespace.id, generator_api)
        return generator_api

    def _create_generator(self, namespace: Namespace, options: dict[str, Any] | None) -> GeneratorProtocol:
        return self.env.create(
            namespace,
            arguments=[namespace.instance_id] if namespace.instance_id else [],
            options={
                "destination_root": str(self._destination_root),
                **self._shared_options,
                **self._namespace_options.get(namespace.id, {}),
                **(options or {}),
            },
        )

    def _register_generator(self, generator: GeneratorProtocol) -> GeneratorApi:
        """Build the api of a generator and register it by id and by name."""
        namespace: Namespace = generator.options["namespace"]
        generator_api = GeneratorApi.from_generator(generator)
        generator.options["generator_api"] = generator_api

        key = api_key(namespace)
        if namespace.instance_id:
            instances = self.api.get(key)
            if not isinstance(instances, dict):
                instances = self.api[key] = {}
            instances[namespace.instance_id] = generator_api
        else:
            self.api[key] = generator_api

        self._generators_api[namespace.id] = generator_api
        self._generators[namespace.id] = generator
        logger.info(f"Loaded generator '{namespace.id}' at {self._destination_root}")
        return generator_api
