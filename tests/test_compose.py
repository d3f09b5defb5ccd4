"""Tests for compose contexts and their synchronization primitives."""

import asyncio
import json
from pathlib import Path

import pytest

from scaffold_env.compose import ComposeContext
from scaffold_env.compose import SharedState
from scaffold_env.exceptions import EnvironmentPreparationError
from scaffold_env.exceptions import GeneratorRequiredError
from scaffold_env.exceptions import MalformedNamespaceError
from scaffold_env.exceptions import NoMethodsSpecifiedError
from scaffold_env.exceptions import NotLoadedError
from scaffold_env.exceptions import UnknownOperationError
from scaffold_env.exceptions import WildcardNotAllowedError
from scaffold_env.testing import FakeRegistryClient
from scaffold_env.testing import InMemoryRepository

CONFIG = {
    "foo": {
        "name": "demo",
        "app": "not a mapping",
        "sub": {
            "flavor": "vanilla",
            "#a": {"x": 1},
            "#b": {"x": 2},
        },
    }
}


def write_config(root: Path, document) -> None:
    (root / ".scaffold-rc.json").write_text(json.dumps(document), encoding="utf-8")


class TestDo:
    """Tests for do()."""

    @pytest.mark.asyncio
    async def test_not_loaded(self, compose: ComposeContext) -> None:
        with pytest.raises(NotLoadedError):
            await compose.do("foo:sub")

    @pytest.mark.asyncio
    async def test_wildcard_rejected(self, compose: ComposeContext) -> None:
        with pytest.raises(WildcardNotAllowedError):
            await compose.do("foo:sub#*")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("namespace", ["foo:sub:run", "foo:sub@^1.0.0"])
    async def test_malformed_rejected(self, compose: ComposeContext, namespace: str) -> None:
        """Only a bare id is accepted."""
        with pytest.raises(MalformedNamespaceError):
            await compose.do(namespace)

    @pytest.mark.asyncio
    async def test_returns_loaded_api(self, compose: ComposeContext) -> None:
        api = await compose.require("foo:sub")
        assert await compose.do("foo:sub") is api


class TestRequire:
    """Tests for require()."""

    @pytest.mark.asyncio
    async def test_loads_and_queues(self, compose: ComposeContext, env, created: list) -> None:
        api = await compose.require("foo:sub")

        assert len(created) == 1
        assert api.generator is created[0]
        assert env.task_queue.pending == [created[0]]
        assert compose.loaded == ["foo:sub"]
        assert compose.get_generator("foo:sub") is created[0]
        assert created[0].options["generator_api"] is api

    @pytest.mark.asyncio
    async def test_idempotent(self, compose: ComposeContext, created: list) -> None:
        first = await compose.require("foo:sub")
        second = await compose.require("foo:sub")
        assert first is second
        assert len(created) == 1

    @pytest.mark.asyncio
    async def test_concurrent_requires_share_one_load(self, compose: ComposeContext, created: list) -> None:
        """The constructor runs once however many requires race."""
        apis = await asyncio.gather(*(compose.require("foo:sub#one") for _ in range(5)))

        assert all(api is apis[0] for api in apis)
        assert len(created) == 1
        assert created[0].instance_id == "one"

    @pytest.mark.asyncio
    async def test_concurrent_requires_with_slow_prepare(self, compose: ComposeContext, env, created: list) -> None:
        """Requires arriving while the first one is suspended wait for it."""
        generator_class = env.get_by_namespace("foo:sub")
        prepared = []

        async def slow_prepare(namespaces):
            prepared.append(namespaces)
            await asyncio.sleep(0.01)
            env.register_stub(generator_class, "baz:app")
            return True

        env.prepare_environment = slow_prepare

        apis = await asyncio.gather(*(compose.require("baz:app") for _ in range(3)))

        assert apis[0] is apis[1] is apis[2]
        assert len(created) == 1
        assert len(prepared) == 1

    @pytest.mark.asyncio
    async def test_concurrent_requires_share_failure(self, compose: ComposeContext, env) -> None:
        """Requires waiting on a failing load get the same error."""

        async def failing_prepare(namespaces):
            await asyncio.sleep(0.01)
            raise RuntimeError("boom")

        env.prepare_environment = failing_prepare

        results = await asyncio.gather(
            compose.require("baz:app"), compose.require("baz:app"), return_exceptions=True
        )

        assert all(isinstance(result, RuntimeError) for result in results)
        assert [str(result) for result in results] == ["boom", "boom"]

    @pytest.mark.asyncio
    async def test_option_precedence(self, compose: ComposeContext, env, project: Path) -> None:
        """destination_root < shared < per-namespace < call-site."""
        compose.set_namespace_options("foo:sub", {"level": "namespace", "size": "namespace"})

        api = await compose.require("foo:sub", {"size": "call"})
        options = api.generator.options

        assert options["destination_root"] == str(project)
        assert options["color"] == "shared"
        assert options["level"] == "namespace"
        assert options["size"] == "call"
        assert options["compose"] is compose
        assert options["env"] is env
        assert options["namespace"].id == "foo:sub"

    @pytest.mark.asyncio
    async def test_missing_generator_raises_and_retries(self, compose: ComposeContext) -> None:
        """A failed load leaves nothing pending."""
        with pytest.raises(EnvironmentPreparationError):
            await compose.require("bar:app")
        with pytest.raises(EnvironmentPreparationError):
            await compose.require("bar:app")

    @pytest.mark.asyncio
    async def test_api_surface(self, compose: ComposeContext) -> None:
        """Instanced generators nest under their unscoped name."""
        app = await compose.require("foo:app")
        one = await compose.require("foo:sub#one")
        two = await compose.require("foo:sub#two")

        assert compose.api["foo_app"] is app
        assert compose.api["foo_sub"] == {"one": one, "two": two}


class TestIfLoaded:
    """Tests for if_loaded()."""

    @pytest.mark.asyncio
    async def test_else_branch(self, compose: ComposeContext, created: list) -> None:
        result = await compose.if_loaded("foo:sub", lambda api: "loaded", lambda: "missing")
        assert result == "missing"
        assert created == []

    @pytest.mark.asyncio
    async def test_no_else_returns_none(self, compose: ComposeContext) -> None:
        assert await compose.if_loaded("foo:sub", lambda api: "loaded") is None

    @pytest.mark.asyncio
    async def test_loaded_branch_awaits_callback(self, compose: ComposeContext) -> None:
        await compose.require("foo:sub")

        async def callback(api):
            return api.run()

        assert await compose.if_loaded("foo:sub", callback) == "run:-"

    @pytest.mark.asyncio
    async def test_usage_errors_propagate(self, compose: ComposeContext) -> None:
        with pytest.raises(WildcardNotAllowedError):
            await compose.if_loaded("foo:sub#*", lambda api: None)


class TestOnce:
    """Tests for once()."""

    @pytest.mark.asyncio
    async def test_fires_on_load(self, compose: ComposeContext) -> None:
        received = []
        assert await compose.once("foo:sub", received.append) is None
        assert received == []

        api = await compose.require("foo:sub")
        await compose.require("foo:sub")

        assert received == [api]

    @pytest.mark.asyncio
    async def test_immediate_when_loaded(self, compose: ComposeContext) -> None:
        await compose.require("foo:sub")
        assert await compose.once("foo:sub", lambda api: api.run()) == "run:-"

    @pytest.mark.asyncio
    async def test_listener_error_fails_require(self, compose: ComposeContext) -> None:
        def bad(api):
            raise ValueError("listener failed")

        await compose.once("foo:sub", bad)

        with pytest.raises(ValueError, match="listener failed"):
            await compose.require("foo:sub")

    @pytest.mark.asyncio
    async def test_wildcard_rejected(self, compose: ComposeContext) -> None:
        with pytest.raises(WildcardNotAllowedError):
            await compose.once("foo:sub#*", lambda api: None)


class TestCall:
    """Tests for call()."""

    @pytest.mark.asyncio
    async def test_single_method(self, compose: ComposeContext) -> None:
        await compose.require("foo:sub")
        assert await compose.call("foo:sub:run") == "run:-"
        assert await compose.call("foo:sub:run", 5) == "run:-:5"

    @pytest.mark.asyncio
    async def test_multiple_methods_in_order(self, compose: ComposeContext) -> None:
        await compose.require("foo:sub#one")
        assert await compose.call("foo:sub#one:finish,run") == ["finished", "run:one"]

    @pytest.mark.asyncio
    async def test_errors(self, compose: ComposeContext) -> None:
        with pytest.raises(NoMethodsSpecifiedError):
            await compose.call("foo:sub")
        with pytest.raises(WildcardNotAllowedError):
            await compose.call("foo:sub#*:run")
        with pytest.raises(NotLoadedError):
            await compose.call("foo:sub:run")

        await compose.require("foo:sub")
        with pytest.raises(UnknownOperationError):
            await compose.call("foo:sub:missing")


class TestComposeWith:
    """Tests for compose_with()."""

    @pytest.mark.asyncio
    async def test_loads_and_calls(self, compose: ComposeContext, created: list) -> None:
        assert await compose.compose_with("foo:sub:run") == "run:-"
        assert compose.loaded == ["foo:sub"]
        assert len(created) == 1

    @pytest.mark.asyncio
    async def test_without_methods_returns_none(self, compose: ComposeContext) -> None:
        assert await compose.compose_with("foo:sub", {"size": "call"}) is None
        api = await compose.do("foo:sub")
        assert api.generator.options["size"] == "call"

    @pytest.mark.asyncio
    async def test_generator_required(self, compose: ComposeContext) -> None:
        with pytest.raises(GeneratorRequiredError):
            await compose.compose_with("foo")

    @pytest.mark.asyncio
    async def test_wildcard_fans_out_over_instances(self, compose: ComposeContext, project: Path, created: list) -> None:
        """Each persisted #instance gets its own generator."""
        write_config(project, CONFIG)

        results = await compose.compose_with("foo:sub#*:run")

        assert results == ["run:a", "run:b"]
        assert sorted(generator.instance_id for generator in created) == ["a", "b"]
        assert set(compose.api["foo_sub"]) == {"a", "b"}
        assert compose.api["foo_sub"]["a"].instance_config == {"x": 1}
        assert compose.api["foo_sub"]["b"].instance_config == {"x": 2}

    @pytest.mark.asyncio
    async def test_wildcard_prepares_once(self, compose: ComposeContext, env, project: Path) -> None:
        """Instances of an unregistered generator share one registry walk and one install."""
        generator_class = env.get_by_namespace("foo:sub")

        class SlowRegistry(FakeRegistryClient):
            async def fetch_all(self, package_hint):
                await asyncio.sleep(0.01)
                return await super().fetch_all(package_hint)

        env.registry = SlowRegistry({"generator-a": {"1.0.0": {}}})
        env.repository = InMemoryRepository(
            on_install=lambda packages: env.register_stub(generator_class, "generator-a:sub")
        )
        write_config(project, {"generator-a": {"sub": {"#a": {}, "#b": {}}}})

        results = await compose.compose_with("generator-a:sub#*:run@^1.0.0")

        assert results == ["run:a", "run:b"]
        assert env.registry.calls == ["generator-a"]
        assert env.repository.install_calls == [{"generator-a": "^1.0.0"}]

    @pytest.mark.asyncio
    async def test_wildcard_without_instances(self, compose: ComposeContext, created: list) -> None:
        assert await compose.compose_with("foo:sub#*:run") == []
        assert created == []

    @pytest.mark.asyncio
    async def test_unknown_generator_prepares_with_range(self, compose: ComposeContext, env) -> None:
        """The version range reaches the registry before lookup fails."""
        with pytest.raises(EnvironmentPreparationError) as exc_info:
            await compose.compose_with("bar:app:run@^2.0.0")

        assert env.registry.calls == ["bar"]
        assert exc_info.value.missing == ["bar:app@^2.0.0"]


class TestConfig:
    """Tests for get_config() and instance discovery."""

    def test_package_config(self, compose: ComposeContext, project: Path) -> None:
        write_config(project, CONFIG)
        assert compose.get_config("foo") == CONFIG["foo"]
        assert compose.get_config("foo:sub") == CONFIG["foo"]

    def test_generator_config(self, compose: ComposeContext, project: Path) -> None:
        write_config(project, CONFIG)
        assert compose.get_config("foo:sub", generator_config=True) == CONFIG["foo"]["sub"]

    def test_instance_config(self, compose: ComposeContext, project: Path) -> None:
        write_config(project, CONFIG)
        assert compose.get_config("foo:sub#a") == {"x": 1}
        assert compose.get_config("foo:sub#c") == {}

    def test_non_mapping_value_is_empty(self, compose: ComposeContext, project: Path) -> None:
        write_config(project, CONFIG)
        assert compose.get_config("foo:app", generator_config=True) == {}

    def test_missing_and_invalid_documents(self, compose: ComposeContext, project: Path) -> None:
        """Missing files, invalid JSON and missing keys all read as empty."""
        assert compose.get_config("foo") == {}
        (project / ".scaffold-rc.json").write_text("{not json", encoding="utf-8")
        assert compose.get_config("foo") == {}
        write_config(project, ["not", "an", "object"])
        assert compose.get_config("foo") == {}
        write_config(project, CONFIG)
        assert compose.get_config("@acme/foo") == {}

    def test_instance_names(self, compose: ComposeContext, project: Path) -> None:
        write_config(project, CONFIG)
        assert compose._instance_names("foo:sub#*:run") == ["a", "b"]
        assert compose._instance_names("foo:app") == []

    @pytest.mark.asyncio
    async def test_generator_reads_its_config(self, compose: ComposeContext, project: Path) -> None:
        write_config(project, CONFIG)
        api = await compose.require("foo:sub#a")
        assert api.config == CONFIG["foo"]
        assert api.generator_config == CONFIG["foo"]["sub"]
        assert api.instance_config == {"x": 1}


class TestHierarchy:
    """Tests for child contexts, shared state and the root generator."""

    def test_create_child_idempotent(self, compose: ComposeContext, project: Path) -> None:
        child = compose.create_child("foo:sub", project / "sub")
        again = compose.create_child("foo:sub", project / "elsewhere")

        assert child is again
        assert child.destination_root == project / "sub"
        assert child.get_parent() is compose
        assert compose.get_parent() is None

    def test_shared_state_is_one_object(self, compose: ComposeContext, project: Path) -> None:
        child = compose.create_child("foo:sub", project / "sub")
        grandchild = child.create_child("foo:app", project / "sub" / "app")

        grandchild.shared["answer"] = 42

        assert isinstance(compose.shared, SharedState)
        assert child.shared is compose.shared
        assert grandchild.shared is compose.shared
        assert compose.shared["answer"] == 42

    @pytest.mark.asyncio
    async def test_child_options(self, compose: ComposeContext, project: Path) -> None:
        """Children inherit shared options and take per-namespace overrides."""
        child = compose.create_child("foo:app", project / "app", {"foo:sub": {"level": "child"}})

        api = await child.require("foo:sub")
        options = api.generator.options

        assert options["compose"] is child
        assert options["color"] == "shared"
        assert options["level"] == "child"
        assert options["destination_root"] == str(project / "app")

    @pytest.mark.asyncio
    async def test_children_load_independently(self, compose: ComposeContext, project: Path, created: list) -> None:
        child = compose.create_child("foo:app", project / "app")
        parent_api = await compose.require("foo:sub")
        child_api = await child.require("foo:sub")

        assert parent_api is not child_api
        assert len(created) == 2

    @pytest.mark.asyncio
    async def test_root_generator_loaded_on_creation(self, env, project: Path) -> None:
        root = env.create("foo:app", [], {"destination_root": str(project)})
        env.root_generator = root

        compose = env.create_compose(project)

        assert compose.loaded == ["foo:app"]
        api = await compose.do("foo:app")
        assert api.generator is root
        assert root.options["generator_api"] is api
        assert await compose.once("foo:app", lambda loaded: loaded is api) is True
