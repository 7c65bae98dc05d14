"""
Module graph resolver: loading, exports, dynamic modules, diamonds and cycles.
"""

import asyncio
from typing import Annotated

import pytest

from zenject.container import Inject
from zenject.errors import ModuleCycleError, ModuleDeclarationError
from zenject.hooks import OnInit
from zenject.module import (
    DynamicModule,
    ModuleLoader,
    ModuleState,
    get_module_meta,
    is_module_ref,
    module,
)
from zenject.providers import FactoryProvider, ValueProvider


# ============================================================================
# Fixtures: components and modules
# ============================================================================


class Service(OnInit):
    def __init__(self, api_key: Annotated[str, Inject("API_KEY")]):
        self.api_key = api_key
        self.seen_at_init = None

    def on_init(self):
        self.seen_at_init = self.api_key


@module(providers=[{"provide": "API_KEY", "use_value": "k1"}], exports=["API_KEY"])
class Config:
    pass


@module(imports=[Config], providers=[Service])
class App:
    pass


class Counted(OnInit):
    constructed = 0
    initialized = 0

    def __init__(self):
        type(self).constructed += 1

    def on_init(self):
        type(self).initialized += 1


@module(providers=[Counted], exports=[Counted])
class CountedModule(OnInit):
    inits = 0

    def on_init(self):
        type(self).inits += 1


@module(imports=[CountedModule])
class Importer:
    def __init__(self, counted: Counted):
        self.counted = counted


class SharedResource(OnInit):
    inits = 0

    async def on_init(self):
        await asyncio.sleep(0.01)
        type(self).inits += 1


@module(providers=[SharedResource], exports=[SharedResource])
class Shared:
    pass


@module(imports=[Shared])
class Left:
    pass


@module(imports=[Shared])
class Right:
    pass


@module(imports=[Left, Right])
class Diamond:
    pass


@module()
class CycleA:
    pass


@module(imports=[CycleA])
class CycleB:
    pass


# Close the loop once both classes exist
module(imports=[CycleB])(CycleA)


@module()
class SelfImporting:
    pass


module(imports=[SelfImporting])(SelfImporting)


@module(exports=["NOWHERE"])
class DanglingExport:
    pass


@module(imports=[DanglingExport])
class ImportsDangling:
    pass


class NotAModule:
    pass


def feature_module(value: str, name: str = "Feature") -> DynamicModule:
    return DynamicModule(
        module=FeatureHost,
        providers=[ValueProvider("FEATURE", value)],
        exports=["FEATURE"],
        name=name,
    )


@module()
class FeatureHost:
    pass


# ============================================================================
# Declarations
# ============================================================================


class TestDeclarations:

    def test_decorator_attaches_metadata_only(self):
        meta = get_module_meta(App)
        assert meta.name == "App"
        assert meta.imports == (Config,)
        assert meta.providers == (Service,)

    def test_metadata_not_inherited(self):
        class Child(App):
            pass

        assert not is_module_ref(Child)
        with pytest.raises(ModuleDeclarationError):
            get_module_meta(Child)

    def test_explicit_name(self):
        @module(name="custom")
        class Named:
            pass

        assert get_module_meta(Named).name == "custom"

    def test_dynamic_module_name_defaults_to_class(self):
        assert DynamicModule(module=FeatureHost).module_name == "FeatureHost"

    def test_dynamic_module_requires_class(self):
        with pytest.raises(ModuleDeclarationError):
            DynamicModule(module="not a class")

    @pytest.mark.asyncio
    async def test_undecorated_class_rejected(self, loader):
        with pytest.raises(ModuleDeclarationError):
            await loader.load_module(NotAModule)

    def test_duplicate_name_for_other_class(self, loader):
        loader.declare(App)

        @module(name="App")
        class Impostor:
            pass

        with pytest.raises(ModuleDeclarationError):
            loader.declare(Impostor)

    @pytest.mark.asyncio
    async def test_dynamic_module_cannot_take_another_class_name(self, loader, container):
        await loader.load_module(Config)
        shadow = DynamicModule(
            module=FeatureHost,
            providers=[ValueProvider("SHADOWED", 1)],
            name="Config",
        )

        with pytest.raises(ModuleDeclarationError):
            await loader.load_module(shadow)

        assert not container.is_registered("SHADOWED")
        await loader.load_module(Config)
        assert loader.get_loaded_modules() == ["Config"]

    @pytest.mark.asyncio
    async def test_loaded_dynamic_module_keeps_its_metadata(self, loader, container):
        await loader.load_module(feature_module("first"))
        await loader.load_module(feature_module("second"))

        assert container.resolve("FEATURE") == "first"
        assert loader.state("Feature") is ModuleState.LOADED


# ============================================================================
# Loading
# ============================================================================


class TestLoadModule:

    @pytest.mark.asyncio
    async def test_exported_value_scenario(self, loader, container):
        await loader.load_module(App)

        assert container.resolve("API_KEY") == "k1"
        assert container.resolve(Service).seen_at_init == "k1"
        assert loader.get_loaded_modules() == ["Config", "App"]

    @pytest.mark.asyncio
    async def test_load_is_idempotent(self, loader, container):
        CountedModule.inits = 0

        await loader.load_module(CountedModule)
        first = container.resolve(CountedModule)
        await loader.load_module(CountedModule)

        assert container.resolve(CountedModule) is first
        assert CountedModule.inits == 1
        assert loader.get_loaded_modules() == ["CountedModule"]

    @pytest.mark.asyncio
    async def test_exported_singleton_is_shared(self, loader, container):
        Counted.constructed = 0
        Counted.initialized = 0

        await loader.load_module(Importer)

        importer = container.resolve(Importer)
        assert importer.counted is container.resolve(Counted)
        assert Counted.constructed == 1
        assert Counted.initialized == 1

    @pytest.mark.asyncio
    async def test_concurrent_loads_share_one_initialization(self, loader):
        CountedModule.inits = 0

        await asyncio.gather(
            loader.load_module(CountedModule),
            loader.load_module(CountedModule),
        )

        assert CountedModule.inits == 1

    @pytest.mark.asyncio
    async def test_diamond_initializes_shared_once(self, loader, container):
        SharedResource.inits = 0

        await loader.load_module(Diamond)

        assert SharedResource.inits == 1
        loaded = loader.get_loaded_modules()
        assert loaded[0] == "Shared"
        assert loaded[-1] == "Diamond"
        assert set(loaded) == {"Shared", "Left", "Right", "Diamond"}

    @pytest.mark.asyncio
    async def test_module_instance_gets_constructor_injection(self, loader, container):
        await loader.load_module(Importer)
        assert isinstance(container.resolve(Importer).counted, Counted)

    @pytest.mark.asyncio
    async def test_independent_loaders_do_not_share_history(self, container):
        first = ModuleLoader(container)
        second = ModuleLoader(container.create_child_container())

        await first.load_module(Config)

        assert first.is_loaded("Config")
        assert not second.is_loaded("Config")


# ============================================================================
# Dynamic modules
# ============================================================================


class TestDynamicModules:

    @pytest.mark.asyncio
    async def test_process_then_load(self, loader, container):
        dynamic = feature_module("on")

        name = loader.process_dynamic_module(dynamic)

        assert name == "Feature"
        assert loader.state("Feature") is ModuleState.DECLARED

        await loader.load_module(dynamic)

        assert loader.state("Feature") is ModuleState.LOADED
        assert container.resolve("FEATURE") == "on"

    @pytest.mark.asyncio
    async def test_dynamic_import_exports_into_importer(self, loader, container):
        @module(imports=[feature_module("imported", name="ImportedFeature")])
        class UsesFeature:
            pass

        await loader.load_module(UsesFeature)

        assert container.resolve("FEATURE") == "imported"
        assert loader.get_loaded_modules() == ["ImportedFeature", "UsesFeature"]

    def test_unknown_state(self, loader):
        assert loader.state("Nope") is ModuleState.UNKNOWN

    def test_process_rejects_non_dynamic(self, loader):
        with pytest.raises(ModuleDeclarationError):
            loader.process_dynamic_module(App)


# ============================================================================
# Failures
# ============================================================================


class TestLoadFailures:

    @pytest.mark.asyncio
    async def test_import_cycle_detected(self, loader):
        with pytest.raises(ModuleCycleError) as exc_info:
            await loader.load_module(CycleA)

        assert exc_info.value.path == ["CycleB", "CycleA", "CycleB"]
        assert loader.state("CycleA") is ModuleState.DECLARED
        assert loader.state("CycleB") is ModuleState.DECLARED

    @pytest.mark.asyncio
    async def test_self_import_is_a_cycle(self, loader):
        with pytest.raises(ModuleCycleError):
            await loader.load_module(SelfImporting)

    @pytest.mark.asyncio
    async def test_dangling_token_export(self, loader):
        with pytest.raises(ModuleDeclarationError):
            await loader.load_module(ImportsDangling)

    @pytest.mark.asyncio
    async def test_failed_load_can_be_retried(self, loader, container):
        attempts = []

        def flaky():
            attempts.append(1)
            if len(attempts) == 1:
                raise ConnectionError("database unavailable")
            return "connected"

        flaky_module = DynamicModule(
            module=FeatureHost,
            providers=[FactoryProvider("CONN", flaky)],
            name="Flaky",
        )

        with pytest.raises(ConnectionError):
            await loader.load_module(flaky_module)

        assert loader.state("Flaky") is ModuleState.DECLARED

        await loader.load_module(flaky_module)

        assert loader.state("Flaky") is ModuleState.LOADED
        assert container.resolve("CONN") == "connected"
        assert len(attempts) == 2
