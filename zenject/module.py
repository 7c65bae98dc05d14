"""
Module graph resolver.

A module is a named bundle of imports, providers and exports. Module classes
carry their metadata via the ``@module`` decorator (pure data, nothing is
registered at import time); ``DynamicModule`` builds the same metadata at
call time, e.g. ``ConfigModule.for_root(...)``.

``ModuleLoader`` owns the load registry of one object graph:

    declared -> loading -> loaded

Each name initializes at most once. Concurrent requests for a module that is
already loading share the in-flight load; an import that would wait on its
own importer raises ``ModuleCycleError``.
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from functools import partial
import asyncio
import logging

from .container import Container, Registration
from .errors import ModuleCycleError, ModuleDeclarationError
from .providers import as_provider, provider_token
from .registration import ProviderRegistrar
from .tokens import InjectionToken, token_name


logger = logging.getLogger("zenject.modules")

_META_ATTR = "__zenject_module__"


class ModuleState(str, Enum):
    """Load state of one module name."""

    UNKNOWN = "unknown"
    DECLARED = "declared"
    LOADING = "loading"
    LOADED = "loaded"


@dataclass(frozen=True)
class ModuleMeta:
    """Compact module metadata."""

    name: str
    module: type
    imports: Tuple[Any, ...] = ()
    providers: Tuple[Any, ...] = ()
    exports: Tuple[Any, ...] = ()


def module(
    *,
    imports: Sequence[Any] = (),
    providers: Sequence[Any] = (),
    exports: Sequence[Any] = (),
    name: Optional[str] = None,
) -> Callable[[type], type]:
    """
    Decorator to declare a class as a module.

    Args:
        imports: Modules (classes or DynamicModule) to load first
        providers: Providers registered by this module
        exports: Providers or tokens made available to importers
        name: Optional explicit module name (defaults to the class name)

    Example:
        @module(imports=[ConfigModule.for_root()], providers=[UserService], exports=[UserService])
        class UserModule:
            pass
    """
    def decorator(cls: type) -> type:
        setattr(
            cls,
            _META_ATTR,
            ModuleMeta(
                name=name or cls.__name__,
                module=cls,
                imports=tuple(imports),
                providers=tuple(providers),
                exports=tuple(exports),
            ),
        )
        return cls

    return decorator


@dataclass
class DynamicModule:
    """
    Module metadata computed at call time.

    Example:
        class ConfigModule:
            @classmethod
            def for_root(cls, api_key: str) -> DynamicModule:
                return DynamicModule(
                    module=cls,
                    providers=[ValueProvider("API_KEY", api_key)],
                    exports=["API_KEY"],
                )
    """

    module: type
    imports: Sequence[Any] = field(default_factory=tuple)
    providers: Sequence[Any] = field(default_factory=tuple)
    exports: Sequence[Any] = field(default_factory=tuple)
    name: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.module, type):
            raise ModuleDeclarationError(
                f"DynamicModule.module must be a class, got {self.module!r}"
            )

    @property
    def module_name(self) -> str:
        return self.name or self.module.__name__

    def to_meta(self) -> ModuleMeta:
        return ModuleMeta(
            name=self.module_name,
            module=self.module,
            imports=tuple(self.imports),
            providers=tuple(self.providers),
            exports=tuple(self.exports),
        )


def is_module_ref(value: Any) -> bool:
    """Check whether a value can be passed to ``load_module``."""
    if isinstance(value, DynamicModule):
        return True
    return isinstance(value, type) and _META_ATTR in vars(value)


def get_module_meta(module_cls: type) -> ModuleMeta:
    """
    Get the metadata of a decorated module class.

    Raises:
        ModuleDeclarationError: If the class is not decorated with @module
    """
    if not isinstance(module_cls, type) or _META_ATTR not in vars(module_cls):
        raise ModuleDeclarationError(
            f"{module_cls!r} is not a module.\n\n"
            f"Suggested fixes:\n"
            f"  - Decorate the class with @module(...)\n"
            f"  - Wrap it in DynamicModule(module=...)"
        )
    return vars(module_cls)[_META_ATTR]


class ModuleRegistry:
    """
    Load registry of one object graph.

    Attributes:
        loaded: Names fully initialized, in load order (never cleared)
        initializers: Deferred initialization per declared name
        exports: Exported providers/tokens per declared name
        pending: In-flight load per name
    """

    __slots__ = ("loaded", "initializers", "exports", "pending", "declarations")

    def __init__(self):
        self.loaded: Dict[str, None] = {}
        self.initializers: Dict[str, Callable[[], Awaitable[None]]] = {}
        self.exports: Dict[str, Tuple[Any, ...]] = {}
        self.pending: Dict[str, asyncio.Future] = {}
        self.declarations: Dict[str, ModuleMeta] = {}

    def state(self, name: str) -> ModuleState:
        if name in self.loaded:
            return ModuleState.LOADED
        if name in self.pending:
            return ModuleState.LOADING
        if name in self.initializers:
            return ModuleState.DECLARED
        return ModuleState.UNKNOWN


class ModuleLoader:
    """
    Loads module graphs into a container.

    Example:
        loader = ModuleLoader(container)
        await loader.load_module(AppModule)
        loader.get_loaded_modules()  # ["ConfigModule", "AppModule"]
    """

    def __init__(
        self,
        container: Container,
        registrar: Optional[ProviderRegistrar] = None,
        registry: Optional[ModuleRegistry] = None,
    ):
        self._container = container
        self._registrar = registrar or ProviderRegistrar(container)
        self._registry = registry or ModuleRegistry()
        # importer -> imports it is currently waiting on
        self._waiting: Dict[str, Counter] = {}

    @property
    def container(self) -> Container:
        return self._container

    @property
    def registrar(self) -> ProviderRegistrar:
        return self._registrar

    @property
    def registry(self) -> ModuleRegistry:
        return self._registry

    # ── declaration ──

    def declare(self, module_cls: type) -> str:
        """
        Declare a decorated module class; returns its name.

        Declaring twice is a no-op. A dynamic module processed under the same
        name keeps precedence.

        Raises:
            ModuleDeclarationError: If another class already uses the name
        """
        meta = get_module_meta(module_cls)
        if self._check_name(meta) is not None:
            return meta.name

        self._store(meta)
        return meta.name

    def process_dynamic_module(self, dynamic: DynamicModule) -> str:
        """
        Store exports and a fresh initializer for a dynamic module.

        A name that is already loading or loaded keeps its stored metadata.

        Returns:
            The dynamic module's name

        Raises:
            ModuleDeclarationError: If another class already uses the name
        """
        if not isinstance(dynamic, DynamicModule):
            raise ModuleDeclarationError(f"Expected DynamicModule, got {dynamic!r}")

        meta = dynamic.to_meta()
        self._check_name(meta)

        if self._registry.state(meta.name) in (ModuleState.LOADING, ModuleState.LOADED):
            return meta.name

        self._store(meta)
        return meta.name

    def _check_name(self, meta: ModuleMeta) -> Optional[ModuleMeta]:
        """Existing declaration under the same name, if it is for the same class."""
        existing = self._registry.declarations.get(meta.name)
        if existing is not None and existing.module is not meta.module:
            raise ModuleDeclarationError(
                f"Duplicate module name '{meta.name}': "
                f"{token_name(existing.module)} and {token_name(meta.module)}"
            )
        return existing

    def _store(self, meta: ModuleMeta) -> None:
        self._registry.declarations[meta.name] = meta
        self._registry.exports[meta.name] = meta.exports
        self._registry.initializers[meta.name] = partial(self._initialize, meta)

    def _materialize(self, ref: Any) -> str:
        if isinstance(ref, DynamicModule):
            return self.process_dynamic_module(ref)
        return self.declare(ref)

    # ── loading ──

    async def load_module(self, ref: Any) -> None:
        """
        Load a module and, first, everything it imports.

        Args:
            ref: A @module class or a DynamicModule

        Raises:
            ModuleDeclarationError: If ref is not a module
            ModuleCycleError: If modules import each other
        """
        name = self._materialize(ref)
        await self._load(name)

    def get_loaded_modules(self) -> List[str]:
        """Names of loaded modules, in load order."""
        return list(self._registry.loaded)

    def is_loaded(self, name: str) -> bool:
        return name in self._registry.loaded

    def state(self, name: str) -> ModuleState:
        return self._registry.state(name)

    async def _load(self, name: str, importer: Optional[str] = None) -> None:
        registry = self._registry

        # Checked before any suspension point
        if name in registry.loaded:
            return

        if importer is not None:
            self._enter(importer, name)

        try:
            task = registry.pending.get(name)
            if task is None:
                initializer = registry.initializers.get(name)
                if initializer is None:
                    raise ModuleDeclarationError(f"Module '{name}' was never declared")

                task = asyncio.ensure_future(initializer())
                registry.pending[name] = task
                task.add_done_callback(partial(self._settled, name))
            else:
                logger.debug(f"Module {name} is loading; waiting for it")

            await task
        finally:
            if importer is not None:
                self._leave(importer, name)

    def _settled(self, name: str, task: asyncio.Future) -> None:
        if self._registry.pending.get(name) is task:
            del self._registry.pending[name]

    async def _initialize(self, meta: ModuleMeta) -> None:
        name = meta.name
        if name in self._registry.loaded:
            return

        logger.debug(f"Loading module {name}")

        # Sibling imports race; each one's exports are copied once it settles
        await asyncio.gather(*(self._import(ref, name) for ref in meta.imports))

        for provider in meta.providers:
            await self._registrar.register_provider(provider)

        if not self._container.is_registered(meta.module):
            self._container.register_singleton(meta.module)

        instance = self._container.resolve(meta.module)
        await self._registrar.initialize(instance, meta.module)

        self._registry.loaded[name] = None
        logger.info(f"✓ Module {name} loaded")

    async def _import(self, ref: Any, importer: str) -> None:
        name = self._materialize(ref)
        await self._load(name, importer=importer)
        await self._propagate_exports(name)

    async def _propagate_exports(self, name: str) -> None:
        """Copy a loaded module's exports into the container scope."""
        for export in self._registry.exports.get(name, ()):
            if isinstance(export, (str, InjectionToken)):
                provider, token = None, export
            else:
                provider = as_provider(export)
                token = provider_token(provider)

            if not self._container.is_registered(token):
                if provider is None:
                    raise ModuleDeclarationError(
                        f"Module '{name}' exports token {token_name(token)} "
                        f"but registers no provider for it"
                    )
                await self._registrar.register_provider(provider)
            else:
                # Share the importee's instance instead of building a second one
                existing = self._container.resolve(token)
                self._container.register(token, Registration.of_value(existing))

    # ── cycle detection ──

    def _enter(self, importer: str, name: str) -> None:
        if importer == name:
            raise ModuleCycleError([importer, name])

        path = self._find_path(name, importer)
        if path is not None:
            raise ModuleCycleError([importer, *path])

        self._waiting.setdefault(importer, Counter())[name] += 1

    def _leave(self, importer: str, name: str) -> None:
        waits = self._waiting.get(importer)
        if not waits:
            return
        waits[name] -= 1
        if waits[name] <= 0:
            del waits[name]
        if not waits:
            del self._waiting[importer]

    def _find_path(self, start: str, goal: str) -> Optional[List[str]]:
        """Path start -> ... -> goal through modules waiting on imports."""
        stack: List[Tuple[str, List[str]]] = [(start, [start])]
        seen = {start}

        while stack:
            node, path = stack.pop()
            for nxt in self._waiting.get(node, ()):
                if nxt == goal:
                    return path + [nxt]
                if nxt not in seen:
                    seen.add(nxt)
                    stack.append((nxt, path + [nxt]))

        return None
