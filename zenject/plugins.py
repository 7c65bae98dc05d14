"""
Plugin facility - lazily loaded modules registered by name.

A plugin loader is a (possibly async) callable producing one of:

* a module reference (``@module`` class or ``DynamicModule``);
* a mapping of exports, where ``"default"`` wins over named entries;
* a Python module object, where a ``default`` attribute wins over the
  module references it defines.
"""

from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union
from types import ModuleType
from functools import partial
import asyncio
import importlib
import inspect
import logging

from .errors import PluginExportError, PluginNotRegisteredError
from .module import DynamicModule, ModuleLoader, is_module_ref


logger = logging.getLogger("zenject.plugins")

PluginLoader = Callable[[], Union[Any, Awaitable[Any]]]


class PluginManager:
    """
    Registry of lazily loaded plugins.

    Example:
        plugins = PluginManager(app.module_loader)
        plugins.register_import("redis", "myapp.plugins.redis")
        await plugins.load("redis")
    """

    def __init__(self, module_loader: ModuleLoader):
        self._module_loader = module_loader
        self._registry: Dict[str, PluginLoader] = {}
        self._loaded: Dict[str, None] = {}
        self._pending: Dict[str, asyncio.Future] = {}

    def register(self, name: str, loader: PluginLoader) -> None:
        """
        Register a plugin for later use.

        Re-registering a name replaces its loader.
        """
        if not callable(loader):
            raise TypeError(f"Plugin loader for '{name}' must be callable")
        self._registry[name] = loader
        logger.debug(f"Registered plugin '{name}'")

    def register_import(self, name: str, import_path: str) -> None:
        """Register a plugin backed by a Python import path."""

        async def load_plugin() -> ModuleType:
            return importlib.import_module(import_path)

        self.register(name, load_plugin)

    def is_registered(self, name: str) -> bool:
        return name in self._registry

    def is_loaded(self, name: str) -> bool:
        return name in self._loaded

    async def load(self, name: str) -> None:
        """
        Load a plugin by name.

        Concurrent calls for the same name share one load.

        Raises:
            PluginNotRegisteredError: If the plugin is not registered
            PluginExportError: If the loader exports no module
        """
        if name in self._loaded:
            return

        loader = self._registry.get(name)
        if loader is None:
            raise PluginNotRegisteredError(name, self.get_registered_plugins())

        task = self._pending.get(name)
        if task is None:
            task = asyncio.ensure_future(self._load(name, loader))
            self._pending[name] = task
            task.add_done_callback(partial(self._settled, name))
        else:
            logger.debug(f"Plugin '{name}' is loading; waiting for it")

        await task

    def _settled(self, name: str, task: asyncio.Future) -> None:
        if self._pending.get(name) is task:
            del self._pending[name]

    async def _load(self, name: str, loader: PluginLoader) -> None:
        exported = loader()
        if inspect.isawaitable(exported):
            exported = await exported

        module_ref = self._select_module(exported)
        if module_ref is None:
            raise PluginExportError(name)

        await self._module_loader.load_module(module_ref)
        self._loaded[name] = None
        logger.info(f"✓ Plugin '{name}' loaded")

    def get_registered_plugins(self) -> List[str]:
        return list(self._registry)

    def get_loaded_plugins(self) -> List[str]:
        return list(self._loaded)

    @staticmethod
    def _select_module(exported: Any) -> Optional[Any]:
        if exported is None:
            return None

        if is_module_ref(exported):
            return exported

        if isinstance(exported, Mapping):
            if exported.get("default") is not None:
                return exported["default"]
            return next((value for value in exported.values() if value is not None), None)

        if isinstance(exported, ModuleType):
            default = getattr(exported, "default", None)
            if default is not None:
                return default

            names = getattr(exported, "__all__", None)
            if names is not None:
                candidates = [getattr(exported, attr, None) for attr in names]
            else:
                candidates = [
                    value
                    for attr, value in vars(exported).items()
                    if not attr.startswith("_") and _defined_in(value, exported)
                ]
            return next((value for value in candidates if is_module_ref(value)), None)

        return None


def _defined_in(value: Any, module: ModuleType) -> bool:
    if isinstance(value, DynamicModule):
        return True
    return getattr(value, "__module__", None) == module.__name__
