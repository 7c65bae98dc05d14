"""
Zenject application - bootstraps a root module into one object graph.

Each application owns its container, registrar, module loader, lifecycle
and plugin manager, so independent applications never share load history.
"""

from typing import Any, Awaitable, Callable, List, Optional, Type, TypeVar, Union
import inspect
import logging

from .container import Container
from .errors import NotBootstrappedError
from .lifecycle import AppLifecycle
from .module import ModuleLoader
from .plugins import PluginManager
from .registration import ProviderRegistrar
from .settings import RuntimeSettings


logger = logging.getLogger("zenject.app")

T = TypeVar("T")

AfterReady = Callable[[], Union[None, Awaitable[None]]]


class Zenject:
    """
    Application entry point.

    Example:
        app = Zenject(AppModule)
        await app.bootstrap()
        service = app.resolve(AppService)
        ...
        await app.shutdown()

    Or, without exiting the process on shutdown:

        async with Zenject(AppModule) as app:
            app.resolve(AppService).run()
    """

    def __init__(
        self,
        root: Any,
        *,
        container: Optional[Container] = None,
        settings: Optional[RuntimeSettings] = None,
    ):
        self.root = root
        self.settings = settings or RuntimeSettings.from_env()
        self._container = container if container is not None else Container()
        self.registrar = ProviderRegistrar(self._container)
        self.module_loader = ModuleLoader(self._container, self.registrar)
        self.lifecycle = AppLifecycle(self._container, self.settings)
        self.plugins = PluginManager(self.module_loader)
        self._ready = False

    @property
    def is_ready(self) -> bool:
        return self._ready

    async def bootstrap(self, after_ready: Optional[AfterReady] = None) -> None:
        """
        Load the root module graph, then run the optional callback.

        Calling bootstrap again is a no-op.
        """
        if self._ready:
            return

        logger.info("Bootstrapping application...")
        await self.module_loader.load_module(self.root)
        self._ready = True

        await self.lifecycle.startup()
        logger.info(
            f"✓ Application ready ({len(self.module_loader.get_loaded_modules())} modules)"
        )

        if after_ready is not None:
            result = after_ready()
            if inspect.isawaitable(result):
                await result

    def resolve(self, token: Union[Type[T], Any]) -> T:
        """
        Resolve a token from the application container.

        Raises:
            NotBootstrappedError: If bootstrap() has not completed
        """
        if not self._ready:
            raise NotBootstrappedError("Zenject.bootstrap() must be awaited before resolve()")
        return self._container.resolve(token)

    @property
    def container(self) -> Container:
        if not self._ready:
            raise NotBootstrappedError("Zenject not bootstrapped")
        return self._container

    def get_loaded_modules(self) -> List[str]:
        return self.module_loader.get_loaded_modules()

    async def shutdown(self, exit_code: int = 0, *, exit_process: Optional[bool] = None) -> None:
        """Gracefully shut down; see ``AppLifecycle.shutdown``."""
        await self.lifecycle.shutdown(exit_code, exit_process=exit_process)

    async def __aenter__(self) -> "Zenject":
        await self.bootstrap()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.shutdown(1 if exc_type is not None else 0, exit_process=False)
