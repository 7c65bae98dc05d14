"""
Lifecycle Coordinator - coordinates startup events and graceful shutdown.

Shutdown walks every instance the container has already built, plus the
instances registered explicitly, and runs their ``on_destroy`` hooks
concurrently. Listener and hook failures are logged; they never abort the
shutdown sequence.
"""

from typing import Any, Callable, Dict, List, Optional
from enum import Enum
import asyncio
import inspect
import logging
import signal
import sys

from .container import Container
from .hooks import OnDestroy, call_on_destroy
from .settings import RuntimeSettings
from .tokens import token_name


logger = logging.getLogger("zenject.lifecycle")


class LifecycleEvent(str, Enum):
    """Events emitted by the lifecycle coordinator."""
    STARTUP = "startup"
    BEFORE_SHUTDOWN = "beforeShutdown"
    SHUTDOWN = "shutdown"
    AFTER_SHUTDOWN = "afterShutdown"


class LifecyclePhase(Enum):
    """Lifecycle phases."""
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    TERMINATED = "terminated"


LifecycleListener = Callable[[LifecycleEvent], Any]


class AppLifecycle:
    """
    Coordinates graceful shutdown of one object graph.

    Example:
        lifecycle = AppLifecycle(container)
        lifecycle.add_event_listener(LifecycleEvent.SHUTDOWN, on_shutdown)
        await lifecycle.startup()
        ...
        await lifecycle.shutdown()
    """

    _EXIT_SIGNALS = (signal.SIGINT, signal.SIGTERM)

    def __init__(self, container: Container, settings: Optional[RuntimeSettings] = None):
        """
        Initialize coordinator.

        Args:
            container: Container whose resolved instances are torn down
            settings: Process integration switches (defaults from environment)
        """
        self.container = container
        self.settings = settings or RuntimeSettings.from_env()
        self.phase = LifecyclePhase.RUNNING
        self.exit_code: Optional[int] = None
        self._managed: Dict[int, Any] = {}
        self._listeners: Dict[LifecycleEvent, List[LifecycleListener]] = {}
        self._handlers_installed = False
        self._previous_excepthook = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._shutdown_task: Optional[asyncio.Future] = None
        self._terminated = asyncio.Event()

    @property
    def is_shutting_down(self) -> bool:
        return self.phase is not LifecyclePhase.RUNNING

    @property
    def managed_instances(self) -> List[Any]:
        return list(self._managed.values())

    # ── registration ──

    def register(self, instance: Any) -> None:
        """
        Register an instance whose ``on_destroy`` must run at shutdown.

        Instances without the teardown capability are ignored.
        """
        if not isinstance(instance, OnDestroy):
            logger.debug(f"Ignoring {type(instance).__name__}: no on_destroy hook")
            return

        self._managed[id(instance)] = instance

        if not self._handlers_installed:
            self.install_exit_handlers()

    def unregister(self, instance: Any) -> None:
        """Remove an instance from the managed set."""
        self._managed.pop(id(instance), None)

    def add_event_listener(self, event: LifecycleEvent, listener: LifecycleListener) -> None:
        """
        Add a listener for a lifecycle event.

        Listeners receive the event and may be plain or async callables.
        """
        listeners = self._listeners.setdefault(LifecycleEvent(event), [])
        if listener not in listeners:
            listeners.append(listener)

    def remove_event_listener(self, event: LifecycleEvent, listener: LifecycleListener) -> None:
        listeners = self._listeners.get(LifecycleEvent(event))
        if listeners and listener in listeners:
            listeners.remove(listener)

    # ── transitions ──

    async def startup(self) -> None:
        """Emit the startup event and install exit handlers."""
        if not self._handlers_installed:
            self.install_exit_handlers()
        await self._emit(LifecycleEvent.STARTUP)

    async def shutdown(self, exit_code: int = 0, *, exit_process: Optional[bool] = None) -> None:
        """
        Gracefully shut down the application.

        Runs at most once; later calls return immediately.

        Args:
            exit_code: Process exit code
            exit_process: Override ``settings.exit_on_shutdown``
        """
        if self.phase is not LifecyclePhase.RUNNING:
            return

        self.phase = LifecyclePhase.SHUTTING_DOWN
        self.exit_code = exit_code
        logger.info("Shutting down application...")

        await self._emit(LifecycleEvent.BEFORE_SHUTDOWN)
        await self._emit(LifecycleEvent.SHUTDOWN)

        instances = self._collect_instances()
        logger.debug(f"Destroying {len(instances)} instance(s)")
        await asyncio.gather(*(self._destroy(instance) for instance in instances))

        await self._emit(LifecycleEvent.AFTER_SHUTDOWN)

        self.phase = LifecyclePhase.TERMINATED
        self._terminated.set()
        self.uninstall_exit_handlers()
        logger.info("✓ Application shutdown complete")

        if exit_process is None:
            exit_process = self.settings.exit_on_shutdown
        if exit_process:
            sys.exit(exit_code)

    async def wait_for_shutdown(self) -> None:
        """Wait until shutdown has completed."""
        await self._terminated.wait()

    # ── internals ──

    def _collect_instances(self) -> List[Any]:
        collected: Dict[int, Any] = {}

        for token in self.container.registrations():
            # Only already-built instances; shutdown must not construct new ones
            if not self.container.is_resolved(token):
                continue
            try:
                instance = self.container.resolve(token)
            except Exception:
                logger.exception(f"Error resolving {token_name(token)} during shutdown")
                continue
            if isinstance(instance, OnDestroy):
                collected.setdefault(id(instance), instance)

        for key, instance in self._managed.items():
            collected.setdefault(key, instance)

        return list(collected.values())

    async def _destroy(self, instance: Any) -> None:
        try:
            await call_on_destroy(instance)
        except Exception:
            logger.exception(f"Error destroying {type(instance).__name__}")

    async def _emit(self, event: LifecycleEvent) -> None:
        """Emit lifecycle event to all listeners."""
        pending = []

        for listener in list(self._listeners.get(event, ())):
            try:
                result = listener(event)
            except Exception:
                logger.exception(f"Error in lifecycle listener for {event.value}")
                continue
            if inspect.isawaitable(result):
                pending.append(result)

        if not pending:
            return

        results = await asyncio.gather(*pending, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.error(
                    f"Error in lifecycle listener for {event.value}: {result}",
                    exc_info=result,
                )

    # ── process integration ──

    def install_exit_handlers(self) -> None:
        """
        Install SIGINT/SIGTERM and fault handlers on the running loop.

        No-op when ``settings.handle_signals`` is off or no loop is running.
        """
        if self._handlers_installed or not self.settings.handle_signals:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; exit handlers not installed")
            return

        for sig in self._EXIT_SIGNALS:
            try:
                loop.add_signal_handler(sig, self._on_signal, sig)
            except (NotImplementedError, RuntimeError, ValueError):
                # Windows, or not the main thread
                logger.debug(f"Signal handler for {sig.name} not supported here")

        self._previous_excepthook = sys.excepthook
        sys.excepthook = self._on_uncaught_exception
        loop.set_exception_handler(self._on_loop_exception)
        self._loop = loop
        self._handlers_installed = True

    def uninstall_exit_handlers(self) -> None:
        if not self._handlers_installed:
            return

        loop, self._loop = self._loop, None
        if loop is not None and not loop.is_closed():
            for sig in self._EXIT_SIGNALS:
                try:
                    loop.remove_signal_handler(sig)
                except (NotImplementedError, RuntimeError, ValueError):
                    logger.debug(f"Signal handler for {sig.name} not removed")
            loop.set_exception_handler(None)

        if self._previous_excepthook is not None:
            sys.excepthook = self._previous_excepthook
            self._previous_excepthook = None

        self._handlers_installed = False

    def _on_signal(self, sig: signal.Signals) -> None:
        logger.info(f"Received {sig.name}")
        self._schedule_shutdown(0)

    def _on_loop_exception(self, loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
        loop.default_exception_handler(context)
        if "exception" in context:
            logger.error("Unhandled exception in event loop; shutting down")
            self._schedule_shutdown(1)

    def _on_uncaught_exception(self, exc_type, exc, tb) -> None:
        previous = self._previous_excepthook or sys.__excepthook__
        logger.error("Uncaught exception", exc_info=(exc_type, exc, tb))
        if self.phase is LifecyclePhase.RUNNING:
            # The interpreter is already exiting with status 1
            asyncio.run(self.shutdown(1, exit_process=False))
        previous(exc_type, exc, tb)

    def _schedule_shutdown(self, exit_code: int) -> None:
        if self.is_shutting_down or self._shutdown_task is not None:
            return
        self._shutdown_task = asyncio.ensure_future(self.shutdown(exit_code))
        self._shutdown_task.add_done_callback(self._shutdown_done)

    def _shutdown_done(self, task: asyncio.Future) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None and not isinstance(exc, SystemExit):
            logger.error(f"Error during shutdown: {exc}", exc_info=exc)
