"""
Shutdown coordinator that orchestrates graceful shutdown of all components.

Manages signal handlers, shutdown sequencing, and error handling across
multiple shutdown handlers in priority order.
"""

import asyncio
import signal
from typing import List, Optional, Dict, Set

from lifecycle.task_registry import TaskRegistry, TaskCategory
from utils.logger import get_logger, LogCategory

log = get_logger().for_category(LogCategory.SHUTDOWN)

# Tasks whose failure (exception, not clean exit) triggers shutdown
CRITICAL_CATEGORIES: Set[TaskCategory] = {TaskCategory.WATCH, TaskCategory.DISPATCH}


class ShutdownCoordinator:
    """
    Coordinates graceful shutdown of multiple components.

    Maintains a list of shutdown handlers and executes them in priority order
    when shutdown is triggered.

    Example:
        coordinator = ShutdownCoordinator()
        coordinator.register(ButtonManagerShutdownHandler(manager))
        coordinator.register(LineBackendShutdownHandler(backend))

        coordinator.setup_signal_handlers(loop)
        await coordinator.wait_for_shutdown()
        await coordinator.shutdown_all()
    """

    def __init__(self, timeout_per_handler: float = 5.0, total_timeout: float = 15.0):
        """
        Args:
            timeout_per_handler: Timeout for each individual handler (seconds)
            total_timeout: Total timeout for entire shutdown sequence (seconds)
        """
        self._handlers: List = []
        self._shutdown_event: Optional[asyncio.Event] = None
        self._timeout_per_handler = timeout_per_handler
        self._total_timeout = total_timeout
        self._shutdown_trigger: Dict[str, Optional[str]] = {"reason": None}

    @property
    def reason(self) -> Optional[str]:
        return self._shutdown_trigger["reason"]

    def register(self, handler) -> None:
        """
        Register a shutdown handler.

        Handler must have a shutdown_priority property (int) and an async
        shutdown() method.
        """
        if not hasattr(handler, "shutdown_priority"):
            raise ValueError(f"Handler {handler} missing shutdown_priority property")
        if not hasattr(handler, "shutdown"):
            raise ValueError(f"Handler {handler} missing shutdown() method")

        self._handlers.append(handler)
        log.debug(f"Registered shutdown handler: {handler.__class__.__name__}")

    def _ensure_event(self) -> asyncio.Event:
        if self._shutdown_event is None:
            self._shutdown_event = asyncio.Event()
        return self._shutdown_event

    def setup_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        """Install SIGINT (Ctrl+C) and SIGTERM handlers that trigger shutdown."""
        self._ensure_event()

        def signal_handler(sig: signal.Signals) -> None:
            self.request_shutdown(sig.name)

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, lambda s=sig: signal_handler(s))

        log.info("Signal handlers installed (SIGINT, SIGTERM)")

    def request_shutdown(self, reason: str) -> None:
        """Trigger shutdown from code (same effect as a signal)."""
        if self._shutdown_trigger["reason"] is None:
            self._shutdown_trigger["reason"] = reason
        log.info(f"Shutdown requested ({reason})")
        self._ensure_event().set()

    # -------------------------------
    # Critical task monitoring
    # -------------------------------

    def _critical_failure(self) -> bool:
        """Record and report the first failed critical task, if any."""
        for record in TaskRegistry.instance().failed():
            if record.info.category in CRITICAL_CATEGORIES:
                log.error(
                    f"Critical task failed: {record.info.description}",
                    task_category=record.info.category.name,
                    error=str(record.finished_with_error),
                )
                self._shutdown_trigger["reason"] = f"Task failure: {record.info.description}"
                return True
        return False

    async def _wait_for_signal_or_task_end(self) -> None:
        critical_tasks = [
            r.task for r in TaskRegistry.instance().active()
            if r.info.category in CRITICAL_CATEGORIES
        ]
        if not critical_tasks:
            try:
                await asyncio.wait_for(self._shutdown_event.wait(), timeout=0.2)
            except asyncio.TimeoutError:
                pass
            return

        shutdown_waiter = asyncio.ensure_future(self._shutdown_event.wait())
        try:
            await asyncio.wait(
                set(critical_tasks) | {shutdown_waiter},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            # Only the waiter; critical tasks outlive this call
            if not shutdown_waiter.done():
                shutdown_waiter.cancel()

    async def wait_for_shutdown(self) -> None:
        """
        Return when a signal (or request_shutdown()) arrives or a critical
        task fails. Critical tasks ending cleanly (a button whose line
        failed) do not trigger shutdown.
        """
        event = self._ensure_event()
        while not event.is_set():
            if self._critical_failure():
                return
            await self._wait_for_signal_or_task_end()
        log.debug("Shutdown triggered", reason=self.reason)

    # -------------------------------
    # Shutdown sequence
    # -------------------------------

    async def shutdown_all(self) -> None:
        """
        Execute graceful shutdown of all handlers in priority order
        (highest first), each under its own timeout and all under the
        total timeout. A failing handler does not stop the sequence.
        """
        log.info("Initiating graceful shutdown sequence...", reason=self.reason or "UNKNOWN")

        sorted_handlers = sorted(self._handlers, key=lambda h: h.shutdown_priority, reverse=True)
        loop = asyncio.get_running_loop()
        start_time = loop.time()

        for handler in sorted_handlers:
            handler_name = handler.__class__.__name__

            elapsed = loop.time() - start_time
            if elapsed > self._total_timeout:
                log.error(f"Total shutdown timeout exceeded ({elapsed:.1f}s > {self._total_timeout}s)")
                break

            try:
                log.debug(f"Shutting down {handler_name} (priority={handler.shutdown_priority})...")
                await asyncio.wait_for(handler.shutdown(), timeout=self._timeout_per_handler)
                log.debug(f"{handler_name} shutdown complete")
            except asyncio.TimeoutError:
                log.error(f"{handler_name} shutdown timeout ({self._timeout_per_handler}s)")
            except asyncio.CancelledError:
                log.warn(f"{handler_name} shutdown was cancelled")
                raise
            except Exception as e:
                log.error(f"Error shutting down {handler_name}: {e}", exc_info=True)

        log.info("Shutdown sequence complete")

    def get_handler(self, handler_type: type):
        """Get a registered handler by type (testing/debugging)."""
        for handler in self._handlers:
            if isinstance(handler, handler_type):
                return handler
        return None
