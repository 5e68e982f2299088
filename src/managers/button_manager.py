"""
Button Manager

Registry of monitored buttons and the start/stop lifecycle of their watch
loops.

Architecture:
- register_button(): opens and configures a line (with fallback), builds the
  runtime Button. Only while not running.
- start(): one watch task and one dispatcher task per button, all sharing
  a single cancellation event. Poll lines block in a manager-owned thread pool.
- stop(): raise the event, join every task, release every line, empty the
  registry. Idempotent, also before start().
"""

from __future__ import annotations

import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional

from hardware.errors import (
    PinConfigurationFailed,
    NoButtonsConfigured,
    ManagerStateError,
    DuplicateButtonError,
)
from hardware.gpio.line_interface import ILine, ILineBackend
from hardware.input.button import Button
from lifecycle.task_registry import create_tracked_task, TaskCategory, TaskRegistry
from models.buttons import ButtonConfig
from models.enums import ManagerPhase, LineKind, EdgeMode, ConfigFailureCause
from models.hardware import LineSettings
from utils.logger import get_logger, LogCategory
from utils.serialization import Serializer

log = get_logger().for_category(LogCategory.BUTTON)

DEFAULT_POLL_TIMEOUT = 0.1  # seconds
DEFAULT_MAX_CONSECUTIVE_ERRORS = 10

_FAIL_FAST = (ConfigFailureCause.BUSY, ConfigFailureCause.PERMISSION_DENIED)


def fallback_chain(requested: LineSettings) -> List[LineSettings]:
    """
    Settings to try in order: as requested, without bias, without hardware
    debounce, bare input. Duplicates are dropped.
    """
    candidates = [
        requested,
        requested.without_bias(),
        requested.without_debounce(),
        requested.without_bias().without_debounce(),
    ]
    chain: List[LineSettings] = []
    for settings in candidates:
        if settings not in chain:
            chain.append(settings)
    return chain


class ButtonManager:
    """
    Debounced, callback-driven monitor for a set of buttons.

    Example:
        manager = ButtonManager(create_line_backend())
        manager.register_button(ButtonConfig("gpiochip0:17", on_press, active_low=True))

        async with manager:
            await shutdown_requested.wait()
    """

    def __init__(
        self,
        backend: ILineBackend,
        poll_timeout: float = DEFAULT_POLL_TIMEOUT,
        max_consecutive_errors: int = DEFAULT_MAX_CONSECUTIVE_ERRORS,
        consumer: str = "gpio-buttons",
    ):
        if poll_timeout <= 0:
            raise ValueError("poll_timeout must be > 0")
        if max_consecutive_errors < 1:
            raise ValueError("max_consecutive_errors must be >= 1")

        self._backend = backend
        self._poll_timeout = poll_timeout
        self._max_errors = max_consecutive_errors
        self._consumer = consumer

        self._lock = threading.Lock()
        self._buttons: Dict[str, Button] = {}
        self._phase = ManagerPhase.IDLE

        self._stop_event: Optional[asyncio.Event] = None
        self._stopped: Optional[asyncio.Event] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._watch_tasks: List[asyncio.Task] = []
        self._dispatch_tasks: List[asyncio.Task] = []

    @property
    def phase(self) -> ManagerPhase:
        return self._phase

    @property
    def backend(self) -> ILineBackend:
        return self._backend

    # -------------------------------
    # Registration
    # -------------------------------

    def register_button(self, config: ButtonConfig) -> Button:
        """
        Open, configure and register one button.

        Raises:
            ManagerStateError: Manager is running or stopping
            DuplicateButtonError: Identifier already registered
            PinNotFound: Identifier does not resolve to a line
            PinConfigurationFailed: No configuration in the fallback chain was accepted
        """
        if not isinstance(config, ButtonConfig):
            raise TypeError(f"expected ButtonConfig, got {type(config).__name__}")
        config = config.with_defaults()

        with self._lock:
            if self._phase in (ManagerPhase.RUNNING, ManagerPhase.STOPPING):
                raise ManagerStateError(
                    f"Cannot register {config.identifier!r} while manager is {self._phase.name}"
                )
            if config.identifier in self._buttons:
                raise DuplicateButtonError(config.identifier)

            line = self._backend.open(config.identifier, self._consumer)
            try:
                granted = self._configure_line(config, line)
            except BaseException:
                line.release()
                raise

            button = Button(
                config,
                line,
                granted,
                hardware_debounce_active=config.hardware_debounce and granted.debounce > 0,
            )
            self._buttons[config.identifier] = button

        log.info(
            "Button registered",
            button=config.identifier,
            kind=line.kind.name,
            settings=granted.describe(),
            window=f"{button.effective_window * 1000:.0f}ms",
            active_low=config.active_low,
        )
        return button

    def _configure_line(self, config: ButtonConfig, line: ILine) -> LineSettings:
        if line.kind is LineKind.POLL:
            edge = EdgeMode.BOTH
        else:
            edge = EdgeMode.FALLING if config.active_low else EdgeMode.RISING

        requested = LineSettings(
            pull=config.pull_mode,
            edge=edge,
            debounce=config.debounce_window if config.hardware_debounce else 0.0,
        )

        last_error: Optional[PinConfigurationFailed] = None
        for settings in fallback_chain(requested):
            try:
                line.configure(settings)
            except PinConfigurationFailed as e:
                if e.cause in _FAIL_FAST:
                    raise
                log.debug("Line configuration rejected", button=config.identifier,
                          settings=settings.describe(), cause=e.cause.name)
                last_error = e
                continue

            if settings != requested:
                log.warn(
                    "Line configured with fallback settings",
                    button=config.identifier,
                    requested=requested.describe(),
                    granted=settings.describe(),
                    reason=str(last_error),
                )
            return settings

        raise last_error

    # -------------------------------
    # Lifecycle
    # -------------------------------

    async def start(self) -> None:
        """
        Start watching every registered button.

        Raises:
            NoButtonsConfigured: Registry is empty
            ManagerStateError: Already running
        """
        with self._lock:
            if self._phase in (ManagerPhase.RUNNING, ManagerPhase.STOPPING):
                raise ManagerStateError(f"Button manager already {self._phase.name}")
            if not self._buttons:
                raise NoButtonsConfigured()
            self._phase = ManagerPhase.RUNNING
            buttons = list(self._buttons.values())

        self._stop_event = asyncio.Event()
        self._stopped = asyncio.Event()

        poll_lines = sum(1 for b in buttons if b.kind is LineKind.POLL)
        if poll_lines:
            self._executor = ThreadPoolExecutor(max_workers=poll_lines, thread_name_prefix="button-watch")

        for button in buttons:
            self._dispatch_tasks.append(create_tracked_task(
                button.dispatch(),
                category=TaskCategory.DISPATCH,
                description=f"Button dispatch {button.identifier}",
            ))
            self._watch_tasks.append(create_tracked_task(
                button.watch(self._stop_event, self._executor, self._poll_timeout, self._max_errors),
                category=TaskCategory.WATCH,
                description=f"Button watch {button.identifier}",
            ))

        # Let each watch loop reach its first wait before returning
        await asyncio.sleep(0)

        log.info(
            "Button manager started",
            buttons=len(buttons),
            backend=self._backend.name,
            poll_lines=poll_lines,
            event_lines=len(buttons) - poll_lines,
        )

    async def stop(self) -> None:
        """
        Stop all watch loops and release every line.

        Safe to call any number of times, before start() and concurrently.
        After it returns no callback runs and no line is open.
        """
        with self._lock:
            phase = self._phase
            if phase is ManagerPhase.RUNNING:
                self._phase = ManagerPhase.STOPPING
            elif phase is not ManagerPhase.STOPPING:
                buttons = list(self._buttons.values())
                self._buttons.clear()
                self._phase = ManagerPhase.STOPPED

        if phase is ManagerPhase.STOPPING:
            await self._stopped.wait()
            return
        if phase is not ManagerPhase.RUNNING:
            released = sum(1 for b in buttons if b.release_line())
            if released:
                log.info("Released lines of buttons that never started", lines=released)
            return

        try:
            await self._shutdown_running()
        finally:
            with self._lock:
                self._buttons.clear()
                self._phase = ManagerPhase.STOPPED
            self._stopped.set()
            log.info("Button manager stopped")

    async def _shutdown_running(self) -> None:
        with self._lock:
            buttons = list(self._buttons.values())

        log.info("Stopping button manager", buttons=len(buttons))
        for button in buttons:
            button.mark_stopping()
        self._stop_event.set()

        watch_tasks, self._watch_tasks = self._watch_tasks, []
        dispatch_tasks, self._dispatch_tasks = self._dispatch_tasks, []

        await asyncio.gather(*watch_tasks, return_exceptions=True)

        # Watch tasks cancelled before their first step never queued the sentinel
        for button in buttons:
            button.finish()
        await asyncio.gather(*dispatch_tasks, return_exceptions=True)

        for button in buttons:
            button.release_line()

        executor, self._executor = self._executor, None
        if executor is not None:
            await asyncio.to_thread(executor.shutdown, True)

        TaskRegistry.instance().prune_finished()

    async def __aenter__(self) -> "ButtonManager":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    # -------------------------------
    # Introspection
    # -------------------------------

    def button_count(self) -> int:
        with self._lock:
            return len(self._buttons)

    def get_button(self, identifier: str) -> Optional[Button]:
        with self._lock:
            return self._buttons.get(identifier.strip())

    def identifiers(self) -> List[str]:
        with self._lock:
            return list(self._buttons)

    def get_status(self) -> Dict[str, Any]:
        """Snapshot of the manager and every registered button."""
        with self._lock:
            buttons = list(self._buttons.values())
        return {
            "phase": Serializer.enum_to_str(self._phase),
            "backend": self._backend.name,
            "poll_timeout": self._poll_timeout,
            "buttons": [Serializer.button_to_dict(b) for b in buttons],
        }

    def log_registry(self) -> None:
        """Log all registered buttons (useful for startup debugging)"""
        with self._lock:
            buttons = sorted(self._buttons.values(), key=lambda b: b.identifier)

        if not buttons:
            log.info("Button registry is empty")
            return

        log.info(f"Button registry ({len(buttons)} buttons):")
        for button in buttons:
            log.info(
                f"  {button.identifier} → {button.state.name}",
                details=[
                    f"kind: {button.kind.name}",
                    f"settings: {button.granted.describe()}",
                    f"window: {button.effective_window * 1000:.0f}ms",
                ],
            )
