"""
Button Component - Hardware Abstraction Layer (Layer 1)

Runtime record of one registered button: its exclusively owned line,
debounce gate and counters, plus the two coroutines the manager runs for it:

- watch():    waits for edges, applies polarity and debounce, queues presses
- dispatch(): invokes the callback for queued presses in acceptance order
"""

from __future__ import annotations

import asyncio
import inspect
import threading
from concurrent.futures import Executor
from typing import Optional

from hardware.errors import DispatchError, LineFatalError, LineReadError
from hardware.gpio.line_interface import ILine
from hardware.input.debounce_gate import DebounceGate
from models.buttons import ButtonConfig, ButtonStats
from models.enums import ButtonState, EdgeStatus, LineKind
from models.hardware import EdgeResult, LineSettings
from utils.logger import get_logger, LogCategory

log = get_logger().for_category(LogCategory.BUTTON)

_DONE = None  # dispatcher sentinel


class Button:
    """
    Single monitored button.

    Args:
        config: Resolved configuration (defaults applied)
        line: Configured line, owned by this button from now on
        granted: Settings the line actually accepted
        hardware_debounce_active: Hardware filters bounce, so the software
                                  gate runs with a zero window
    """

    def __init__(
        self,
        config: ButtonConfig,
        line: ILine,
        granted: LineSettings,
        hardware_debounce_active: bool = False,
    ):
        self.config = config
        self.line = line
        self.kind: LineKind = line.kind
        self.granted = granted
        self.gate = DebounceGate()
        self.effective_window: float = 0.0 if hardware_debounce_active else config.debounce_window
        self.stats = ButtonStats()
        self.state = ButtonState.CONFIGURED

        self._queue: "asyncio.Queue[Optional[float]]" = asyncio.Queue()
        self._release_lock = threading.Lock()
        self._released = False
        self._finished = False
        self._consecutive_errors = 0
        self._line_failed: Optional[asyncio.Event] = None

    @property
    def identifier(self) -> str:
        return self.config.identifier

    @property
    def released(self) -> bool:
        return self._released

    # ---------------------------------------------------------------
    # Edge handling (event loop thread)
    # ---------------------------------------------------------------

    def is_pressed(self, level: bool) -> bool:
        """Physical level → logical "pressed" (active-low buttons press to LOW)."""
        return level != self.config.active_low

    def handle_edge(self, result: EdgeResult) -> bool:
        """
        Run one edge through polarity and debounce.

        Returns:
            True if the press was accepted and queued for dispatch
        """
        self.stats.edges += 1
        if result.level is None or not self.is_pressed(result.level):
            return False

        if not self.gate.consider(result.timestamp, self.effective_window):
            self.stats.rejected += 1
            log.debug("Press rejected (debounce)", button=self.identifier, window=self.effective_window)
            return False

        self.stats.accepted += 1
        self._queue.put_nowait(result.timestamp)
        log.debug("Press accepted", button=self.identifier, presses=self.stats.accepted)
        return True

    def _count_error(self, max_consecutive_errors: int, reason: str) -> None:
        self.stats.read_errors += 1
        self._consecutive_errors += 1
        log.debug("Line read error", button=self.identifier, reason=reason, consecutive=self._consecutive_errors)
        if self._consecutive_errors >= max_consecutive_errors:
            raise LineFatalError(
                f"{self.identifier}: {self._consecutive_errors} consecutive read errors"
            )

    # ---------------------------------------------------------------
    # Watch loop
    # ---------------------------------------------------------------

    async def watch(
        self,
        stop_event: asyncio.Event,
        executor: Optional[Executor],
        poll_timeout: float,
        max_consecutive_errors: int,
    ) -> None:
        """Watch the line until stop_event is set or the line fails."""
        if self.state is ButtonState.CONFIGURED:
            self.state = ButtonState.RUNNING
        log.debug("Watch loop started", button=self.identifier, kind=self.kind.name)
        try:
            if self.kind is LineKind.POLL:
                await self._watch_poll(stop_event, executor, poll_timeout, max_consecutive_errors)
            else:
                await self._watch_events(stop_event, max_consecutive_errors)
        except LineFatalError as e:
            log.error("Line failed, watch stopped", button=self.identifier, error=str(e))
        except Exception as e:
            # Contained here so one broken line never fails a WATCH task
            log.error(
                "Unexpected line error, watch stopped",
                button=self.identifier,
                error=f"{type(e).__name__}: {e}",
                exc_info=True,
            )
        finally:
            self.state = ButtonState.STOPPING
            self.release_line()
            self.finish()
            log.debug("Watch loop exited", button=self.identifier)

    def _wait_once(self, timeout: float) -> EdgeResult:
        """Blocking part of one poll cycle (worker thread)."""
        try:
            result = self.line.wait_for_edge(timeout)
            if result.is_edge and result.level is None:
                result = EdgeResult.edge(self.line.read_level(), result.timestamp)
        except LineReadError:
            return EdgeResult.failed()
        return result

    async def _watch_poll(
        self,
        stop_event: asyncio.Event,
        executor: Optional[Executor],
        poll_timeout: float,
        max_consecutive_errors: int,
    ) -> None:
        loop = asyncio.get_running_loop()
        while not stop_event.is_set():
            result = await loop.run_in_executor(executor, self._wait_once, poll_timeout)
            if stop_event.is_set():
                break
            if result.status is EdgeStatus.ERROR:
                self._count_error(max_consecutive_errors, "edge wait failed")
                continue
            self._consecutive_errors = 0
            if result.status is EdgeStatus.EDGE:
                self.handle_edge(result)

    def _on_notification(self, result: EdgeResult, max_consecutive_errors: int) -> None:
        if result.is_edge and result.level is None:
            try:
                result = EdgeResult.edge(self.line.read_level(), result.timestamp)
            except LineReadError:
                result = EdgeResult.failed()
        if result.status is EdgeStatus.ERROR:
            self._count_error(max_consecutive_errors, "edge notification failed")
            return
        self._consecutive_errors = 0
        if result.is_edge:
            self.handle_edge(result)

    async def _watch_events(self, stop_event: asyncio.Event, max_consecutive_errors: int) -> None:
        loop = asyncio.get_running_loop()
        self._line_failed = asyncio.Event()
        fatal: list = []

        def deliver(result: EdgeResult) -> None:
            if stop_event.is_set() or self._line_failed.is_set():
                return
            try:
                self._on_notification(result, max_consecutive_errors)
            except Exception as e:
                fatal.append(e)
                self._line_failed.set()

        def on_edge(result: EdgeResult) -> None:
            # Backend thread
            try:
                loop.call_soon_threadsafe(deliver, result)
            except RuntimeError:
                log.debug("Edge dropped, event loop closed", button=self.identifier)

        self.line.set_edge_handler(on_edge)
        stop_waiter = asyncio.ensure_future(stop_event.wait())
        fail_waiter = asyncio.ensure_future(self._line_failed.wait())
        try:
            await asyncio.wait({stop_waiter, fail_waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop_waiter.cancel()
            fail_waiter.cancel()
            self.line.set_edge_handler(None)

        if fatal:
            raise fatal[0]

    # ---------------------------------------------------------------
    # Dispatcher
    # ---------------------------------------------------------------

    async def dispatch(self) -> None:
        """Invoke the callback once per queued press until finish()."""
        while True:
            item = await self._queue.get()
            if item is _DONE:
                break
            await self._invoke()
        log.debug("Dispatcher exited", button=self.identifier)

    async def _invoke(self) -> None:
        callback = self.config.callback
        try:
            if inspect.iscoroutinefunction(callback):
                await callback(self.identifier)
            else:
                result = await asyncio.to_thread(callback, self.identifier)
                if inspect.isawaitable(result):
                    await result
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.stats.dispatch_failures += 1
            err = DispatchError(self.identifier, e)
            log.error(str(err), failures=self.stats.dispatch_failures, exc_info=True)

    def finish(self) -> None:
        """Let the dispatcher drain what was accepted so far and exit."""
        if self._finished:
            return
        self._finished = True
        self._queue.put_nowait(_DONE)

    # ---------------------------------------------------------------
    # Lifecycle
    # ---------------------------------------------------------------

    def mark_stopping(self) -> None:
        if self.state in (ButtonState.CONFIGURED, ButtonState.RUNNING):
            self.state = ButtonState.STOPPING

    def release_line(self) -> bool:
        """
        Release the line exactly once.

        Returns:
            True if this call released it
        """
        with self._release_lock:
            if self._released:
                return False
            self._released = True
        try:
            self.line.release()
        except Exception as e:
            log.error("Error releasing line", button=self.identifier, error=str(e), exc_info=True)
        finally:
            self.state = ButtonState.RELEASED
        log.debug("Line released", button=self.identifier)
        return True

    def __repr__(self) -> str:
        return (
            f"<Button {self.identifier} kind={self.kind.name} state={self.state.name} "
            f"window={self.effective_window}s>"
        )
