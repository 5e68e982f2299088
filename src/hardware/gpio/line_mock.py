"""
Simulated line backend

In-memory lines for running without GPIO hardware and for tests. Each line
can be told which bias modes and whether hardware debounce it supports,
can pretend to be busy or forbidden, and accepts injected edges and failures.
"""

import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional

from hardware.errors import PinNotFound, PinConfigurationFailed, LineReadError, LineFatalError
from hardware.gpio.line_interface import EdgeHandler
from models.enums import LineKind, PullMode, EdgeMode, ConfigFailureCause
from models.hardware import LineSettings, EdgeResult
from utils.logger import get_logger, LogCategory

log = get_logger().for_category(LogCategory.HARDWARE)

ALL_PULLS: FrozenSet[PullMode] = frozenset(PullMode)
BARE_INPUT: FrozenSet[PullMode] = frozenset({PullMode.NO_CHANGE})

_WAKEUP = object()


@dataclass
class SimulatedLineSpec:
    """Capabilities of one simulated line."""
    kind: LineKind = LineKind.POLL
    supported_pulls: FrozenSet[PullMode] = ALL_PULLS
    supports_debounce: bool = True
    busy: bool = False
    permission_denied: bool = False
    initial_level: Optional[bool] = None   # None = rest level from bias
    lines: List["SimulatedLine"] = field(default_factory=list)


class SimulatedLine:
    """Simulated input line (POLL or EVENT model)."""

    def __init__(self, identifier: str, spec: SimulatedLineSpec):
        self.identifier = identifier
        self.kind = spec.kind
        self._spec = spec
        self._lock = threading.Lock()
        self._edges: "queue.Queue[object]" = queue.Queue()
        self._handler: Optional[EdgeHandler] = None
        self._level = bool(spec.initial_level)
        self._failing_reads = 0
        self._fatal: Optional[str] = None

        self.settings: Optional[LineSettings] = None
        self.configure_attempts: List[LineSettings] = []
        self.release_count = 0
        self.released = False

    # -------------------------------
    # ILine
    # -------------------------------

    def configure(self, settings: LineSettings) -> None:
        self.configure_attempts.append(settings)
        spec = self._spec

        if self.released:
            raise PinConfigurationFailed(self.identifier, ConfigFailureCause.UNKNOWN, "line released")
        if spec.busy:
            raise PinConfigurationFailed(self.identifier, ConfigFailureCause.BUSY, "claimed by another consumer")
        if spec.permission_denied:
            raise PinConfigurationFailed(self.identifier, ConfigFailureCause.PERMISSION_DENIED)
        if settings.pull is not PullMode.NO_CHANGE and settings.pull not in spec.supported_pulls:
            raise PinConfigurationFailed(
                self.identifier, ConfigFailureCause.UNSUPPORTED, f"bias {settings.pull.name} not supported"
            )
        if settings.debounce > 0 and not spec.supports_debounce:
            raise PinConfigurationFailed(
                self.identifier, ConfigFailureCause.UNSUPPORTED, "hardware debounce not supported"
            )

        self.settings = settings
        if spec.initial_level is None:
            self._level = settings.pull is PullMode.UP

    def read_level(self) -> bool:
        with self._lock:
            if self._fatal:
                raise LineFatalError(self._fatal)
            if self._failing_reads > 0:
                self._failing_reads -= 1
                raise LineReadError(f"simulated read failure on {self.identifier}")
            return self._level

    def wait_for_edge(self, timeout: float) -> EdgeResult:
        if self.kind is not LineKind.POLL:
            raise TypeError(f"{self.identifier} is an event line")
        if self.released:
            raise LineFatalError(f"{self.identifier} released")
        if self._fatal:
            raise LineFatalError(self._fatal)
        try:
            item = self._edges.get(timeout=timeout)
        except queue.Empty:
            return EdgeResult.timed_out()
        if item is _WAKEUP:
            if self._fatal:
                raise LineFatalError(self._fatal)
            return EdgeResult.timed_out()
        return item

    def set_edge_handler(self, handler: Optional[EdgeHandler]) -> None:
        if self.kind is not LineKind.EVENT:
            raise TypeError(f"{self.identifier} is a poll line")
        with self._lock:
            self._handler = handler

    def release(self) -> None:
        with self._lock:
            if self.released:
                return
            self.released = True
            self.release_count += 1
            self._handler = None
        self._edges.put(_WAKEUP)
        log.debug("Simulated line released", line=self.identifier)

    # -------------------------------
    # Simulation controls
    # -------------------------------

    @property
    def has_handler(self) -> bool:
        return self._handler is not None

    def inject_edge(self, level: bool, timestamp: Optional[float] = None) -> bool:
        """
        Drive the line to `level` and report the transition.

        Returns False when nothing was delivered (released, no handler, or
        the edge does not match the configured edge mode).
        """
        with self._lock:
            if self.released:
                return False
            self._level = level
            handler = self._handler

        edge_mode = self.settings.edge if self.settings else EdgeMode.BOTH
        if edge_mode is EdgeMode.RISING and not level:
            return False
        if edge_mode is EdgeMode.FALLING and level:
            return False

        result = EdgeResult.edge(level, timestamp if timestamp is not None else time.monotonic())
        if self.kind is LineKind.POLL:
            self._edges.put(result)
            return True
        if handler is None:
            return False
        handler(result)
        return True

    def inject_error(self) -> None:
        """Make the next wait return an ERROR result."""
        self._edges.put(EdgeResult.failed())

    def fail_reads(self, count: int) -> None:
        """Make the next `count` level reads raise LineReadError."""
        with self._lock:
            self._failing_reads = count

    def fail_fatally(self, reason: str = "device removed") -> None:
        """Make every further wait and read raise LineFatalError."""
        with self._lock:
            self._fatal = f"{self.identifier}: {reason}"
        self._edges.put(_WAKEUP)

    def __repr__(self) -> str:
        return f"<SimulatedLine {self.identifier} kind={self.kind.name} released={self.released}>"


class SimulatedLineBackend:
    """
    Backend of simulated lines.

    Args:
        kind: Model of lines created on demand
        strict: Only identifiers added with add_line() exist
    """

    name = "simulated"

    def __init__(self, kind: LineKind = LineKind.POLL, strict: bool = False):
        self._default_kind = kind
        self._strict = strict
        self._specs: Dict[str, SimulatedLineSpec] = {}
        self._lock = threading.Lock()
        log.info("Simulated line backend initialized", kind=kind.name, strict=strict)

    def add_line(
        self,
        identifier: str,
        kind: Optional[LineKind] = None,
        supported_pulls: FrozenSet[PullMode] = ALL_PULLS,
        supports_debounce: bool = True,
        busy: bool = False,
        permission_denied: bool = False,
        initial_level: Optional[bool] = None,
    ) -> SimulatedLineSpec:
        spec = SimulatedLineSpec(
            kind=kind or self._default_kind,
            supported_pulls=frozenset(supported_pulls),
            supports_debounce=supports_debounce,
            busy=busy,
            permission_denied=permission_denied,
            initial_level=initial_level,
        )
        with self._lock:
            self._specs[identifier] = spec
        return spec

    def open(self, identifier: str, consumer: str = "gpio-buttons") -> SimulatedLine:
        with self._lock:
            spec = self._specs.get(identifier)
            if spec is None:
                if self._strict:
                    raise PinNotFound(identifier, "no such simulated line")
                spec = SimulatedLineSpec(kind=self._default_kind)
                self._specs[identifier] = spec
            if spec.lines and not spec.lines[-1].released:
                raise PinConfigurationFailed(identifier, ConfigFailureCause.BUSY, "already open")
            line = SimulatedLine(identifier, spec)
            spec.lines.append(line)
        log.debug("Simulated line opened", line=identifier, kind=spec.kind.name, consumer=consumer)
        return line

    def line(self, identifier: str) -> SimulatedLine:
        """Most recently opened line for `identifier`."""
        spec = self._specs.get(identifier)
        if spec is None or not spec.lines:
            raise KeyError(identifier)
        return spec.lines[-1]

    def open_lines(self) -> List[SimulatedLine]:
        return [
            line for spec in self._specs.values() for line in spec.lines
            if not line.released
        ]

    def close(self) -> None:
        for line in self.open_lines():
            line.release()
