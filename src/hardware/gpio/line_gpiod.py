"""
gpiod line backend (Linux GPIO character device, libgpiod v2 bindings)

Poll model: each configured line owns one line request; wait_for_edge()
blocks in wait_edge_events() and hands out buffered edge events one by one.

Identifiers: "gpiochip0:17", "/dev/gpiochip1:GPIO22", "17" or "GPIO17"
(no chip prefix means the default chip).
"""

import errno
import threading
from collections import deque
from datetime import timedelta
from typing import Deque, Dict, Optional, Tuple, Union

from hardware.errors import (
    PinNotFound,
    PinConfigurationFailed,
    LineFatalError,
    LineReadError,
    cause_from_errno,
)
from models.enums import LineKind, PullMode, EdgeMode, ConfigFailureCause
from models.hardware import LineSettings, EdgeResult
from utils.logger import get_logger, LogCategory

log = get_logger().for_category(LogCategory.HARDWARE)

DEFAULT_CHIP = "/dev/gpiochip0"

_FATAL_ERRNOS = {errno.ENODEV, errno.EBADF, errno.ENXIO}


def parse_identifier(identifier: str, default_chip: str = DEFAULT_CHIP) -> Tuple[str, Union[int, str]]:
    """
    Split an identifier into (chip path, line offset or name).

    >>> parse_identifier("gpiochip0:17")
    ('/dev/gpiochip0', 17)
    >>> parse_identifier("GPIO22")
    ('/dev/gpiochip0', 'GPIO22')
    """
    text = identifier.strip()
    chip, sep, line = text.rpartition(":")
    if not sep:
        chip, line = default_chip, text
    elif not chip.startswith("/"):
        chip = f"/dev/{chip}"
    line = line.strip()
    if not line:
        raise PinNotFound(identifier, "empty line name")
    return chip, int(line) if line.isdigit() else line


class GpiodLine:
    """One line on a gpiod chip, requested on configure()."""

    kind = LineKind.POLL

    def __init__(self, backend: "GpiodLineBackend", chip, identifier: str, offset: int, consumer: str):
        self.identifier = identifier
        self.offset = offset
        self._backend = backend
        self._chip = chip
        self._consumer = consumer
        self._lock = threading.Lock()
        self._request = None
        self._pending: Deque[EdgeResult] = deque()
        self._released = False

    # -------------------------------
    # Configuration
    # -------------------------------

    def configure(self, settings: LineSettings) -> None:
        gpiod = self._backend.gpiod
        line_settings = gpiod.LineSettings(
            direction=self._backend.Direction.INPUT,
            bias=self._backend.bias_for(settings.pull),
            edge_detection=self._backend.edge_for(settings.edge),
            debounce_period=timedelta(seconds=settings.debounce),
        )

        with self._lock:
            if self._released:
                raise PinConfigurationFailed(self.identifier, ConfigFailureCause.UNKNOWN, "line released")
            if self._request is not None:
                self._request.release()
                self._request = None
            try:
                self._request = self._chip.request_lines(
                    config={self.offset: line_settings},
                    consumer=self._consumer,
                )
            except OSError as e:
                raise PinConfigurationFailed(self.identifier, cause_from_errno(e.errno), str(e)) from e
            except ValueError as e:
                raise PinConfigurationFailed(self.identifier, ConfigFailureCause.UNSUPPORTED, str(e)) from e

        log.debug("gpiod line requested", line=self.identifier, offset=self.offset, settings=settings.describe())

    # -------------------------------
    # IO
    # -------------------------------

    def _active_request(self):
        request = self._request
        if request is None:
            raise LineFatalError(f"{self.identifier}: no active line request")
        return request

    def read_level(self) -> bool:
        request = self._active_request()
        try:
            return request.get_value(self.offset) == self._backend.Value.ACTIVE
        except OSError as e:
            if e.errno in _FATAL_ERRNOS:
                raise LineFatalError(f"{self.identifier}: {e}") from e
            raise LineReadError(f"{self.identifier}: {e}") from e

    def wait_for_edge(self, timeout: float) -> EdgeResult:
        if self._pending:
            return self._pending.popleft()

        request = self._active_request()
        try:
            if not request.wait_edge_events(timedelta(seconds=timeout)):
                return EdgeResult.timed_out()
            events = request.read_edge_events()
        except OSError as e:
            if e.errno in _FATAL_ERRNOS:
                raise LineFatalError(f"{self.identifier}: {e}") from e
            log.debug("gpiod edge wait failed", line=self.identifier, error=str(e))
            return EdgeResult.failed()

        rising = self._backend.gpiod.EdgeEvent.Type.RISING_EDGE
        for event in events:
            self._pending.append(
                EdgeResult.edge(event.event_type == rising, event.timestamp_ns / 1e9)
            )
        if not self._pending:
            return EdgeResult.timed_out()
        return self._pending.popleft()

    def set_edge_handler(self, handler) -> None:
        raise TypeError("gpiod lines are polled; use wait_for_edge()")

    # -------------------------------
    # Lifecycle
    # -------------------------------

    def release(self) -> None:
        with self._lock:
            if self._released:
                return
            self._released = True
            request, self._request = self._request, None
            self._pending.clear()
        if request is not None:
            request.release()
        log.debug("gpiod line released", line=self.identifier)

    def __repr__(self) -> str:
        return f"<GpiodLine {self.identifier} offset={self.offset}>"


class GpiodLineBackend:
    """
    Line backend on top of the gpiod (libgpiod v2) Python bindings.

    Chips are opened on first use and kept until close().
    """

    name = "gpiod"

    def __init__(self, default_chip: str = DEFAULT_CHIP):
        try:
            import gpiod
            from gpiod.line import Bias, Direction, Edge, Value
        except ImportError as e:
            raise RuntimeError("gpiod not available") from e

        self.gpiod = gpiod
        self.Direction = Direction
        self.Value = Value
        self._bias = {
            PullMode.NO_CHANGE: Bias.AS_IS,
            PullMode.UP: Bias.PULL_UP,
            PullMode.DOWN: Bias.PULL_DOWN,
            PullMode.DISABLED: Bias.DISABLED,
        }
        self._edge = {
            EdgeMode.BOTH: Edge.BOTH,
            EdgeMode.RISING: Edge.RISING,
            EdgeMode.FALLING: Edge.FALLING,
        }
        self._default_chip = default_chip
        self._chips: Dict[str, object] = {}
        self._lock = threading.Lock()

        log.info("gpiod line backend initialized", default_chip=default_chip)

    def bias_for(self, pull: PullMode):
        return self._bias[pull]

    def edge_for(self, edge: EdgeMode):
        return self._edge[edge]

    def _chip(self, identifier: str, path: str):
        with self._lock:
            chip = self._chips.get(path)
            if chip is not None:
                return chip
            try:
                chip = self.gpiod.Chip(path)
            except FileNotFoundError as e:
                raise PinNotFound(identifier, f"no chip {path}") from e
            except OSError as e:
                raise PinConfigurationFailed(identifier, cause_from_errno(e.errno), str(e)) from e
            self._chips[path] = chip
            return chip

    def open(self, identifier: str, consumer: str = "gpio-buttons") -> GpiodLine:
        path, line_id = parse_identifier(identifier, self._default_chip)
        chip = self._chip(identifier, path)

        if isinstance(line_id, int):
            num_lines = chip.get_info().num_lines
            if line_id >= num_lines:
                raise PinNotFound(identifier, f"{path} has {num_lines} lines")
            offset = line_id
        else:
            try:
                offset = chip.line_offset_from_id(line_id)
            except (OSError, ValueError) as e:
                raise PinNotFound(identifier, f"no line named {line_id!r} on {path}") from e

        return GpiodLine(self, chip, identifier, offset, consumer)

    def close(self) -> None:
        with self._lock:
            chips, self._chips = list(self._chips.values()), {}
        for chip in chips:
            chip.close()
        log.info("gpiod line backend closed", chips=len(chips))
