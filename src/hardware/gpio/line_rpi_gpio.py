"""
RPi.GPIO line backend

Event model: RPi.GPIO runs its own edge-detection thread and calls back for
every edge matching the configured edge mode. Hardware debounce maps to the
library's `bouncetime`.

Identifiers are BCM pin numbers: "17", "GPIO17" or "BCM17".
"""

import re
import threading
import time
from typing import Dict, Optional

from hardware.errors import PinNotFound, PinConfigurationFailed, LineReadError
from hardware.gpio.line_interface import EdgeHandler
from models.enums import LineKind, PullMode, EdgeMode, EdgeStatus, ConfigFailureCause
from models.hardware import LineSettings, EdgeResult
from utils.logger import get_logger, LogCategory

log = get_logger().for_category(LogCategory.HARDWARE)

MAX_BCM_PIN = 27

_PIN_RE = re.compile(r"^(?:GPIO|BCM)?(\d+)$", re.IGNORECASE)


def parse_pin(identifier: str) -> int:
    match = _PIN_RE.match(identifier.strip())
    if not match:
        raise PinNotFound(identifier, "expected a BCM pin like '17' or 'GPIO17'")
    pin = int(match.group(1))
    if pin > MAX_BCM_PIN:
        raise PinNotFound(identifier, f"BCM pin must be 0-{MAX_BCM_PIN}")
    return pin


def _cause_from_message(message: str) -> ConfigFailureCause:
    text = message.lower()
    if "conflicting edge" in text or "already" in text:
        return ConfigFailureCause.BUSY
    if "/dev/mem" in text or "permission" in text or "root" in text:
        return ConfigFailureCause.PERMISSION_DENIED
    if "not supported" in text or "invalid" in text:
        return ConfigFailureCause.UNSUPPORTED
    return ConfigFailureCause.UNKNOWN


class RPiGPIOLine:
    """Single BCM input pin with push-style edge delivery."""

    kind = LineKind.EVENT

    def __init__(self, backend: "RPiGPIOLineBackend", identifier: str, pin: int):
        self.identifier = identifier
        self.pin = pin
        self._backend = backend
        self._gpio = backend.gpio
        self._lock = threading.Lock()
        self._handler: Optional[EdgeHandler] = None
        self._edge = EdgeMode.BOTH
        self._detecting = False
        self._released = False

    # -------------------------------
    # Configuration
    # -------------------------------

    def configure(self, settings: LineSettings) -> None:
        gpio = self._gpio
        pull = {
            PullMode.UP: gpio.PUD_UP,
            PullMode.DOWN: gpio.PUD_DOWN,
            PullMode.DISABLED: gpio.PUD_OFF,
        }.get(settings.pull)
        edge = {
            EdgeMode.RISING: gpio.RISING,
            EdgeMode.FALLING: gpio.FALLING,
            EdgeMode.BOTH: gpio.BOTH,
        }[settings.edge]

        with self._lock:
            if self._released:
                raise PinConfigurationFailed(self.identifier, ConfigFailureCause.UNKNOWN, "line released")
            try:
                if self._detecting:
                    gpio.remove_event_detect(self.pin)
                    self._detecting = False
                if pull is None:
                    gpio.setup(self.pin, gpio.IN)
                else:
                    gpio.setup(self.pin, gpio.IN, pull_up_down=pull)

                detect_kwargs = {"callback": self._on_edge}
                if settings.debounce > 0:
                    detect_kwargs["bouncetime"] = max(1, int(round(settings.debounce * 1000)))
                gpio.add_event_detect(self.pin, edge, **detect_kwargs)
            except RuntimeError as e:
                raise PinConfigurationFailed(self.identifier, _cause_from_message(str(e)), str(e)) from e
            except ValueError as e:
                raise PinConfigurationFailed(self.identifier, ConfigFailureCause.UNSUPPORTED, str(e)) from e

            self._detecting = True
            self._edge = settings.edge

        log.debug("RPi.GPIO pin configured", line=self.identifier, pin=self.pin, settings=settings.describe())

    # -------------------------------
    # IO
    # -------------------------------

    def read_level(self) -> bool:
        try:
            return bool(self._gpio.input(self.pin))
        except RuntimeError as e:
            raise LineReadError(f"{self.identifier}: {e}") from e

    def wait_for_edge(self, timeout: float) -> EdgeResult:
        raise TypeError("RPi.GPIO lines push edges; use set_edge_handler()")

    def set_edge_handler(self, handler: Optional[EdgeHandler]) -> None:
        with self._lock:
            self._handler = handler

    def _on_edge(self, channel: int) -> None:
        """Called from the RPi.GPIO event thread."""
        timestamp = time.monotonic()
        handler = self._handler
        if handler is None:
            return

        if self._edge is EdgeMode.FALLING:
            result = EdgeResult.edge(False, timestamp)
        elif self._edge is EdgeMode.RISING:
            result = EdgeResult.edge(True, timestamp)
        else:
            try:
                result = EdgeResult.edge(self.read_level(), timestamp)
            except LineReadError:
                result = EdgeResult(EdgeStatus.ERROR, None, timestamp)
        handler(result)

    # -------------------------------
    # Lifecycle
    # -------------------------------

    def release(self) -> None:
        with self._lock:
            if self._released:
                return
            self._released = True
            self._handler = None
            detecting, self._detecting = self._detecting, False

        try:
            if detecting:
                self._gpio.remove_event_detect(self.pin)
            self._gpio.cleanup(self.pin)
        finally:
            self._backend.unclaim(self.pin)
        log.debug("RPi.GPIO pin released", line=self.identifier, pin=self.pin)

    def __repr__(self) -> str:
        return f"<RPiGPIOLine {self.identifier} pin={self.pin}>"


class RPiGPIOLineBackend:
    """Line backend on top of RPi.GPIO (BCM numbering)."""

    name = "rpi_gpio"

    def __init__(self):
        try:
            import RPi.GPIO as GPIO
        except (ImportError, RuntimeError) as e:
            raise RuntimeError("RPi.GPIO not available") from e

        self.gpio = GPIO
        self._claimed: Dict[int, RPiGPIOLine] = {}
        self._lock = threading.Lock()

        self.gpio.setmode(self.gpio.BCM)
        self.gpio.setwarnings(False)

        log.info("RPi.GPIO line backend initialized (BCM mode)")

    def open(self, identifier: str, consumer: str = "gpio-buttons") -> RPiGPIOLine:
        pin = parse_pin(identifier)
        with self._lock:
            owner = self._claimed.get(pin)
            if owner is not None:
                raise PinConfigurationFailed(
                    identifier,
                    ConfigFailureCause.BUSY,
                    f"BCM {pin} already claimed as {owner.identifier!r}",
                )
            line = RPiGPIOLine(self, identifier, pin)
            self._claimed[pin] = line
        return line

    def unclaim(self, pin: int) -> None:
        with self._lock:
            self._claimed.pop(pin, None)

    def close(self) -> None:
        with self._lock:
            lines = list(self._claimed.values())
        for line in lines:
            line.release()
        log.info("RPi.GPIO line backend closed", pins=len(lines))
