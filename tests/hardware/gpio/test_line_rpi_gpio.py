import sys
import types
from unittest.mock import MagicMock

import pytest

from hardware.errors import PinNotFound, PinConfigurationFailed
from hardware.gpio.line_rpi_gpio import RPiGPIOLineBackend, parse_pin
from models.enums import ConfigFailureCause, EdgeMode, EdgeStatus, LineKind, PullMode
from models.hardware import LineSettings


@pytest.fixture
def gpio_mock(monkeypatch):
    """Mock RPi.GPIO module."""
    gpio = MagicMock(name="RPi.GPIO")
    gpio.HIGH = 1
    gpio.LOW = 0
    rpi = types.ModuleType("RPi")
    rpi.GPIO = gpio
    monkeypatch.setitem(sys.modules, "RPi", rpi)
    monkeypatch.setitem(sys.modules, "RPi.GPIO", gpio)
    return gpio


@pytest.mark.parametrize("identifier, pin", [("17", 17), ("GPIO4", 4), ("bcm27", 27), (" 0 ", 0)])
def test_parse_pin(identifier, pin):
    assert parse_pin(identifier) == pin


@pytest.mark.parametrize("identifier", ["28", "gpiochip0:17", "abc", ""])
def test_parse_pin_rejects(identifier):
    with pytest.raises(PinNotFound):
        parse_pin(identifier)


def test_backend_sets_bcm_mode(gpio_mock):
    RPiGPIOLineBackend()
    gpio_mock.setmode.assert_called_once_with(gpio_mock.BCM)
    gpio_mock.setwarnings.assert_called_once_with(False)


def test_missing_library_raises_runtime_error(monkeypatch):
    monkeypatch.setitem(sys.modules, "RPi", None)
    with pytest.raises(RuntimeError, match="RPi.GPIO not available"):
        RPiGPIOLineBackend()


def test_pin_conflict_is_busy(gpio_mock):
    backend = RPiGPIOLineBackend()
    line = backend.open("17")
    assert line.kind is LineKind.EVENT

    with pytest.raises(PinConfigurationFailed) as exc_info:
        backend.open("GPIO17")
    assert exc_info.value.cause is ConfigFailureCause.BUSY


def test_configure_sets_up_event_detection(gpio_mock):
    line = RPiGPIOLineBackend().open("17")
    line.configure(LineSettings(pull=PullMode.UP, edge=EdgeMode.FALLING, debounce=0.05))

    gpio_mock.setup.assert_called_once_with(17, gpio_mock.IN, pull_up_down=gpio_mock.PUD_UP)
    gpio_mock.add_event_detect.assert_called_once_with(
        17, gpio_mock.FALLING, callback=line._on_edge, bouncetime=50
    )


def test_configure_without_debounce_omits_bouncetime(gpio_mock):
    line = RPiGPIOLineBackend().open("22")
    line.configure(LineSettings(pull=PullMode.NO_CHANGE, edge=EdgeMode.RISING))

    gpio_mock.setup.assert_called_once_with(22, gpio_mock.IN)
    gpio_mock.add_event_detect.assert_called_once_with(22, gpio_mock.RISING, callback=line._on_edge)


@pytest.mark.parametrize("message, cause", [
    ("Conflicting edge detection already enabled for this GPIO channel", ConfigFailureCause.BUSY),
    ("No access to /dev/mem.  Try running as root!", ConfigFailureCause.PERMISSION_DENIED),
    ("Failed to add edge detection", ConfigFailureCause.UNKNOWN),
])
def test_configure_maps_runtime_errors(gpio_mock, message, cause):
    gpio_mock.add_event_detect.side_effect = RuntimeError(message)
    line = RPiGPIOLineBackend().open("17")

    with pytest.raises(PinConfigurationFailed) as exc_info:
        line.configure(LineSettings(edge=EdgeMode.FALLING))
    assert exc_info.value.cause is cause


def test_edge_callback_reports_press_edge_level(gpio_mock):
    line = RPiGPIOLineBackend().open("17")
    line.configure(LineSettings(edge=EdgeMode.FALLING))
    received = []
    line.set_edge_handler(received.append)

    line._on_edge(17)

    assert len(received) == 1
    assert received[0].status is EdgeStatus.EDGE
    assert received[0].level is False


def test_edge_callback_reads_level_for_both_edges(gpio_mock):
    gpio_mock.input.return_value = 1
    line = RPiGPIOLineBackend().open("17")
    line.configure(LineSettings(edge=EdgeMode.BOTH))
    received = []
    line.set_edge_handler(received.append)

    line._on_edge(17)
    assert received[0].level is True


def test_edge_callback_without_handler_is_ignored(gpio_mock):
    line = RPiGPIOLineBackend().open("17")
    line.configure(LineSettings(edge=EdgeMode.FALLING))
    line._on_edge(17)


def test_release_cleans_up_and_unclaims(gpio_mock):
    backend = RPiGPIOLineBackend()
    line = backend.open("17")
    line.configure(LineSettings(edge=EdgeMode.FALLING))

    line.release()
    line.release()

    gpio_mock.remove_event_detect.assert_called_once_with(17)
    gpio_mock.cleanup.assert_called_once_with(17)
    backend.open("17")
