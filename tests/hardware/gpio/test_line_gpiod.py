import errno
import sys
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from hardware.errors import PinNotFound, PinConfigurationFailed, LineFatalError
from hardware.gpio.line_gpiod import GpiodLineBackend, parse_identifier
from models.enums import ConfigFailureCause, EdgeMode, EdgeStatus, LineKind, PullMode
from models.hardware import LineSettings


@pytest.fixture
def gpiod_mock(monkeypatch):
    """Mock gpiod (v2) module and its gpiod.line submodule."""
    gpiod = MagicMock(name="gpiod")
    line_module = MagicMock(name="gpiod.line")
    gpiod.line = line_module
    monkeypatch.setitem(sys.modules, "gpiod", gpiod)
    monkeypatch.setitem(sys.modules, "gpiod.line", line_module)

    chip = gpiod.Chip.return_value
    chip.get_info.return_value.num_lines = 54
    return gpiod


@pytest.fixture
def chip(gpiod_mock):
    return gpiod_mock.Chip.return_value


@pytest.fixture
def request_mock(chip):
    return chip.request_lines.return_value


def edge_event(gpiod, rising: bool, timestamp_ns: int):
    event = MagicMock()
    event.event_type = gpiod.EdgeEvent.Type.RISING_EDGE if rising else gpiod.EdgeEvent.Type.FALLING_EDGE
    event.timestamp_ns = timestamp_ns
    return event


@pytest.mark.parametrize("identifier, expected", [
    ("gpiochip0:17", ("/dev/gpiochip0", 17)),
    ("/dev/gpiochip4:GPIO22", ("/dev/gpiochip4", "GPIO22")),
    ("17", ("/dev/gpiochip0", 17)),
    (" GPIO5 ", ("/dev/gpiochip0", "GPIO5")),
])
def test_parse_identifier(identifier, expected):
    assert parse_identifier(identifier) == expected


def test_parse_identifier_rejects_empty_line():
    with pytest.raises(PinNotFound):
        parse_identifier("gpiochip0:")


def test_missing_library_raises_runtime_error(monkeypatch):
    monkeypatch.setitem(sys.modules, "gpiod", None)
    with pytest.raises(RuntimeError, match="gpiod not available"):
        GpiodLineBackend()


def test_open_numeric_offset(gpiod_mock, chip):
    backend = GpiodLineBackend()
    line = backend.open("gpiochip0:17")

    gpiod_mock.Chip.assert_called_once_with("/dev/gpiochip0")
    assert line.offset == 17
    assert line.kind is LineKind.POLL


def test_chip_opened_once(gpiod_mock):
    backend = GpiodLineBackend()
    backend.open("gpiochip0:17")
    backend.open("gpiochip0:18")
    assert gpiod_mock.Chip.call_count == 1


def test_open_offset_out_of_range(gpiod_mock):
    backend = GpiodLineBackend()
    with pytest.raises(PinNotFound):
        backend.open("gpiochip0:99")


def test_open_unknown_line_name(gpiod_mock, chip):
    chip.line_offset_from_id.side_effect = OSError(errno.ENOENT, "no such line")
    backend = GpiodLineBackend()
    with pytest.raises(PinNotFound):
        backend.open("GPIO99")


def test_open_missing_chip(gpiod_mock):
    gpiod_mock.Chip.side_effect = FileNotFoundError(errno.ENOENT, "no chip")
    backend = GpiodLineBackend()
    with pytest.raises(PinNotFound):
        backend.open("gpiochip9:1")


def test_configure_builds_line_settings(gpiod_mock, chip):
    line_module = sys.modules["gpiod.line"]
    backend = GpiodLineBackend()
    line = backend.open("gpiochip0:17")

    line.configure(LineSettings(pull=PullMode.UP, edge=EdgeMode.BOTH, debounce=0.01))

    gpiod_mock.LineSettings.assert_called_once_with(
        direction=line_module.Direction.INPUT,
        bias=line_module.Bias.PULL_UP,
        edge_detection=line_module.Edge.BOTH,
        debounce_period=timedelta(seconds=0.01),
    )
    chip.request_lines.assert_called_once_with(
        config={17: gpiod_mock.LineSettings.return_value},
        consumer="gpio-buttons",
    )


@pytest.mark.parametrize("err, cause", [
    (errno.EBUSY, ConfigFailureCause.BUSY),
    (errno.EACCES, ConfigFailureCause.PERMISSION_DENIED),
    (errno.EINVAL, ConfigFailureCause.UNSUPPORTED),
    (errno.EIO, ConfigFailureCause.UNKNOWN),
])
def test_configure_maps_errno_to_cause(gpiod_mock, chip, err, cause):
    chip.request_lines.side_effect = OSError(err, "request failed")
    line = GpiodLineBackend().open("gpiochip0:17")

    with pytest.raises(PinConfigurationFailed) as exc_info:
        line.configure(LineSettings())
    assert exc_info.value.cause is cause


def test_wait_for_edge_buffers_events(gpiod_mock, request_mock):
    line = GpiodLineBackend().open("gpiochip0:17")
    line.configure(LineSettings())

    request_mock.wait_edge_events.return_value = True
    request_mock.read_edge_events.return_value = [
        edge_event(gpiod_mock, rising=False, timestamp_ns=1_000_000_000),
        edge_event(gpiod_mock, rising=True, timestamp_ns=1_500_000_000),
    ]

    first = line.wait_for_edge(0.1)
    second = line.wait_for_edge(0.1)

    assert (first.level, first.timestamp) == (False, 1.0)
    assert (second.level, second.timestamp) == (True, 1.5)
    assert request_mock.wait_edge_events.call_count == 1


def test_wait_for_edge_timeout(gpiod_mock, request_mock):
    line = GpiodLineBackend().open("gpiochip0:17")
    line.configure(LineSettings())
    request_mock.wait_edge_events.return_value = False

    assert line.wait_for_edge(0.1).status is EdgeStatus.TIMEOUT


def test_wait_for_edge_transient_and_fatal_errors(gpiod_mock, request_mock):
    line = GpiodLineBackend().open("gpiochip0:17")
    line.configure(LineSettings())

    request_mock.wait_edge_events.side_effect = OSError(errno.EINTR, "interrupted")
    assert line.wait_for_edge(0.1).status is EdgeStatus.ERROR

    request_mock.wait_edge_events.side_effect = OSError(errno.ENODEV, "gone")
    with pytest.raises(LineFatalError):
        line.wait_for_edge(0.1)


def test_read_level(gpiod_mock, request_mock):
    line_module = sys.modules["gpiod.line"]
    line = GpiodLineBackend().open("gpiochip0:17")
    line.configure(LineSettings())

    request_mock.get_value.return_value = line_module.Value.ACTIVE
    assert line.read_level() is True
    request_mock.get_value.assert_called_with(17)


def test_release_is_idempotent(gpiod_mock, request_mock):
    line = GpiodLineBackend().open("gpiochip0:17")
    line.configure(LineSettings())

    line.release()
    line.release()
    request_mock.release.assert_called_once()

    with pytest.raises(LineFatalError):
        line.wait_for_edge(0.1)


def test_close_closes_chips(gpiod_mock, chip):
    backend = GpiodLineBackend()
    backend.open("gpiochip0:1")
    backend.close()
    chip.close.assert_called_once()
