from hardware.gpio.line_mock import SimulatedLineBackend
from main_asyncio import register_buttons
from managers.button_manager import ButtonManager
from managers.config_manager import ConfigManager


def make_config(*identifiers):
    config = ConfigManager()
    config.parse({"backend": "simulated", "buttons": [{"id": i} for i in identifiers]})
    return config


def test_register_buttons_skips_busy_lines(capsys):
    backend = SimulatedLineBackend()
    backend.add_line("busy", busy=True)
    manager = ButtonManager(backend)

    assert register_buttons(manager, make_config("busy", "free")) == 1
    assert manager.identifiers() == ["free"]
    assert "line is used by another process" in capsys.readouterr().out
    assert backend.line("busy").released


def test_register_buttons_skips_unknown_lines(capsys):
    backend = SimulatedLineBackend(strict=True)
    backend.add_line("known")
    manager = ButtonManager(backend)

    assert register_buttons(manager, make_config("missing", "known")) == 1
    out = capsys.readouterr().out
    assert "Skipping button" in out
    assert "another process" not in out
