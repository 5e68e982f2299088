"""
Config Manager

Loads the button YAML configuration (backend selection, watch tuning and
button definitions). Falls back to factory defaults when the main file
cannot be read.
"""

import yaml
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from models.buttons import ButtonDefinition
from models.enums import BackendType, PullMode
from managers.button_manager import DEFAULT_POLL_TIMEOUT, DEFAULT_MAX_CONSECUTIVE_ERRORS
from utils.logger import get_logger, LogCategory
from utils.serialization import Serializer

log = get_logger().for_category(LogCategory.CONFIG)

SRC_DIR = Path(__file__).parent.parent

_BUTTON_KEYS = {"id", "debounce_ms", "pull", "active_low", "hardware_debounce"}


class ConfigManager:
    """
    Button configuration loader

    Example:
        config = ConfigManager()
        config.load()

        backend = create_line_backend(config.backend)
        manager = ButtonManager(backend, config.poll_timeout, config.max_consecutive_errors)
        for definition in config.buttons:
            manager.register_button(definition.to_config(on_press))
    """

    def __init__(
        self,
        config_path: Union[str, Path] = "config/buttons.yaml",
        defaults_path: Union[str, Path] = "config/factory_defaults.yaml",
    ):
        """
        Args:
            config_path: Path to the main config (relative paths resolve against src/)
            defaults_path: Path to factory defaults fallback
        """
        self.config_path = self._resolve(config_path)
        self.factory_defaults_path = self._resolve(defaults_path)
        self.data: Dict[str, Any] = {}

        self.backend = BackendType.AUTO
        self.poll_timeout = DEFAULT_POLL_TIMEOUT
        self.max_consecutive_errors = DEFAULT_MAX_CONSECUTIVE_ERRORS
        self.buttons: List[ButtonDefinition] = []

    @staticmethod
    def _resolve(path: Union[str, Path]) -> Path:
        path = Path(path)
        return path if path.is_absolute() else SRC_DIR / path

    def load(self) -> Dict[str, Any]:
        """
        Load and parse the YAML configuration

        Returns:
            Raw config data dict

        Raises:
            ValueError: A setting or button entry is invalid
        """
        try:
            self.data = self._read(self.config_path)
            log.info("Loaded configuration", path=str(self.config_path))
        except (OSError, yaml.YAMLError) as ex:
            log.error("Failed to load config", path=str(self.config_path),
                      error=str(ex), error_type=type(ex).__name__)
            log.warn("Falling back to factory defaults")
            self.data = self._read(self.factory_defaults_path)

        self.parse(self.data)
        return self.data

    @staticmethod
    def _read(path: Path) -> Dict[str, Any]:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise yaml.YAMLError(f"{path}: top level must be a mapping")
        return data

    def parse(self, data: Dict[str, Any]) -> None:
        """Populate settings and button definitions from a config dict."""
        self.backend = Serializer.str_to_enum(data.get("backend", "auto"), BackendType)

        poll_ms = data.get("poll_timeout_ms", DEFAULT_POLL_TIMEOUT * 1000)
        if not isinstance(poll_ms, (int, float)) or isinstance(poll_ms, bool) or poll_ms <= 0:
            raise ValueError(f"poll_timeout_ms must be a positive number, got {poll_ms!r}")
        self.poll_timeout = poll_ms / 1000.0

        max_errors = data.get("max_consecutive_errors", DEFAULT_MAX_CONSECUTIVE_ERRORS)
        if not isinstance(max_errors, int) or isinstance(max_errors, bool) or max_errors < 1:
            raise ValueError(f"max_consecutive_errors must be an integer >= 1, got {max_errors!r}")
        self.max_consecutive_errors = max_errors

        entries = data.get("buttons") or []
        if not isinstance(entries, list):
            raise ValueError("buttons must be a list")

        self.buttons = [self._parse_button(i, entry) for i, entry in enumerate(entries)]
        seen = set()
        for definition in self.buttons:
            if definition.identifier in seen:
                raise ValueError(f"buttons: duplicate id {definition.identifier!r}")
            seen.add(definition.identifier)

        log.info(
            f"Loaded {len(self.buttons)} button definitions",
            backend=self.backend.name,
            poll_timeout=f"{self.poll_timeout * 1000:.0f}ms",
        )

    @staticmethod
    def _parse_button(index: int, entry: Any) -> ButtonDefinition:
        where = f"buttons[{index}]"
        if not isinstance(entry, dict):
            raise ValueError(f"{where}: expected a mapping, got {type(entry).__name__}")

        unknown = set(entry) - _BUTTON_KEYS
        if unknown:
            raise ValueError(f"{where}: unknown keys {sorted(unknown)}")

        identifier = entry.get("id")
        if identifier is None or not str(identifier).strip():
            raise ValueError(f"{where}: 'id' is required")
        identifier = str(identifier).strip()
        where = f"{where} ({identifier})"

        debounce_ms = entry.get("debounce_ms")
        debounce: Optional[float] = None
        if debounce_ms is not None:
            if not isinstance(debounce_ms, (int, float)) or isinstance(debounce_ms, bool) or debounce_ms < 0:
                raise ValueError(f"{where}: debounce_ms must be a number >= 0")
            debounce = debounce_ms / 1000.0

        pull: Optional[PullMode] = None
        if entry.get("pull") is not None:
            try:
                pull = Serializer.str_to_enum(entry["pull"], PullMode)
            except ValueError as e:
                raise ValueError(f"{where}: {e}") from e

        flags = {}
        for key in ("active_low", "hardware_debounce"):
            value = entry.get(key, False)
            if not isinstance(value, bool):
                raise ValueError(f"{where}: {key} must be true or false")
            flags[key] = value

        return ButtonDefinition(
            identifier=identifier,
            debounce_window=debounce,
            pull_mode=pull,
            **flags,
        )
