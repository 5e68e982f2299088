"""
Button Configuration Models

ButtonConfig is what callers hand to ButtonManager.register_button().
ButtonDefinition mirrors one entry of the buttons YAML file (no callback).
"""

from __future__ import annotations

from dataclasses import dataclass, replace, asdict
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from models.enums import PullMode

DEFAULT_DEBOUNCE_WINDOW = 0.05  # seconds

ButtonCallback = Callable[[str], Union[None, Awaitable[None]]]


@dataclass(frozen=True)
class ButtonConfig:
    """
    Configuration of a single monitored button.

    Args:
        identifier: Line identifier, also the registry key and the value passed
                    to the callback ("gpiochip0:17", "17", "GPIO17", ...)
        callback: Called once per accepted press; plain or async function
        debounce_window: Minimum seconds between accepted presses (None = 50 ms)
        pull_mode: Bias to request (None = UP for active-low, DOWN otherwise)
        active_low: A LOW reading means "pressed" (button wired to GND)
        hardware_debounce: Let the hardware layer debounce instead of the
                           software gate when it supports it
    """
    identifier: str
    callback: ButtonCallback
    debounce_window: Optional[float] = None
    pull_mode: Optional[PullMode] = None
    active_low: bool = False
    hardware_debounce: bool = False

    def __post_init__(self):
        if not isinstance(self.identifier, str) or not self.identifier.strip():
            raise ValueError("ButtonConfig.identifier is required; format 'gpiochipX:line' or 'line'")
        if not callable(self.callback):
            raise ValueError(f"ButtonConfig.callback for {self.identifier!r} must be callable")
        if self.debounce_window is not None and self.debounce_window < 0:
            raise ValueError(f"ButtonConfig.debounce_window for {self.identifier!r} must be >= 0")
        if self.pull_mode is not None and not isinstance(self.pull_mode, PullMode):
            raise ValueError(f"ButtonConfig.pull_mode for {self.identifier!r} must be a PullMode")

    def with_defaults(self) -> "ButtonConfig":
        """Return a copy with identifier trimmed and every default resolved."""
        window = DEFAULT_DEBOUNCE_WINDOW if self.debounce_window is None else float(self.debounce_window)
        pull = self.pull_mode
        if pull is None:
            pull = PullMode.UP if self.active_low else PullMode.DOWN
        return replace(
            self,
            identifier=self.identifier.strip(),
            debounce_window=window,
            pull_mode=pull,
        )


@dataclass(frozen=True)
class ButtonDefinition:
    """One button entry from the YAML config."""
    identifier: str
    debounce_window: Optional[float] = None
    pull_mode: Optional[PullMode] = None
    active_low: bool = False
    hardware_debounce: bool = False

    def to_config(self, callback: ButtonCallback) -> ButtonConfig:
        return ButtonConfig(
            identifier=self.identifier,
            callback=callback,
            debounce_window=self.debounce_window,
            pull_mode=self.pull_mode,
            active_low=self.active_low,
            hardware_debounce=self.hardware_debounce,
        )

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ButtonStats:
    """Runtime counters for one button."""
    edges: int = 0
    accepted: int = 0
    rejected: int = 0
    read_errors: int = 0
    dispatch_failures: int = 0
