"""
Hardware Layer

Low-level input handling only:

- GPIO line backends (gpiod, RPi.GPIO, simulated) behind ILine/ILineBackend
- Button runtime record and its debounce gate
- Button system exceptions
"""
from .errors import (
    ButtonError,
    PinNotFound,
    PinConfigurationFailed,
    NoButtonsConfigured,
    ManagerStateError,
    DuplicateButtonError,
    LineReadError,
    LineFatalError,
    DispatchError,
)
from .gpio import ILine, ILineBackend, create_line_backend

__all__ = [
    "ButtonError",
    "PinNotFound",
    "PinConfigurationFailed",
    "NoButtonsConfigured",
    "ManagerStateError",
    "DuplicateButtonError",
    "LineReadError",
    "LineFatalError",
    "DispatchError",
    "ILine",
    "ILineBackend",
    "create_line_backend",
]
