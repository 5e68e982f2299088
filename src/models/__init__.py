"""
Models package - Data models for the button monitor
"""

from .enums import (
    PullMode, EdgeMode, LineKind, EdgeStatus, ConfigFailureCause,
    BackendType, ButtonState, ManagerPhase, LogLevel, LogCategory,
)
from .hardware import LineSettings, EdgeResult
from .buttons import ButtonConfig, ButtonDefinition, ButtonStats, DEFAULT_DEBOUNCE_WINDOW

__all__ = [
    'PullMode',
    'EdgeMode',
    'LineKind',
    'EdgeStatus',
    'ConfigFailureCause',
    'BackendType',
    'ButtonState',
    'ManagerPhase',
    'LogLevel',
    'LogCategory',
    'LineSettings',
    'EdgeResult',
    'ButtonConfig',
    'ButtonDefinition',
    'ButtonStats',
    'DEFAULT_DEBOUNCE_WINDOW',
]
