"""
Serialization utilities - enum and model conversion for config and status

Provides bidirectional conversion between:
- Enums ↔ Strings (PullMode, BackendType, ButtonState, ...)
- Runtime records ↔ Dicts (Button status snapshots)
"""

from typing import TypeVar, Type, Any, Dict, Optional, TYPE_CHECKING
from enum import Enum

if TYPE_CHECKING:
    from hardware.input.button import Button

T = TypeVar('T', bound=Enum)


class Serializer:
    """Central enum and model serialization"""

    # ========================================================================
    # ENUM SERIALIZATION
    # ========================================================================

    @staticmethod
    def enum_to_str(value: Optional[Enum]) -> Optional[str]:
        """Convert any enum to string name"""
        return value.name if value else None

    @staticmethod
    def str_to_enum(value: str, enum_type: Type[T]) -> T:
        """
        Convert string to enum, raise ValueError if invalid

        Accepts config-style spellings: case-insensitive, '-' or ' ' for '_'
        ("pull-up" is not a PullMode name, "no-change" is NO_CHANGE).
        """
        if isinstance(value, enum_type):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Invalid {enum_type.__name__}: {value!r}")
        key = value.strip().upper().replace("-", "_").replace(" ", "_")
        try:
            return enum_type[key]
        except KeyError:
            allowed = ", ".join(m.name.lower() for m in enum_type)
            raise ValueError(f"Invalid {enum_type.__name__}: {value!r} (expected one of: {allowed})")

    # ========================================================================
    # BUTTON SERIALIZATION
    # ========================================================================

    @staticmethod
    def button_to_dict(button: "Button") -> Dict[str, Any]:
        """
        Serialize a registered button to a JSON-compatible dict

        Returns:
            Dict with identifier, state, line kind, requested config,
            granted line settings and counters
        """
        config = button.config
        granted = button.granted
        stats = button.stats
        return {
            "identifier": config.identifier,
            "state": Serializer.enum_to_str(button.state),
            "kind": Serializer.enum_to_str(button.kind),
            "debounce_window": config.debounce_window,
            "effective_window": button.effective_window,
            "pull_mode": Serializer.enum_to_str(config.pull_mode),
            "active_low": config.active_low,
            "granted": {
                "pull": Serializer.enum_to_str(granted.pull),
                "edge": Serializer.enum_to_str(granted.edge),
                "debounce": granted.debounce,
            },
            "stats": {
                "edges": stats.edges,
                "accepted": stats.accepted,
                "rejected": stats.rejected,
                "read_errors": stats.read_errors,
                "dispatch_failures": stats.dispatch_failures,
            },
        }
