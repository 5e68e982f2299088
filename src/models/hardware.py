"""
Hardware Line Models

Plain data passed between the button core and the line backends:
- LineSettings: what a line is asked to do
- EdgeResult: what one wait/notification produced

No backend-specific types leak through these.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, replace, field
from typing import Optional

from models.enums import PullMode, EdgeMode, EdgeStatus


@dataclass(frozen=True)
class LineSettings:
    """Input configuration requested from (and granted by) a line backend."""
    pull: PullMode = PullMode.NO_CHANGE
    edge: EdgeMode = EdgeMode.BOTH
    debounce: float = 0.0   # seconds of hardware debounce, 0 = none

    def __post_init__(self):
        if self.debounce < 0:
            raise ValueError("LineSettings.debounce must be >= 0")

    def without_bias(self) -> "LineSettings":
        return replace(self, pull=PullMode.NO_CHANGE)

    def without_debounce(self) -> "LineSettings":
        return replace(self, debounce=0.0)

    def describe(self) -> str:
        parts = [f"pull={self.pull.name}", f"edge={self.edge.name}"]
        if self.debounce:
            parts.append(f"debounce={self.debounce * 1000:.0f}ms")
        return ", ".join(parts)


@dataclass(frozen=True)
class EdgeResult:
    """
    Single outcome of waiting on a line.

    level: physical level after the edge (True = HIGH), None if the backend
           did not capture it and it still has to be read
    timestamp: seconds on the monotonic clock
    """
    status: EdgeStatus
    level: Optional[bool] = None
    timestamp: float = field(default_factory=time.monotonic)

    @classmethod
    def edge(cls, level: Optional[bool], timestamp: Optional[float] = None) -> "EdgeResult":
        if timestamp is None:
            return cls(EdgeStatus.EDGE, level)
        return cls(EdgeStatus.EDGE, level, timestamp)

    @classmethod
    def timed_out(cls) -> "EdgeResult":
        return cls(EdgeStatus.TIMEOUT)

    @classmethod
    def failed(cls) -> "EdgeResult":
        return cls(EdgeStatus.ERROR)

    @property
    def is_edge(self) -> bool:
        return self.status is EdgeStatus.EDGE
