"""
Debounce Gate

Per-button accept/reject decision for candidate presses.
"""

import threading
from typing import Optional


class DebounceGate:
    """
    Accepts a press only if more than `window` seconds passed since the last
    accepted one.

    Example:
        gate = DebounceGate()
        gate.consider(0.000, 0.05)  # True  (first press)
        gate.consider(0.030, 0.05)  # False (bounce)
        gate.consider(0.050, 0.05)  # False (exactly the window)
        gate.consider(0.080, 0.05)  # True
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._last_accepted: Optional[float] = None

    def consider(self, now: float, window: float) -> bool:
        with self._lock:
            last = self._last_accepted
            if last is not None and window > 0 and now - last <= window:
                return False
            self._last_accepted = now if last is None else max(last, now)
            return True

    @property
    def last_accepted(self) -> Optional[float]:
        return self._last_accepted

    def reset(self) -> None:
        with self._lock:
            self._last_accepted = None

    def __repr__(self) -> str:
        return f"<DebounceGate last_accepted={self._last_accepted}>"
