"""
Enums for the button monitoring system
"""

from enum import Enum, auto


class PullMode(Enum):
    """Input line bias (pull resistor) configuration"""
    NO_CHANGE = auto()   # Leave the kernel/board default untouched
    UP = auto()          # Internal pull-up (line rests HIGH)
    DOWN = auto()        # Internal pull-down (line rests LOW)
    DISABLED = auto()    # Bias explicitly disabled (floating)


class EdgeMode(Enum):
    """Which level transitions the hardware reports"""
    BOTH = auto()
    RISING = auto()
    FALLING = auto()


class LineKind(Enum):
    """
    How a line delivers edges

    POLL: caller blocks on wait_for_edge() with a timeout
    EVENT: hardware layer pushes edges to a registered handler
    """
    POLL = auto()
    EVENT = auto()


class EdgeStatus(Enum):
    """Outcome of a single wait_for_edge() call"""
    EDGE = auto()
    TIMEOUT = auto()
    ERROR = auto()


class ConfigFailureCause(Enum):
    """Why the hardware layer refused a line configuration"""
    BUSY = auto()                # Line already claimed by another consumer
    UNSUPPORTED = auto()         # Bias/debounce/edge option not supported
    PERMISSION_DENIED = auto()   # No access to the GPIO device
    UNKNOWN = auto()


class BackendType(Enum):
    """Line backend selection"""
    AUTO = auto()
    GPIOD = auto()
    RPI_GPIO = auto()
    SIMULATED = auto()


class ButtonState(Enum):
    """
    Per-button lifecycle

    IDLE → CONFIGURED → RUNNING → STOPPING → RELEASED
    RELEASED is terminal; a released button must be registered again.
    """
    IDLE = auto()
    CONFIGURED = auto()
    RUNNING = auto()
    STOPPING = auto()
    RELEASED = auto()


class ManagerPhase(Enum):
    """ButtonManager lifecycle"""
    IDLE = auto()       # Accepting registrations, not watching
    RUNNING = auto()    # Watch loops active, registrations rejected
    STOPPING = auto()   # Cancellation raised, joining watch loops
    STOPPED = auto()    # All lines released, registry empty


class LogLevel(Enum):
    """Log severity levels"""
    DEBUG = auto()
    INFO = auto()
    WARN = auto()
    ERROR = auto()


class LogCategory(Enum):
    """Log categories for grouping related events"""
    CONFIG = auto()      # Configuration loading, validation
    HARDWARE = auto()    # Line backends, line configuration
    BUTTON = auto()      # Registration, presses, dispatch
    SYSTEM = auto()      # Startup, shutdown, errors
    SHUTDOWN = auto()
    TASK = auto()

    GENERAL = auto()    # Default general category
