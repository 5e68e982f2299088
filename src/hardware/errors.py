"""
Button system exceptions

Registration errors are raised to the caller of register_button()/start().
Line errors (read/fatal) stay inside the watch loops.
"""

import errno
from typing import Optional

from models.enums import ConfigFailureCause


class ButtonError(Exception):
    """Base class for all button system errors."""


class PinNotFound(ButtonError):
    """Identifier does not resolve to a hardware line."""

    def __init__(self, identifier: str, reason: Optional[str] = None):
        self.identifier = identifier
        self.reason = reason
        message = f"Pin {identifier!r} not found"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class PinConfigurationFailed(ButtonError):
    """Hardware layer rejected the requested line configuration."""

    def __init__(self, identifier: str, cause: ConfigFailureCause, detail: Optional[str] = None):
        self.identifier = identifier
        self.cause = cause
        self.detail = detail
        message = f"Failed to configure pin {identifier!r} ({cause.name.lower()})"
        if detail:
            message += f": {detail}"
        super().__init__(message)

    @property
    def is_busy(self) -> bool:
        return self.cause is ConfigFailureCause.BUSY


class NoButtonsConfigured(ButtonError):
    """start() called with an empty registry."""

    def __init__(self):
        super().__init__("No buttons configured")


class ManagerStateError(ButtonError):
    """Operation not allowed in the manager's current phase."""


class DuplicateButtonError(ButtonError, ValueError):
    """Identifier already registered and not yet released."""

    def __init__(self, identifier: str):
        self.identifier = identifier
        super().__init__(f"Button {identifier!r} is already registered")


class LineReadError(ButtonError):
    """Transient failure reading a line level or its edge events."""


class LineFatalError(ButtonError):
    """Line is no longer usable (device removed, request closed)."""


class DispatchError(ButtonError):
    """A button callback raised."""

    def __init__(self, identifier: str, original: BaseException):
        self.identifier = identifier
        self.original = original
        super().__init__(
            f"Callback for button {identifier!r} failed: "
            f"{type(original).__name__}: {original}"
        )


_BUSY_ERRNOS = {errno.EBUSY}
_PERMISSION_ERRNOS = {errno.EPERM, errno.EACCES}
_UNSUPPORTED_ERRNOS = {
    errno.EINVAL,
    errno.EOPNOTSUPP,
    getattr(errno, "ENOTSUP", errno.EOPNOTSUPP),
    524,  # ENOTSUPP (kernel internal, leaks from some GPIO drivers)
}


def cause_from_errno(err: Optional[int]) -> ConfigFailureCause:
    """Map an OSError errno from a line request to a configuration failure cause."""
    if err in _BUSY_ERRNOS:
        return ConfigFailureCause.BUSY
    if err in _PERMISSION_ERRNOS:
        return ConfigFailureCause.PERMISSION_DENIED
    if err in _UNSUPPORTED_ERRNOS:
        return ConfigFailureCause.UNSUPPORTED
    return ConfigFailureCause.UNKNOWN
