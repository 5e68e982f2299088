from typing import Protocol, Callable, Optional

from models.enums import LineKind
from models.hardware import LineSettings, EdgeResult

EdgeHandler = Callable[[EdgeResult], None]


class ILine(Protocol):
    """One exclusively-owned input line."""

    identifier: str
    kind: LineKind

    # -------------------------------
    # Configuration
    # -------------------------------

    def configure(self, settings: LineSettings) -> None:
        """
        Configure as input with the given bias/edge/debounce.

        Raises:
            PinConfigurationFailed: Hardware rejected the settings
        """
        ...

    # -------------------------------
    # IO
    # -------------------------------

    def read_level(self) -> bool:
        """Raw physical level (True = HIGH). Raises LineReadError / LineFatalError."""
        ...

    def wait_for_edge(self, timeout: float) -> EdgeResult:
        """Block up to `timeout` seconds for the next edge (POLL lines only)."""
        ...

    def set_edge_handler(self, handler: Optional[EdgeHandler]) -> None:
        """Install (or remove with None) the push handler (EVENT lines only)."""
        ...

    # -------------------------------
    # Lifecycle
    # -------------------------------

    def release(self) -> None:
        """Give the line back. Idempotent."""
        ...


class ILineBackend(Protocol):

    name: str

    def open(self, identifier: str, consumer: str) -> ILine:
        """
        Resolve an identifier to an unconfigured line.

        Raises:
            PinNotFound: Identifier does not name a line on this backend
            PinConfigurationFailed: Line exists but cannot be claimed
        """
        ...

    def close(self) -> None:
        """Release backend-wide resources (chips, library state)."""
        ...
