"""
Shutdown handlers for the button monitor.

ButtonManagerShutdownHandler stops the watch loops and releases every line;
LineBackendShutdownHandler closes backend-wide resources afterwards.
"""

from hardware.gpio.line_interface import ILineBackend
from lifecycle.shutdown_protocol import IShutdownHandler
from managers.button_manager import ButtonManager
from utils.logger import get_logger, LogCategory

log = get_logger().for_category(LogCategory.SHUTDOWN)


class ButtonManagerShutdownHandler(IShutdownHandler):
    """
    Stops the ButtonManager.

    Priority: 50 (before task cancellation and backend close)
    """

    def __init__(self, manager: ButtonManager):
        self.manager = manager

    @property
    def shutdown_priority(self) -> int:
        return 50

    async def shutdown(self) -> None:
        log.info("Stopping button manager...", buttons=self.manager.button_count())
        await self.manager.stop()
        log.debug("Button manager stopped")


class LineBackendShutdownHandler(IShutdownHandler):
    """
    Closes the line backend (chips, library state).

    Priority: 10 (shutdown last)
    """

    def __init__(self, backend: ILineBackend):
        self.backend = backend

    @property
    def shutdown_priority(self) -> int:
        return 10

    async def shutdown(self) -> None:
        log.info(f"Closing {self.backend.name} line backend...")
        self.backend.close()
