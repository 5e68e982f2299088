from .all_tasks_cancellation_handler import AllTasksCancellationHandler
from .button_shutdown_handler import ButtonManagerShutdownHandler, LineBackendShutdownHandler

__all__ = [
    "AllTasksCancellationHandler",
    "ButtonManagerShutdownHandler",
    "LineBackendShutdownHandler",
]
