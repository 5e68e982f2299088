import asyncio
from typing import List, Optional

from utils.logger import get_logger, LogCategory
from lifecycle.shutdown_protocol import IShutdownHandler
from lifecycle.task_registry import TaskRegistry

log = get_logger().for_category(LogCategory.SHUTDOWN)


class AllTasksCancellationHandler(IShutdownHandler):
    """
    Cancels every tracked task still running after the components stopped
    their own work, except the task running this handler and any
    explicitly excluded tasks.

    Priority: 30
    """

    shutdown_priority = 30

    def __init__(self, exclude_tasks: Optional[List[asyncio.Task]] = None, grace: float = 0.05):
        self.exclude_tasks = exclude_tasks or []
        self.grace = grace

    async def shutdown(self) -> None:
        current = asyncio.current_task()
        exclude = list(self.exclude_tasks)
        if current:
            exclude.append(current)

        tasks: List[asyncio.Task] = TaskRegistry.instance().get_tasks_for_shutdown(exclude=exclude)
        if not tasks:
            log.debug("No leftover tasks to cancel")
            return

        log.warn(f"Cancelling {len(tasks)} leftover tasks")
        for t in tasks:
            t.cancel(msg="shutdown")
            log.debug(f"Cancelled task: {t.get_name()}")

        done, pending = await asyncio.wait(tasks, timeout=self.grace)
        if pending:
            log.warn(f"{len(pending)} tasks still running after cancellation")
        else:
            log.info("All leftover tasks cancelled")
