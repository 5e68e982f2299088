import asyncio
import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from lifecycle.task_registry import TaskRegistry


@pytest.fixture(autouse=True)
def fresh_task_registry():
    """Each test sees its own TaskRegistry singleton."""
    TaskRegistry._instance = None
    yield
    TaskRegistry._instance = None


@pytest.fixture
def eventually():
    """Await until predicate() is true or fail after `timeout` seconds."""

    async def _wait(predicate, timeout: float = 2.0, interval: float = 0.005):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not met in time")
            await asyncio.sleep(interval)

    return _wait
