"""
Shutdown coordinator: critical task monitoring and the handler sequence.
"""

import asyncio

import pytest

from hardware.gpio.line_mock import SimulatedLineBackend
from lifecycle.handlers import (
    AllTasksCancellationHandler,
    ButtonManagerShutdownHandler,
    LineBackendShutdownHandler,
)
from lifecycle.shutdown_coordinator import ShutdownCoordinator
from lifecycle.task_registry import create_tracked_task, TaskCategory, TaskRegistry
from managers.button_manager import ButtonManager
from models.buttons import ButtonConfig
from models.enums import ButtonState, ManagerPhase


async def sleeper():
    while True:
        await asyncio.sleep(0.05)


class RecordingHandler:
    def __init__(self, name, priority, calls, fail=False):
        self.name = name
        self.shutdown_priority = priority
        self.calls = calls
        self.fail = fail

    async def shutdown(self):
        self.calls.append(self.name)
        if self.fail:
            raise RuntimeError(f"{self.name} broke")


@pytest.mark.asyncio
async def test_wait_for_shutdown_returns_on_request():
    coordinator = ShutdownCoordinator()
    task = create_tracked_task(sleeper(), category=TaskCategory.WATCH, description="idle watch")

    asyncio.get_running_loop().call_later(0.05, coordinator.request_shutdown, "test")
    await asyncio.wait_for(coordinator.wait_for_shutdown(), timeout=2.0)

    assert coordinator.reason == "test"
    assert not task.done()
    task.cancel()


@pytest.mark.asyncio
async def test_failed_critical_task_triggers_shutdown(capsys):
    coordinator = ShutdownCoordinator()

    async def broken():
        await asyncio.sleep(0.02)
        raise RuntimeError("dispatcher exploded")

    create_tracked_task(broken(), category=TaskCategory.DISPATCH, description="Button dispatch 17")
    await asyncio.wait_for(coordinator.wait_for_shutdown(), timeout=2.0)

    assert coordinator.reason == "Task failure: Button dispatch 17"
    out = capsys.readouterr().out
    assert "Critical task failed: Button dispatch 17" in out
    assert "task_category: DISPATCH" in out


@pytest.mark.asyncio
async def test_broken_button_line_does_not_trigger_shutdown(eventually):
    backend = SimulatedLineBackend()
    manager = ButtonManager(backend, poll_timeout=0.01)
    bad = manager.register_button(ButtonConfig("bad", lambda identifier: None))
    manager.register_button(ButtonConfig("good", lambda identifier: None))
    await manager.start()

    def broken_wait(timeout):
        raise OSError(5, "EIO from driver")

    backend.line("bad").wait_for_edge = broken_wait
    coordinator = ShutdownCoordinator()
    waiter = asyncio.ensure_future(coordinator.wait_for_shutdown())

    await eventually(lambda: bad.state is ButtonState.RELEASED)
    await asyncio.sleep(0.05)
    assert not waiter.done()

    coordinator.request_shutdown("test")
    await asyncio.wait_for(waiter, timeout=2.0)
    assert coordinator.reason == "test"
    await manager.stop()


@pytest.mark.asyncio
async def test_clean_task_exit_does_not_trigger_shutdown():
    coordinator = ShutdownCoordinator()

    async def finishes():
        await asyncio.sleep(0.01)

    task = create_tracked_task(finishes(), category=TaskCategory.WATCH, description="short watch")
    waiter = asyncio.ensure_future(coordinator.wait_for_shutdown())

    await asyncio.sleep(0.1)
    assert task.done()
    assert not waiter.done()

    coordinator.request_shutdown("test")
    await asyncio.wait_for(waiter, timeout=2.0)
    assert coordinator.reason == "test"


@pytest.mark.asyncio
async def test_first_reason_wins():
    coordinator = ShutdownCoordinator()
    coordinator.request_shutdown("SIGTERM")
    coordinator.request_shutdown("SIGINT")
    assert coordinator.reason == "SIGTERM"


def test_register_rejects_incomplete_handler():
    coordinator = ShutdownCoordinator()
    with pytest.raises(ValueError):
        coordinator.register(object())


@pytest.mark.asyncio
async def test_shutdown_all_runs_by_priority_and_survives_errors():
    calls = []
    coordinator = ShutdownCoordinator()
    coordinator.register(RecordingHandler("last", 10, calls))
    coordinator.register(RecordingHandler("first", 50, calls, fail=True))
    coordinator.register(RecordingHandler("middle", 30, calls))

    await coordinator.shutdown_all()

    assert calls == ["first", "middle", "last"]
    assert isinstance(coordinator.get_handler(RecordingHandler), RecordingHandler)


@pytest.mark.asyncio
async def test_slow_handler_times_out():
    calls = []

    class Slow:
        shutdown_priority = 20

        async def shutdown(self):
            await asyncio.sleep(10)

    coordinator = ShutdownCoordinator(timeout_per_handler=0.05)
    coordinator.register(Slow())
    coordinator.register(RecordingHandler("after", 10, calls))

    await asyncio.wait_for(coordinator.shutdown_all(), timeout=2.0)
    assert calls == ["after"]


@pytest.mark.asyncio
async def test_full_button_shutdown_sequence():
    backend = SimulatedLineBackend()
    manager = ButtonManager(backend, poll_timeout=0.01)
    manager.register_button(ButtonConfig("17", lambda identifier: None))
    await manager.start()

    stray = create_tracked_task(sleeper(), category=TaskCategory.GENERAL, description="stray")

    coordinator = ShutdownCoordinator()
    coordinator.register(ButtonManagerShutdownHandler(manager))
    coordinator.register(AllTasksCancellationHandler())
    coordinator.register(LineBackendShutdownHandler(backend))

    coordinator.request_shutdown("test")
    await coordinator.wait_for_shutdown()
    await coordinator.shutdown_all()

    assert manager.phase is ManagerPhase.STOPPED
    assert backend.line("17").released
    assert backend.open_lines() == []
    assert stray.cancelled()
    assert TaskRegistry.instance().active() == []
