"""Tests for keel.core.scheduling.protocol and AsyncioExecutor."""

from __future__ import annotations

import asyncio

import pytest

from keel.core.errors import ErrorCategory, SchedulingError
from keel.core.scheduling import AsyncioExecutor, LoopExecutor, RecurringTask


class _ManualExecutor:
    """Executor whose timers fire only when the test advances the clock."""

    name = "manual"

    def __init__(self) -> None:
        self.now = 0.0
        self.timers: list[list] = []

    def call_later(self, delay_seconds, callback):
        entry = [self.now + delay_seconds, callback, False]
        self.timers.append(entry)

        class _Handle:
            def cancel(self_inner) -> None:
                entry[2] = True

        return _Handle()

    def time(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds
        due = [t for t in self.timers if t[0] <= self.now and not t[2]]
        self.timers = [t for t in self.timers if t not in due]
        for entry in due:
            entry[1]()


class TestLoopExecutorProtocol:
    def test_manual_executor_satisfies_protocol(self):
        assert isinstance(_ManualExecutor(), LoopExecutor)

    def test_object_without_call_later_does_not(self):
        class NotAnExecutor:
            name = "nope"

            def time(self) -> float:
                return 0.0

        assert not isinstance(NotAnExecutor(), LoopExecutor)

    def test_task_drives_any_executor(self):
        ex = _ManualExecutor()
        calls = []

        def record(flag) -> None:
            calls.append(ex.time())
            if len(calls) == 3:
                flag.stop()

        task = RecurringTask(100, record, executor=ex).start()
        assert calls == []

        for _ in range(5):
            ex.advance(0.1)

        assert calls == pytest.approx([0.1, 0.2, 0.3])
        assert task.state.value == "stopped"
        assert ex.timers == []

    def test_zero_interval(self):
        ex = _ManualExecutor()
        calls = []

        def record(flag) -> None:
            calls.append(1)
            if len(calls) == 2:
                flag.stop()

        RecurringTask(0, record, executor=ex).start(call_on_start=True)
        assert len(calls) == 1
        ex.advance(0)
        assert len(calls) == 2


class TestAsyncioExecutor:
    def test_requires_running_loop(self):
        with pytest.raises(SchedulingError) as exc_info:
            AsyncioExecutor()
        assert exc_info.value.category == ErrorCategory.SCHEDULING
        assert exc_info.value.context.backend == "asyncio"

    @pytest.mark.asyncio
    async def test_binds_running_loop(self):
        ex = AsyncioExecutor()
        assert ex.loop is asyncio.get_running_loop()
        assert isinstance(ex, LoopExecutor)

    @pytest.mark.asyncio
    async def test_call_later_and_time(self):
        ex = AsyncioExecutor()
        fired = asyncio.Event()
        start = ex.time()
        ex.call_later(0.02, fired.set)
        await asyncio.wait_for(fired.wait(), 2.0)
        assert ex.time() - start >= 0.01

    @pytest.mark.asyncio
    async def test_cancelled_timer_does_not_fire(self):
        ex = AsyncioExecutor()
        calls = []
        ex.call_later(0.01, lambda: calls.append(1)).cancel()
        await asyncio.sleep(0.05)
        assert calls == []
