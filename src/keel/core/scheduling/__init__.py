"""Scheduling package for keel.

Manifesto:
    Periodic work in an event-driven application must never overlap itself,
    must be able to stop from the inside, and must stop when its owner lets
    go of it.  The scheduling package provides a recurring task with exactly
    those guarantees on top of pluggable single-threaded loop executors.

Quick Start::

    import asyncio
    from keel.core.scheduling import ContinueFlag, start_recurring

    async def main():
        def heartbeat(flag: ContinueFlag) -> None:
            if not send_heartbeat():
                flag.stop()

        task = start_recurring(1000, heartbeat, call_on_start=True)
        await asyncio.sleep(60)
        task.cancel()

Guardrails:
    ❌ Re-arming from inside the callback
    ✅ Leave the flag set; the task re-arms after the callback returns
    ❌ Relying on catch-up firings after a slow callback
    ✅ The next firing is always ``interval`` after the previous one ended

Tags:
    keel, scheduling, recurring, asyncio, thread, loop-executor

Doc-Types:
    package-overview, module-index
"""

from __future__ import annotations

from .asyncio_executor import AsyncioExecutor
from .protocol import LoopExecutor, TimerCallback, TimerHandle
from .recurring import (
    ContinueFlag,
    RecurringTask,
    TaskCallback,
    TaskState,
    start_recurring,
)
from .thread_backend import ThreadLoopExecutor

__all__ = [
    # Protocol
    "LoopExecutor",
    "TimerHandle",
    "TimerCallback",
    # Executors
    "AsyncioExecutor",
    "ThreadLoopExecutor",
    # Task
    "RecurringTask",
    "ContinueFlag",
    "TaskCallback",
    "TaskState",
    "start_recurring",
]
