"""Loop executor protocol.

┌──────────────────────────────────────────────────────────────────────────────┐
│  LOOP EXECUTOR PROTOCOL                                                       │
│                                                                               │
│  Executors control WHEN a one-shot timer fires; RecurringTask controls       │
│  WHAT happens on each firing and whether to re-arm.                          │
│                                                                               │
│   ┌─────────────────┐   call_later(delay, fire)   ┌─────────────────┐        │
│   │ AsyncioExecutor │ ◄────────────────────────── │ RecurringTask   │        │
│   │ (running loop)  │                             │                 │        │
│   └─────────────────┘                             │ - invoke cb     │        │
│                                                   │ - read flag     │        │
│   ┌─────────────────┐   call_later(delay, fire)   │ - re-arm/stop   │        │
│   │ ThreadLoop      │ ◄────────────────────────── │                 │        │
│   │ Executor        │                             └─────────────────┘        │
│   └─────────────────┘                                                        │
│                                                                               │
│  Executors hold only what call_later hands them: RecurringTask passes a      │
│  callable that reaches the task through a weak reference, so the caller's    │
│  handle alone decides the task's lifetime.                                   │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, runtime_checkable

TimerCallback = Callable[[], None]


class TimerHandle(Protocol):
    """A pending one-shot timer."""

    def cancel(self) -> None:
        """Prevent the timer from firing. Idempotent."""
        ...


@runtime_checkable
class LoopExecutor(Protocol):
    """Protocol for single-threaded event loop executors.

    Implementations:
        - AsyncioExecutor: wraps an existing asyncio event loop
        - ThreadLoopExecutor: owns an asyncio loop on a daemon thread
    """

    name: str

    def call_later(self, delay_seconds: float, callback: TimerCallback) -> TimerHandle:
        """Run ``callback`` once on the loop thread after ``delay_seconds``."""
        ...

    def time(self) -> float:
        """Current time on the executor's monotonic clock, in seconds."""
        ...
