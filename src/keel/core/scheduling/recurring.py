"""Self-rescheduling recurring task.

Manifesto:
    A periodic job in an event-driven application usually needs three things
    a plain repeating timer does not give: the job decides for itself whether
    to run again, the first run can happen immediately, and a slow run never
    overlaps the next one.  RecurringTask turns a one-shot timer into such a
    job by re-arming only after the callback has returned and said so.

Architecture:
    ::

        start(call_on_start)
          │
          ├── call_on_start ─► _run() ──┐
          └── otherwise ────► _arm()    │
                                │       │
              ┌─────────────────▼───┐   │
              │ ARMED               │   │
              │ executor.call_later │   │
              └─────────┬───────────┘   │
                        │ timer fires   │
                        ▼               │
              ┌─────────────────────┐   │
              │ RUNNING             │◄──┘
              │ flag = ContinueFlag │
              │ callback(flag)      │
              └─────────┬───────────┘
                        │ finally
               flag? ───┼──── yes ─► _arm()  (back to ARMED)
                        └──── no ──► STOPPED (terminal)

    Lifetime: the executor only sees a weak reference to the task.  When the
    caller drops its last reference, the pending timer is cancelled and a
    firing that is already queued finds the reference dead and does nothing.

Guardrails:
    ❌ Capturing the task itself inside its own callback (keeps it alive)
    ✅ Stop from inside the callback with ``flag.stop()``
    ❌ Restarting a stopped task
    ✅ Construct a new RecurringTask

Tags:
    keel, scheduling, timer, recurring, event-loop

Doc-Types:
    api-reference
"""

from __future__ import annotations

import functools
import threading
import weakref
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from keel.core.errors import TaskStateError, ValidationError
from keel.core.logging import get_logger

from .asyncio_executor import AsyncioExecutor
from .protocol import LoopExecutor, TimerHandle

logger = get_logger(__name__)


class TaskState(str, Enum):
    IDLE = "idle"
    ARMED = "armed"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass
class ContinueFlag:
    """Continuation flag handed to each callback invocation.

    Starts out ``True``; the callback calls :meth:`stop` (or sets ``value``)
    to end the task after this invocation.
    """

    value: bool = True

    def stop(self) -> None:
        self.value = False

    def __bool__(self) -> bool:
        return self.value


TaskCallback = Callable[[ContinueFlag], None]


def _fire(task_ref: weakref.ReferenceType[RecurringTask]) -> None:
    task = task_ref()
    if task is None:
        return
    task._run(TaskState.ARMED)


def _cancel_pending(pending: list[TimerHandle]) -> None:
    for handle in pending:
        handle.cancel()
    pending.clear()


class RecurringTask:
    """Runs ``callback`` every ``interval_ms`` until it asks to stop.

    Example:
        >>> def poll(flag: ContinueFlag) -> None:
        ...     if not refresh():
        ...         flag.stop()
        >>>
        >>> task = RecurringTask(5000, poll).start(call_on_start=True)
        >>> # keep ``task`` referenced; ``del task`` cancels it
    """

    def __init__(
        self,
        interval_ms: int,
        callback: TaskCallback,
        *,
        executor: LoopExecutor | None = None,
        name: str | None = None,
    ) -> None:
        if interval_ms < 0:
            raise ValidationError(
                "interval_ms must be >= 0",
                field="interval_ms",
                value=interval_ms,
            )
        self.interval_ms = interval_ms
        self.name = name or getattr(callback, "__qualname__", repr(callback))
        self._callback = callback
        self._executor = executor if executor is not None else AsyncioExecutor()
        self._state = TaskState.IDLE
        self._invocations = 0
        self._last_started: datetime | None = None
        self._last_finished: datetime | None = None
        # cancel() may come from a thread other than the loop's
        self._lock = threading.Lock()
        # Shared with the finalizer, which must not reference self.
        self._pending: list[TimerHandle] = []
        self._finalizer = weakref.finalize(self, _cancel_pending, self._pending)

    @property
    def state(self) -> TaskState:
        return self._state

    @property
    def invocations(self) -> int:
        return self._invocations

    @property
    def is_active(self) -> bool:
        return self._state in (TaskState.ARMED, TaskState.RUNNING)

    @property
    def executor(self) -> LoopExecutor:
        return self._executor

    def start(self, call_on_start: bool = False) -> RecurringTask:
        """Start the task; returns ``self`` so the handle can be kept in one line.

        With ``call_on_start`` the first invocation runs synchronously, in
        the caller's thread, before any timer is armed. An exception from
        that invocation propagates to the caller after the task is re-armed.

        Raises:
            TaskStateError: The task has already been started.
        """
        if self._state is not TaskState.IDLE:
            raise TaskStateError(
                f"Task {self.name!r} cannot be started twice",
                state=self._state.value,
            ).with_context(task=self.name)

        if call_on_start:
            self._run(TaskState.IDLE)
        else:
            with self._lock:
                self._arm()
        return self

    def cancel(self) -> None:
        """Stop the task and drop its pending timer. Idempotent."""
        with self._lock:
            if self._state is TaskState.STOPPED:
                return
            _cancel_pending(self._pending)
            self._state = TaskState.STOPPED
        logger.debug("task_cancelled", task=self.name, invocations=self._invocations)

    def health(self) -> dict[str, Any]:
        return {
            "healthy": self.is_active,
            "task": self.name,
            "state": self._state.value,
            "invocations": self._invocations,
            "interval_ms": self.interval_ms,
            "executor": self._executor.name,
            "last_started": self._last_started.isoformat() if self._last_started else None,
            "last_finished": self._last_finished.isoformat() if self._last_finished else None,
        }

    def _arm(self) -> None:
        handle = self._executor.call_later(
            self.interval_ms / 1000,
            functools.partial(_fire, weakref.ref(self)),
        )
        self._pending[:] = [handle]
        self._state = TaskState.ARMED

    def _run(self, expected: TaskState) -> None:
        with self._lock:
            # a firing already queued when cancel() ran
            if self._state is not expected:
                return
            self._pending.clear()
            self._state = TaskState.RUNNING
            self._invocations += 1
            self._last_started = datetime.now(UTC)

        flag = ContinueFlag()
        stopped = False
        try:
            self._callback(flag)
        finally:
            with self._lock:
                self._last_finished = datetime.now(UTC)
                # cancel() during the callback already moved us to STOPPED
                if self._state is TaskState.RUNNING:
                    if flag:
                        self._arm()
                    else:
                        self._state = TaskState.STOPPED
                        stopped = True
            if stopped:
                logger.debug("task_stopped", task=self.name, invocations=self._invocations)

    def __repr__(self) -> str:
        return (
            f"RecurringTask(name={self.name!r}, interval_ms={self.interval_ms}, "
            f"state={self._state.value}, invocations={self._invocations})"
        )


def start_recurring(
    interval_ms: int,
    callback: TaskCallback,
    call_on_start: bool = False,
    *,
    executor: LoopExecutor | None = None,
    name: str | None = None,
) -> RecurringTask:
    """Create and start a :class:`RecurringTask`; the returned handle owns it.

    If ``call_on_start`` is set and the first invocation raises, the exception
    propagates before a handle is returned.  The task is re-armed internally,
    but with no reference left it is collected and cancelled, so it never
    fires again.  To keep a task alive across a failing first invocation,
    construct it first and call :meth:`RecurringTask.start` on the kept handle.
    """
    task = RecurringTask(interval_ms, callback, executor=executor, name=name)
    return task.start(call_on_start)
