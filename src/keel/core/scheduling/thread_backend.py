"""Loop executor that owns an asyncio event loop on a daemon thread.

For applications that have no event loop of their own (scripts, CLI tools,
synchronous services) this executor provides one, so RecurringTask keeps its
single-threaded, re-arm-after-return semantics.

┌──────────────────────────────────────────────────────────────────────────────┐
│  THREAD LOOP EXECUTOR                                                         │
│                                                                               │
│   start()                                                                     │
│      │                                                                        │
│      ▼                                                                        │
│   ┌─────────────────────────────────────────────────────────┐                │
│   │              Daemon Thread "keel-loop"                  │                │
│   │                                                         │                │
│   │   loop.run_forever()                                    │                │
│   │      ◄── call_soon_threadsafe(arm timer)   (any thread) │                │
│   │      ◄── call_soon_threadsafe(cancel timer)(any thread) │                │
│   │      ◄── call_soon_threadsafe(submit fn)   (any thread) │                │
│   │                                                         │                │
│   └─────────────────────────────────────────────────────────┘                │
│                                                                               │
│   stop()                                                                      │
│      │                                                                        │
│      ▼                                                                        │
│   call_soon_threadsafe(loop.stop)                                            │
│   thread.join(timeout=5.0)                                                   │
│                                                                               │
│  Key Design Decisions:                                                        │
│  1. Daemon thread: doesn't block process exit                                │
│  2. Timers armed from a foreign thread hop onto the loop thread first        │
│  3. submit() starts a task on the loop thread, so even its immediate         │
│     first firing runs there                                                  │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable
from concurrent.futures import Future
from datetime import UTC, datetime
from typing import Any, TypeVar

from keel.core.errors import SchedulingError
from keel.core.logging import get_logger

from .protocol import TimerCallback

logger = get_logger(__name__)

T = TypeVar("T")


class _LoopThreadTimer:
    """Timer handle that may be armed and cancelled from any thread."""

    def __init__(self, executor: ThreadLoopExecutor, delay_seconds: float, callback: TimerCallback) -> None:
        self._executor = executor
        self._handle: asyncio.TimerHandle | None = None
        self._cancelled = False
        if executor.in_loop_thread():
            self._arm(delay_seconds, callback)
        else:
            executor.loop.call_soon_threadsafe(self._arm, delay_seconds, callback)

    def _arm(self, delay_seconds: float, callback: TimerCallback) -> None:
        if self._cancelled:
            return
        self._handle = self._executor.loop.call_later(delay_seconds, callback)

    def _cancel_on_loop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()

    def cancel(self) -> None:
        self._cancelled = True
        loop = self._executor.loop
        if self._executor.in_loop_thread():
            self._cancel_on_loop()
        elif not loop.is_closed():
            loop.call_soon_threadsafe(self._cancel_on_loop)

    def cancelled(self) -> bool:
        return self._cancelled


class ThreadLoopExecutor:
    """Owns a private asyncio loop running on a daemon thread.

    Example:
        >>> with ThreadLoopExecutor() as executor:
        ...     task = executor.submit(
        ...         start_recurring, 1000, heartbeat, True, executor=executor
        ...     ).result()
        ...     wait_for_shutdown()
    """

    name = "thread"

    def __init__(self) -> None:
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._thread_id: int | None = None
        self._started = False
        self._started_at: datetime | None = None
        self._timers_armed = 0
        self._lock = threading.Lock()

    def start(self) -> None:
        """Start the loop thread and wait until the loop is accepting work."""
        if self._started:
            logger.warning("thread_loop_already_started")
            return

        loop = asyncio.new_event_loop()
        ready = threading.Event()

        def _run() -> None:
            asyncio.set_event_loop(loop)
            self._thread_id = threading.get_ident()
            loop.call_soon(ready.set)
            logger.info("thread_loop_started")
            try:
                loop.run_forever()
            finally:
                loop.close()
                logger.info("thread_loop_stopped")

        self._loop = loop
        self._thread = threading.Thread(target=_run, daemon=True, name="keel-loop")
        self._thread.start()
        ready.wait()
        self._started = True
        self._started_at = datetime.now(UTC)

    def stop(self) -> None:
        """Stop the loop, dropping pending timers.

        Waits up to 5 seconds for a running callback to complete.
        """
        if not self._started:
            return

        self._started = False
        self.loop.call_soon_threadsafe(self.loop.stop)
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=5.0)
            if self._thread.is_alive():
                logger.warning("thread_loop_stop_timeout")

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            raise SchedulingError("ThreadLoopExecutor has not been started").with_context(backend=self.name)
        return self._loop

    @property
    def is_running(self) -> bool:
        return self._started and self._thread is not None and self._thread.is_alive()

    def in_loop_thread(self) -> bool:
        return self._thread_id is not None and threading.get_ident() == self._thread_id

    def call_later(self, delay_seconds: float, callback: TimerCallback) -> _LoopThreadTimer:
        if not self.is_running:
            raise SchedulingError("ThreadLoopExecutor is not running").with_context(backend=self.name)
        with self._lock:
            self._timers_armed += 1
        return _LoopThreadTimer(self, delay_seconds, callback)

    def time(self) -> float:
        return self.loop.time()

    def submit(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> Future[T]:
        """Run ``fn(*args, **kwargs)`` on the loop thread; returns a Future."""
        if not self.is_running:
            raise SchedulingError("ThreadLoopExecutor is not running").with_context(backend=self.name)

        future: Future[T] = Future()

        def _run() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                result = fn(*args, **kwargs)
            except Exception as e:
                future.set_exception(e)
            else:
                future.set_result(result)

        self.loop.call_soon_threadsafe(_run)
        return future

    def health(self) -> dict[str, Any]:
        """Return executor health status."""
        return {
            "healthy": self.is_running,
            "backend": self.name,
            "timers_armed": self._timers_armed,
            "started_at": self._started_at.isoformat() if self._started_at else None,
        }

    def __enter__(self) -> ThreadLoopExecutor:
        self.start()
        return self

    def __exit__(self, *args: Any) -> None:
        self.stop()
