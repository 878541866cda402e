"""Loop executor backed by an existing asyncio event loop."""

from __future__ import annotations

import asyncio

from keel.core.errors import SchedulingError

from .protocol import TimerCallback


class AsyncioExecutor:
    """Schedules timers on an asyncio event loop.

    Example:
        >>> async def main():
        ...     executor = AsyncioExecutor()  # binds to the running loop
        ...     task = start_recurring(500, poll, executor=executor)
        ...     await shutdown.wait()
    """

    name = "asyncio"

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError as e:
                raise SchedulingError(
                    "No running event loop; pass loop= or use ThreadLoopExecutor",
                    cause=e,
                ).with_context(backend=self.name) from e
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    def call_later(self, delay_seconds: float, callback: TimerCallback) -> asyncio.TimerHandle:
        return self._loop.call_later(delay_seconds, callback)

    def time(self) -> float:
        return self._loop.time()

    def __repr__(self) -> str:
        return f"AsyncioExecutor(loop={self._loop!r})"
