"""
CLI: ``keel tick`` — run a recurring task and print each firing.
"""

from __future__ import annotations

import asyncio

import typer

from keel.cli.utils import console
from keel.core.scheduling import AsyncioExecutor, ContinueFlag, start_recurring
from keel.core.settings import get_settings


async def _run_ticks(interval_ms: int, count: int, on_start: bool) -> int:
    loop = asyncio.get_running_loop()
    done = asyncio.Event()
    started = loop.time()
    fired = 0

    def _tick(flag: ContinueFlag) -> None:
        nonlocal fired
        fired += 1
        elapsed_ms = (loop.time() - started) * 1000
        console.print(f"tick {fired}/{count} [dim]+{elapsed_ms:.0f}ms[/dim]")
        if fired >= count:
            flag.stop()
            done.set()

    task = start_recurring(interval_ms, _tick, on_start, executor=AsyncioExecutor(loop), name="cli-tick")
    await done.wait()
    return task.invocations


def tick(
    interval_ms: int | None = typer.Option(
        None,
        "--interval-ms",
        "-i",
        min=0,
        help="Interval between firings (default: KEEL_DEFAULT_INTERVAL_MS).",
    ),
    count: int = typer.Option(3, "--count", "-c", min=1, help="Stop after this many firings."),
    on_start: bool = typer.Option(True, "--on-start/--no-on-start", help="Fire once immediately."),
) -> None:
    """Run a demonstration recurring task on asyncio."""
    if interval_ms is None:
        interval_ms = get_settings().default_interval_ms
    invocations = asyncio.run(_run_ticks(interval_ms, count, on_start))
    console.print(f"[green]stopped[/green] after {invocations} invocations")
