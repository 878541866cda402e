"""
CLI: ``keel guard`` — claim and probe single-instance tokens.

Exit codes follow shell conventions so the commands compose in scripts::

    keel guard exists editor && echo "editor is running"
"""

from __future__ import annotations

import contextlib
import time

import typer

from keel.cli.utils import console, err_console, output_result
from keel.core.guard import InstanceGuard
from keel.core.logging import bind_context, clear_context

app = typer.Typer(no_args_is_help=True)


@app.command("claim")
def claim(
    flag: str = typer.Argument(..., help="Instance flag (joined to the namespace)"),
    namespace: str | None = typer.Option(None, "--namespace", "-n", help="Token namespace"),
    hold: float = typer.Option(
        0.0,
        "--hold",
        help="Seconds to keep the claim; negative holds until interrupted.",
    ),
) -> None:
    """Claim a token. Exit 0 when claimed, 1 when another instance holds it."""
    guard = InstanceGuard(flag, namespace=namespace)
    bind_context(token=guard.token)
    try:
        if not guard.claim():
            err_console.print(f"[yellow]busy[/yellow] {guard.token}")
            raise typer.Exit(code=1)

        console.print(f"[green]claimed[/green] {guard.token}")
        with contextlib.suppress(KeyboardInterrupt):
            if hold < 0:
                while True:
                    time.sleep(3600)
            elif hold > 0:
                time.sleep(hold)
    finally:
        guard.release()
        clear_context()


@app.command("exists")
def exists(
    flag: str = typer.Argument(..., help="Instance flag (joined to the namespace)"),
    namespace: str | None = typer.Option(None, "--namespace", "-n", help="Token namespace"),
) -> None:
    """Probe a token. Exit 0 when another instance holds it, 1 when free."""
    guard = InstanceGuard(flag, namespace=namespace)
    if guard.exists():
        console.print(f"[yellow]running[/yellow] {guard.token}")
        return
    console.print(f"[green]free[/green] {guard.token}")
    raise typer.Exit(code=1)


@app.command("info")
def info(
    flag: str = typer.Argument(..., help="Instance flag (joined to the namespace)"),
    namespace: str | None = typer.Option(None, "--namespace", "-n", help="Token namespace"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """Show the token, OS key and backend used for a flag."""
    guard = InstanceGuard(flag, namespace=namespace)
    data = guard.snapshot().to_dict()
    data["held_elsewhere"] = guard.exists()
    output_result(data, as_json=json_out, title=f"Guard: {guard.token}")
