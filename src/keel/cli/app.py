"""
Root Typer application for the keel CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

from keel.cli.guard import app as guard_app
from keel.cli.tick import tick
from keel.core.logging import configure_logging
from keel.core.settings import get_settings

app = Typer(
    name="keel",
    help="keel — single-instance guard and recurring task primitives.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from keel import __version__

        typer.echo(f"keel {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    log_level: str | None = typer.Option(None, "--log-level", help="Override KEEL_LOG_LEVEL."),
    json_logs: bool | None = typer.Option(
        None,
        "--json-logs/--console-logs",
        help="Log format (default: JSON unless stderr is a terminal).",
    ),
) -> None:
    """keel CLI — probe single-instance tokens and run recurring tasks."""
    settings = get_settings()
    configure_logging(
        level=log_level or settings.log_level,
        json_format=json_logs if json_logs is not None else settings.json_logs,
    )


# ── Sub-command registration ─────────────────────────────────────────────

app.add_typer(guard_app, name="guard", help="Single-instance guard commands.")
app.command("tick")(tick)
