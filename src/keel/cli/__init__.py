"""
CLI layer for keel.

Provides a Typer application whose commands are thin wrappers over
``keel.core``: argument parsing, coloured output and exit codes only.

Entry point::

    keel --help
"""

from keel.cli.app import app

__all__ = ["app"]
