"""Shared CLI options and error handling."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

import typer
from rich.console import Console

from dpctl.config.settings import settings
from dpctl.core.errors import DpctlError

OutputOption = typer.Option("table", "--output", "-o", help="Output format: table, json, yaml")
PortOption = typer.Option(settings.port, "--port", help="HTTP port the platform is exposed on")

err_console = Console(stderr=True)


@contextmanager
def handle_errors() -> Iterator[None]:
    """Report a DpctlError as a single red line and exit with status 1."""
    try:
        yield
    except DpctlError as e:
        err_console.print(f"[red bold]Error ({e.category}):[/red bold] {e}", highlight=False)
        raise typer.Exit(code=1) from e
