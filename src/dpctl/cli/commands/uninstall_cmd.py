"""dpctl uninstall - Remove the local cluster."""

from __future__ import annotations

import shutil

import typer
from rich.console import Console

from dpctl.cli.options import handle_errors
from dpctl.config.settings import settings
from dpctl.core.cluster import KindCluster

app = typer.Typer()
console = Console()


@app.callback(invoke_without_command=True)
def uninstall(
    persisted: bool = typer.Option(False, "--persisted", help="Also remove persisted data"),
) -> None:
    """Delete the kind cluster, optionally with its data."""
    with handle_errors():
        cluster = KindCluster()
        if not cluster.exists():
            console.print(f"Cluster '{cluster.name}' does not exist\nNo additional action required")
        else:
            with console.status(f"Deleting cluster '{cluster.name}'"):
                cluster.delete()
            console.print(f"[green]Uninstallation of cluster '{cluster.name}' completed successfully[/green]")

        if persisted:
            data_dir = settings.data_dir
            if data_dir.exists():
                shutil.rmtree(data_dir)
                console.print(f"Removed persisted data in '{data_dir}'")
