"""dpctl deployments - List or restart the platform deployments."""

from __future__ import annotations

import typer
from rich.console import Console

from dpctl.cli.options import handle_errors
from dpctl.config.settings import settings
from dpctl.core.errors import ClusterError
from dpctl.core.k8s_client import K8sClient

app = typer.Typer()
console = Console()


@app.callback(invoke_without_command=True)
def deployments(
    restart: str = typer.Option("", "--restart", help="Deployment to restart"),
) -> None:
    """List the platform deployments, or restart one of them."""
    ns = settings.platform_namespace
    with handle_errors():
        k8s = K8sClient(kubeconfig=str(settings.kubeconfig))
        if restart:
            with console.status(f"Restarting deployment {restart}"):
                try:
                    k8s.deployment_restart(ns, restart)
                except Exception as e:
                    raise ClusterError(f"unable to restart deployment {restart!r}: {e}") from e
            console.print(f"[green]Restarted deployment '{restart}'[/green]")
            return

        try:
            items = k8s.deployment_list(ns)
        except Exception as e:
            raise ClusterError(f"unable to list deployments: {e}") from e
        if not items:
            console.print("No deployments found")
            return
        console.print("Found the following deployments:")
        for d in items:
            console.print(f"  {d.metadata.name}", highlight=False)
