"""dpctl credentials - Show or update login credentials."""

from __future__ import annotations

from typing import Optional

import typer
from rich.console import Console

from dpctl.cli.options import handle_errors
from dpctl.config.settings import settings
from dpctl.core.credentials import get_credentials, update_password
from dpctl.core.k8s_client import K8sClient
from dpctl.output.tables import credentials_panel

app = typer.Typer()
console = Console()


@app.callback(invoke_without_command=True)
def credentials(
    password: Optional[str] = typer.Option(None, "--password", help="Set a new password"),
) -> None:
    """Print the instance-admin credentials."""
    with handle_errors():
        k8s = K8sClient(kubeconfig=str(settings.kubeconfig))
        if password:
            with console.status(f"Updating password and restarting {settings.server_deployment}"):
                changed = update_password(k8s, password)
            if changed:
                console.print("[green]Password updated[/green]")

        creds = get_credentials(k8s)
        console.print(f"Retrieving your credentials from '{settings.auth_secret}'")
        console.print(credentials_panel(creds.password, creds.client_id, creds.client_secret))
