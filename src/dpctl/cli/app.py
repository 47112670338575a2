"""Root Typer application, mounts sub-commands."""

from __future__ import annotations

import logging

import typer
from rich.logging import RichHandler

app = typer.Typer(
    name="dpctl",
    help="dpctl - Run the data platform on a local kind cluster.",
    no_args_is_help=True,
)


@app.callback()
def root(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=verbose, show_path=False)],
        force=True,
    )
    # urllib3 and the kubernetes client are chatty at debug
    for name in ("urllib3", "kubernetes", "docker", "sh"):
        logging.getLogger(name).setLevel(logging.WARNING)


def _register_commands() -> None:
    from dpctl.cli.commands.install_cmd import app as install_app
    from dpctl.cli.commands.uninstall_cmd import app as uninstall_app
    from dpctl.cli.commands.status_cmd import app as status_app
    from dpctl.cli.commands.credentials_cmd import app as credentials_app
    from dpctl.cli.commands.deployments_cmd import app as deployments_app

    app.add_typer(install_app, name="install", help="Install the platform locally")
    app.add_typer(uninstall_app, name="uninstall", help="Remove the local cluster")
    app.add_typer(status_app, name="status", help="Show the installed releases")
    app.add_typer(credentials_app, name="credentials", help="Show or update login credentials")
    app.add_typer(deployments_app, name="deployments", help="List or restart platform deployments")


_register_commands()


def main() -> None:
    app()
