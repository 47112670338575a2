"""dpctl install - Install the platform on a local kind cluster."""

from __future__ import annotations

import threading
import uuid
from typing import List, Optional

import docker
import typer
from rich.console import Console

from dpctl.cli.options import PortOption, handle_errors
from dpctl.config.settings import settings
from dpctl.core.cluster import KindCluster, parse_volume_mounts
from dpctl.core.errors import DockerError
from dpctl.core.helm_client import HelmClient
from dpctl.core.installer import Installer
from dpctl.core.k8s_client import K8sClient
from dpctl.models.install import InstallRequest

app = typer.Typer()
console = Console()


def _installation_id() -> str:
    """Stable per-machine id, created on first install."""
    path = settings.home_dir / "installation-id"
    if path.exists():
        value = path.read_text(encoding="utf-8").strip()
        if value:
            return value
    value = str(uuid.uuid4())
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(value, encoding="utf-8")
    return value


def _docker_client() -> docker.DockerClient:
    try:
        client = docker.from_env()
        client.ping()
    except docker.errors.DockerException as e:
        raise DockerError(f"unable to communicate with the docker daemon: {e}") from e
    return client


@app.callback(invoke_without_command=True)
def install(
    chart_version: str = typer.Option("", "--chart-version", help="Platform chart version (default: latest)"),
    chart: str = typer.Option("", "--chart", help="Platform chart reference, path or URL"),
    values: str = typer.Option("", "--values", help="Helm values file, overrides every other setting"),
    set_values: Optional[List[str]] = typer.Option(None, "--set", help="Dotted key=value chart setting (repeatable)"),
    host: Optional[List[str]] = typer.Option(None, "--host", help="Hostname the ingress should answer to (repeatable)"),
    secret: Optional[List[str]] = typer.Option(None, "--secret", help="Secret manifest to apply (repeatable)"),
    volume: Optional[List[str]] = typer.Option(None, "--volume", help="Extra <HOST_PATH>:<GUEST_PATH> mount (repeatable)"),
    docker_server: str = typer.Option("https://index.docker.io/v1/", "--docker-server", help="Registry for image pulls"),
    docker_username: str = typer.Option("", "--docker-username", envvar="DPCTL_DOCKER_USERNAME"),
    docker_password: str = typer.Option("", "--docker-password", envvar="DPCTL_DOCKER_PASSWORD"),
    docker_email: str = typer.Option("", "--docker-email"),
    low_resource_mode: bool = typer.Option(False, "--low-resource-mode", help="Trim resource requests"),
    insecure_cookies: bool = typer.Option(False, "--insecure-cookies", help="Allow cookies over plain HTTP"),
    disable_auth: bool = typer.Option(False, "--disable-auth", help="Turn off platform authentication"),
    migrate: bool = typer.Option(False, "--migrate", help="Migrate data from a docker-compose install"),
    migrate_volume: str = typer.Option("airbyte_db", "--migrate-volume", help="Docker volume holding the legacy database"),
    no_browser: bool = typer.Option(False, "--no-browser", help="Do not open a web-browser when done"),
    port: int = PortOption,
) -> None:
    """Install the platform, creating the kind cluster first if needed."""
    cancel = threading.Event()
    with handle_errors():
        mounts = parse_volume_mounts(volume or [])
        docker_client = _docker_client()

        cluster = KindCluster()
        created = False
        if cluster.exists():
            console.print(f"Cluster '{cluster.name}' already exists")
        else:
            with console.status(f"Creating cluster '{cluster.name}'"):
                cluster.create(port, mounts)
            console.print(f"[green]Cluster '{cluster.name}' created[/green]")
            created = True

        request = InstallRequest(
            chart_version=chart_version,
            chart_location=chart,
            values_file=values,
            values=tuple(set_values or ()),
            hosts=tuple(host or ()),
            secret_files=tuple(secret or ()),
            volume_mounts=tuple(mounts),
            docker_server=docker_server,
            docker_user=docker_username,
            docker_password=docker_password,
            docker_email=docker_email,
            low_resource_mode=low_resource_mode,
            insecure_cookies=insecure_cookies,
            disable_auth=disable_auth,
            migrate=migrate,
            migrate_volume=migrate_volume,
            no_browser=no_browser,
            installation_id=_installation_id(),
            port=port,
        )

        kubeconfig = str(settings.kubeconfig)
        installer = Installer(
            K8sClient(kubeconfig=kubeconfig),
            HelmClient(kubeconfig=kubeconfig),
            docker_client=docker_client,
            console=console,
            cancel=cancel,
        )
        try:
            if created:
                installer.preload_images(request, cluster)
            installer.install(request)
        except KeyboardInterrupt:
            cancel.set()
            console.print("[yellow]Installation cancelled[/yellow]")
            raise typer.Exit(code=130)
        finally:
            docker_client.close()

    console.print("[green bold]Installation complete[/green bold]")
