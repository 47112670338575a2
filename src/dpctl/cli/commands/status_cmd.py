"""dpctl status - Show the installed releases."""

from __future__ import annotations

import logging

import typer

from dpctl.cli.options import OutputOption, PortOption, handle_errors
from dpctl.config.settings import settings
from dpctl.core.cluster import KindCluster
from dpctl.core.diagnosis import run_diagnostics
from dpctl.core.errors import ClusterError, ReleaseNotFoundError
from dpctl.core.helm_client import HelmClient
from dpctl.core.k8s_client import K8sClient
from dpctl.output.formatters import output_status

app = typer.Typer()
logger = logging.getLogger(__name__)


@app.callback(invoke_without_command=True)
def status(
    output: str = OutputOption,
    port: int = PortOption,
) -> None:
    """Show the platform and ingress-nginx releases."""
    with handle_errors():
        cluster = KindCluster()
        if not cluster.exists():
            raise ClusterError(f"cluster '{cluster.name}' does not exist, run 'dpctl install' first")

        kubeconfig = str(settings.kubeconfig)
        helm = HelmClient(kubeconfig=kubeconfig)
        releases = []
        for name, ns in (
            (settings.platform_release, settings.platform_namespace),
            (settings.nginx_release, settings.nginx_namespace),
        ):
            try:
                releases.append(helm.get_release(name, ns))
            except ReleaseNotFoundError:
                logger.debug("Release %s not installed", name)

        try:
            failed = run_diagnostics(K8sClient(kubeconfig=kubeconfig), settings.platform_namespace)
        except Exception as e:
            logger.debug("Unable to list pods: %s", e)
            failed = []

        output_status(releases, f"http://localhost:{port}", output, failed_pods=failed)
