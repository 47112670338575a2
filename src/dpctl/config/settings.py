"""Application configuration and defaults."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


def _default_home_dir() -> Path:
    """Return the dpctl home directory.

    Checks DPCTL_HOME first, then falls back to ~/.dpctl.
    """
    home = os.environ.get("DPCTL_HOME", "")
    if home:
        return Path(home)
    return Path.home() / ".dpctl"


def _default_kubeconfig() -> Path:
    kubeconfig = os.environ.get("DPCTL_KUBECONFIG", "")
    if kubeconfig:
        return Path(kubeconfig)
    return _default_home_dir() / "dpctl.kubeconfig"


def _default_port() -> int:
    raw = os.environ.get("DPCTL_PORT", "")
    try:
        return int(raw) if raw else 8000
    except ValueError:
        return 8000


@dataclass
class Settings:
    home_dir: Path = field(default_factory=_default_home_dir)
    kubeconfig: Path = field(default_factory=_default_kubeconfig)
    cluster_name: str = field(default_factory=lambda: os.environ.get("DPCTL_CLUSTER_NAME", "dpctl"))
    port: int = field(default_factory=_default_port)

    # Platform chart, these names match the values baked into the chart
    platform_namespace: str = "airbyte-abctl"
    platform_release: str = "airbyte-abctl"
    platform_repo_name: str = "airbyte"
    platform_repo_url: str = "https://airbytehq.github.io/helm-charts"
    platform_chart: str = "airbyte/airbyte"
    bootloader_pod: str = "airbyte-abctl-airbyte-bootloader"
    server_deployment: str = "airbyte-abctl-server"
    auth_secret: str = "airbyte-auth-secrets"

    # Ingress controller chart
    nginx_namespace: str = "ingress-nginx"
    nginx_release: str = "ingress-nginx"
    nginx_repo_name: str = "nginx"
    nginx_repo_url: str = "https://kubernetes.github.io/ingress-nginx"
    nginx_chart: str = "nginx/ingress-nginx"
    nginx_service: str = "ingress-nginx-controller"

    ingress_name: str = "ingress-dpctl"
    docker_auth_secret: str = "docker-auth"
    helm_secret_type: str = "helm.sh/release.v1"

    # Persistent volumes and the claims the platform chart expects
    pv_minio: str = "airbyte-minio-pv"
    pv_psql: str = "airbyte-volume-db"
    pvc_minio: str = "airbyte-minio-pv-claim-airbyte-minio-0"
    pvc_psql: str = "airbyte-volume-db-airbyte-db-0"
    volume_size: str = "500Mi"
    storage_class: str = "standard"

    helm_timeout: str = "60m"
    reachability_timeout: float = 60.0
    reachability_interval: float = 1.0

    @property
    def data_dir(self) -> Path:
        return self.home_dir / "data"


# Global singleton
settings = Settings()
