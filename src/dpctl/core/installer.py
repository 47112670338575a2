"""Install the platform and its ingress controller into the local cluster."""

from __future__ import annotations

import logging
import os
import threading
import webbrowser
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator

import requests
from kubernetes import client
from rich.console import Console
from tenacity import RetryError, Retrying, retry_if_result, stop_after_delay, stop_when_event_set, wait_fixed

from dpctl.config.settings import settings
from dpctl.core import chart_reconciler
from dpctl.core.cluster import images_from_manifest
from dpctl.core.diagnosis import diagnose_chart_failure
from dpctl.core.errors import (
    CancelledError,
    ChartInstallError,
    ClusterError,
    DockerError,
    DpctlError,
    HelmStuckError,
    IngressError,
    PortConflictError,
    ReachabilityTimeoutError,
)
from dpctl.core.event_monitor import EventMonitor
from dpctl.core.ingress import build_ingress
from dpctl.core.migrator import Migrator
from dpctl.core.values import build_nginx_values, build_platform_values
from dpctl.models import ReconciliationDecision
from dpctl.models.chart import ChartMetadata
from dpctl.models.install import InstallRequest
from dpctl.models.release import HelmRelease
from dpctl.utils.encoding import docker_registry_secret_data
from dpctl.utils.manifest_parser import load_secret_manifests

logger = logging.getLogger(__name__)

HELM_STUCK_MARKER = "another operation (install/upgrade/rollback) is in progress"
HELM_STUCK_ATTEMPTS = 3
PORT_CONFLICT_MARKERS = (
    "address already in use",
    "port is already allocated",
    "client rate limiter Wait returned an error",
)
# Basic-auth challenges from the ingress carry this realm
AUTH_REALM_MARKER = "dpctl"


@contextmanager
def _cluster_step(description: str) -> Iterator[None]:
    try:
        yield
    except DpctlError:
        raise
    except Exception as e:
        raise ClusterError(f"unable to {description}: {e}") from e


class Installer:
    """Runs one install from start to a reachable UI.

    Collaborators are passed in so the whole sequence can run against fakes.
    """

    def __init__(
        self,
        k8s: Any,
        helm: Any,
        docker_client: Any = None,
        http: requests.Session | None = None,
        console: Console | None = None,
        launcher: Callable[[str], Any] = webbrowser.open,
        cancel: threading.Event | None = None,
        data_dir: Path | None = None,
        monitor_factory: Callable[..., Any] = EventMonitor,
    ):
        self.k8s = k8s
        self.helm = helm
        self.docker = docker_client
        self.http = http or requests.Session()
        self.console = console or Console()
        self.launcher = launcher
        self.cancel = cancel or threading.Event()
        self.data_dir = data_dir or settings.data_dir
        self.monitor_factory = monitor_factory

    def install(self, request: InstallRequest) -> None:
        ns = settings.platform_namespace
        monitor = self.monitor_factory(self.k8s, ns, settings.bootloader_pod, console=self.console)
        url = f"http://localhost:{request.port}"
        monitor.start()
        try:
            self._ensure_namespace(ns)
            self._ensure_volume(settings.pv_minio)
            self._ensure_volume(settings.pv_psql)

            if request.migrate:
                self._migrate(request.migrate_volume)

            self._ensure_claim(ns, settings.pvc_minio, settings.pv_minio)
            self._ensure_claim(ns, settings.pvc_psql, settings.pv_psql)

            if request.docker_auth:
                self._docker_secret(ns, request)
            self._secret_files(ns, request.secret_files)

            chart_version = self._install_platform(request)
            self._install_nginx(request.port)
            self._apply_ingress(ns, chart_version, request.hosts)

            monitor.stop()
            self.verify_reachable(url)
        finally:
            monitor.stop()

        if request.no_browser:
            self.console.print(f"[green]Launching web-browser disabled. The platform should be accessible at\n  {url}[/green]")
        else:
            self._launch(url)

    # -- cluster objects --------------------------------------------------

    def _ensure_namespace(self, ns: str) -> None:
        with _cluster_step(f"create namespace {ns!r}"):
            if self.k8s.namespace_exists(ns):
                self.console.print(f"Namespace '{ns}' already exists")
                return
            self.k8s.namespace_create(ns)
        self.console.print(f"Namespace '{ns}' created")

    def _ensure_volume(self, name: str) -> None:
        with _cluster_step(f"create persistent volume {name!r}"):
            if self.k8s.persistent_volume_exists(name):
                self.console.print(f"Persistent volume '{name}' already exists")
                return
            # Pre-created so the directory belongs to this user, not the docker daemon
            path = self.data_dir / name
            logger.debug("Creating directory %s", path)
            path.mkdir(mode=0o766, parents=True, exist_ok=True)
            self.k8s.persistent_volume_create(name)
            # The postgres image (uid 70) must be able to write here whatever the umask
            os.chmod(path, 0o777)
        self.console.print(f"Persistent volume '{name}' created")

    def _ensure_claim(self, ns: str, name: str, volume: str) -> None:
        with _cluster_step(f"create persistent volume claim {name!r}"):
            if self.k8s.persistent_volume_claim_exists(ns, name):
                self.console.print(f"Persistent volume claim '{name}' already exists")
                return
            self.k8s.persistent_volume_claim_create(ns, name, volume)
        self.console.print(f"Persistent volume claim '{name}' created")

    def _migrate(self, volume: str) -> None:
        if self.docker is None:
            raise DockerError("a docker client is required to migrate data")
        self.console.print(f"Migrating data from docker volume '{volume}'")
        Migrator(self.docker, self.data_dir, self.cancel).from_docker_volume(volume)
        self.console.print("[green]Data migration complete[/green]")

    def _docker_secret(self, ns: str, request: InstallRequest) -> None:
        secret = client.V1Secret(
            metadata=client.V1ObjectMeta(name=settings.docker_auth_secret, namespace=ns),
            type="kubernetes.io/dockerconfigjson",
            data=docker_registry_secret_data(
                request.docker_server, request.docker_user, request.docker_password, request.docker_email,
            ),
        )
        with _cluster_step(f"create {settings.docker_auth_secret!r} secret"):
            self.k8s.secret_create_or_update(secret)
        self.console.print(f"Secret '{settings.docker_auth_secret}' created or updated")

    def _secret_files(self, ns: str, paths: tuple[str, ...]) -> None:
        for secret in load_secret_manifests(paths, ns):
            name = secret.get("metadata", {}).get("name", "")
            with _cluster_step(f"create secret {name!r}"):
                self.k8s.secret_create_or_update(secret)
            self.console.print(f"Secret '{name}' created or updated")

    # -- charts -----------------------------------------------------------

    def _resolve_chart(self, repo_name: str, repo_url: str, chart: str, version: str) -> ChartMetadata:
        self.helm.add_repo(repo_name, repo_url)
        return self.helm.show_chart(chart, version)

    def _install_platform(self, request: InstallRequest) -> str:
        """Install the platform chart, returning the chart version installed."""
        ns = settings.platform_namespace
        chart = request.chart_location or settings.platform_chart
        try:
            meta = self._resolve_chart(settings.platform_repo_name, settings.platform_repo_url, chart, request.chart_version)
            values = build_platform_values(request, meta.version)
            logger.debug("platform values:\n%s", values)
            self._install_chart(settings.platform_release, chart, ns, meta, values)
        except ChartInstallError as e:
            err = diagnose_chart_failure(self.k8s, ns, settings.bootloader_pod, e)
            if err is e:
                raise
            raise err from e
        return meta.version

    def _install_nginx(self, port: int) -> None:
        ns = settings.nginx_namespace
        release = settings.nginx_release
        meta = self._resolve_chart(settings.nginx_repo_name, settings.nginx_repo_url, settings.nginx_chart, "")

        decision = chart_reconciler.decide(self.helm, release, ns, meta)
        if decision == ReconciliationDecision.NO_ACTION:
            self.console.print(
                f"[green]Found matching existing Helm Chart {settings.nginx_chart}:\n"
                f"  Name: {release}\n  Namespace: {ns}\n"
                f"  Version: {meta.version}\n  AppVersion: {meta.app_version}[/green]"
            )
            return
        if decision == ReconciliationDecision.UNINSTALL_THEN_INSTALL:
            logger.debug("Attempting to uninstall Helm Release %s", release)
            self.helm.uninstall(release, ns)
        elif decision == ReconciliationDecision.INSTALL:
            logger.debug("Will only attempt to install Helm Release %s", release)

        values = build_nginx_values(port)
        logger.debug("nginx values:\n%s", values)
        try:
            self._install_chart(release, settings.nginx_chart, ns, meta, values)
        except ChartInstallError as e:
            if any(marker in str(e) for marker in PORT_CONFLICT_MARKERS):
                self.console.print(
                    f"[yellow]Encountered an error while installing the {settings.nginx_chart} Helm Chart.\n"
                    f"This could be an indication that port {port} is not available.[/yellow]"
                )
                if not self._nginx_has_ingress(ns):
                    raise PortConflictError(port, str(e)) from e
            raise

    def _nginx_has_ingress(self, ns: str) -> bool:
        """True if the controller service reports a load balancer ingress or cannot be read."""
        try:
            svc = self.k8s.service_get(ns, settings.nginx_service)
        except Exception as e:
            logger.debug("Unable to read %s service: %s", settings.nginx_service, e)
            return True
        lb = svc.status.load_balancer if svc.status else None
        return bool(lb and lb.ingress)

    def _install_chart(self, release: str, chart: str, ns: str, meta: ChartMetadata, values: str) -> HelmRelease:
        """Install or upgrade, clearing a stuck previous operation between attempts."""
        for attempt in range(1, HELM_STUCK_ATTEMPTS + 1):
            self.console.print(f"Starting Helm Chart installation of '{chart}' (version: {meta.version})")
            try:
                rel = self.helm.install_or_upgrade(release, chart, ns, version=meta.version, values_yaml=values)
            except ChartInstallError as e:
                if HELM_STUCK_MARKER not in str(e):
                    self.console.print(f"[red]Failed to install {chart} Helm Chart[/red]")
                    raise
                logger.debug("Helm release %s is stuck (attempt %d), removing release secrets", release, attempt)
                try:
                    self.k8s.secret_delete_collection(ns, settings.helm_secret_type)
                except Exception as de:
                    logger.debug("Unable to delete %s secrets: %s", settings.helm_secret_type, de)
                continue
            self.console.print(
                f"[green]Installed Helm Chart {chart}:\n  Name: {rel.name}\n  Namespace: {rel.namespace}\n"
                f"  Version: {rel.chart_version}\n  AppVersion: {rel.app_version}\n  Release: {rel.version}[/green]"
            )
            return rel
        raise HelmStuckError(f"helm release {release!r} is stuck in another operation")

    # -- networking -------------------------------------------------------

    def _apply_ingress(self, ns: str, chart_version: str, hosts: tuple[str, ...]) -> None:
        ingress = build_ingress(chart_version, hosts)
        try:
            if self.k8s.ingress_exists(ns, settings.ingress_name):
                self.k8s.ingress_update(ns, ingress)
                self.console.print("Updated existing Ingress")
            else:
                self.k8s.ingress_create(ns, ingress)
                self.console.print("Ingress created")
        except Exception as e:
            raise IngressError(f"unable to configure ingress: {e}") from e

    def _probe(self, url: str) -> bool:
        try:
            res = self.http.get(url, timeout=5)
        except requests.RequestException as e:
            logger.debug("Probe of %s failed: %s", url, e)
            return False
        if res.status_code == 200:
            return True
        return res.status_code == 401 and AUTH_REALM_MARKER in res.headers.get("WWW-Authenticate", "")

    def verify_reachable(self, url: str) -> None:
        self.console.print(f"Verifying ingress at {url}")
        poll = Retrying(
            retry=retry_if_result(lambda ok: not ok),
            wait=wait_fixed(settings.reachability_interval),
            stop=stop_after_delay(settings.reachability_timeout) | stop_when_event_set(self.cancel),
            sleep=self.cancel.wait,
        )
        try:
            poll(self._probe, url)
        except RetryError as e:
            if self.cancel.is_set():
                raise CancelledError(f"cancelled while waiting for {url} to become reachable") from e
            raise ReachabilityTimeoutError(f"liveness check failed: {url} did not become reachable") from e
        self.console.print("[green]Ingress is reachable[/green]")

    def _launch(self, url: str) -> None:
        self.console.print(f"Attempting to launch web-browser for {url}")
        try:
            self.launcher(url)
        except Exception as e:
            logger.debug("Failed to launch web-browser: %s", e)
            self.console.print(f"[yellow]Failed to launch web-browser.\nPlease launch your web-browser to access {url}[/yellow]")

    # -- images -----------------------------------------------------------

    def preload_images(self, request: InstallRequest, cluster: Any) -> None:
        """Pull and side-load the platform images. Best effort."""
        if self.docker is None:
            return
        chart = request.chart_location or settings.platform_chart
        try:
            meta = self._resolve_chart(settings.platform_repo_name, settings.platform_repo_url, chart, request.chart_version)
            manifest = self.helm.template(chart, meta.version, build_platform_values(request, meta.version))
        except DpctlError as e:
            logger.debug("Error building image manifest: %s", e)
            return
        images = images_from_manifest(manifest)
        self.console.print(f"Pre-loading {len(images)} images")
        failed = cluster.load_images(self.docker, images)
        if failed:
            logger.debug("Failed to pre-pull %d images", len(failed))
