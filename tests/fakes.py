"""Hand-written fakes for the cluster, helm, docker and http collaborators."""

from __future__ import annotations

from types import SimpleNamespace

from dpctl.core.errors import ReleaseNotFoundError
from dpctl.models.chart import ChartMetadata
from dpctl.models.release import HelmRelease, ReleaseInfo, ReleaseStatus


def make_pod(name, phase="Running", reason=""):
    return SimpleNamespace(
        metadata=SimpleNamespace(name=name),
        status=SimpleNamespace(phase=phase, reason=reason),
    )


def make_release(name, namespace, version="1.0.0", app_version="1.0.0", status=ReleaseStatus.DEPLOYED):
    return HelmRelease(
        name=name,
        namespace=namespace,
        version=1,
        info=ReleaseInfo(status=status),
        chart=ChartMetadata(name=name, version=version, app_version=app_version),
    )


class FakeK8s:
    """Records every mutating call in ``log`` as ``(method, args...)``."""

    def __init__(self, log=None, namespaces=(), volumes=(), claims=(), pods=(), logs=None):
        self.log = log if log is not None else []
        self.namespaces = set(namespaces)
        self.volumes = set(volumes)
        self.claims = set(claims)
        self.pods = list(pods)
        self.logs = logs or {}
        self.secrets = {}
        self.ingresses = set()
        self.deployments = []
        self.service = SimpleNamespace(status=SimpleNamespace(load_balancer=None))

    def namespace_exists(self, namespace):
        return namespace in self.namespaces

    def namespace_create(self, namespace):
        self.log.append(("namespace_create", namespace))
        self.namespaces.add(namespace)

    def persistent_volume_exists(self, name):
        return name in self.volumes

    def persistent_volume_create(self, name):
        self.log.append(("persistent_volume_create", name))
        self.volumes.add(name)

    def persistent_volume_claim_exists(self, namespace, name):
        return name in self.claims

    def persistent_volume_claim_create(self, namespace, name, volume_name):
        self.log.append(("persistent_volume_claim_create", name))
        self.claims.add(name)

    def secret_create_or_update(self, secret):
        meta = secret["metadata"] if isinstance(secret, dict) else secret.metadata
        name = meta["name"] if isinstance(meta, dict) else meta.name
        self.log.append(("secret_create_or_update", name))
        self.secrets[name] = secret

    def secret_get(self, namespace, name):
        return self.secrets[name]

    def secret_delete_collection(self, namespace, secret_type):
        self.log.append(("secret_delete_collection", namespace, secret_type))

    def ingress_exists(self, namespace, name):
        return name in self.ingresses

    def ingress_create(self, namespace, ingress):
        self.log.append(("ingress_create", ingress.metadata.name))
        self.ingresses.add(ingress.metadata.name)

    def ingress_update(self, namespace, ingress):
        self.log.append(("ingress_update", ingress.metadata.name))

    def service_get(self, namespace, name):
        return self.service

    def pod_list(self, namespace):
        return self.pods

    def deployment_list(self, namespace):
        return [SimpleNamespace(metadata=SimpleNamespace(name=n)) for n in self.deployments]

    def deployment_restart(self, namespace, name):
        self.log.append(("deployment_restart", name))

    def logs_get(self, namespace, name):
        logs = self.logs.get(name, "")
        if isinstance(logs, Exception):
            raise logs
        return logs


class FakeHelm:
    """Chart API fake. ``install_errors`` maps a release to errors raised in turn."""

    def __init__(self, log=None, releases=None, install_errors=None, chart_version="1.0.0"):
        self.log = log if log is not None else []
        self.releases = releases or {}
        self.install_errors = install_errors or {}
        self.chart_version = chart_version
        self.values = {}

    def add_repo(self, name, url):
        pass

    def show_chart(self, chart, version=""):
        return ChartMetadata(name=chart, version=version or self.chart_version, app_version="1.0.0")

    def get_release(self, name, namespace):
        rel = self.releases.get(name)
        if rel is None:
            raise ReleaseNotFoundError(name)
        if isinstance(rel, Exception):
            raise rel
        return rel

    def install_or_upgrade(self, release, chart, namespace, version="", values_yaml="", set_values=()):
        self.log.append(("install_or_upgrade", release))
        errors = self.install_errors.get(release)
        if errors:
            raise errors.pop(0)
        self.values[release] = values_yaml
        rel = make_release(release, namespace, version=version)
        self.releases[release] = rel
        return rel

    def uninstall(self, release, namespace):
        self.log.append(("uninstall", release))
        self.releases.pop(release, None)

    def template(self, chart, version="", values_yaml=""):
        return ""


class FakeResponse:
    def __init__(self, status_code, headers=None):
        self.status_code = status_code
        self.headers = headers or {}


class FakeHttp:
    def __init__(self, log=None, responses=None):
        self.log = log if log is not None else []
        self.responses = list(responses or [FakeResponse(200)])

    def get(self, url, timeout=None):
        self.log.append(("http_get", url))
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


class FakeMonitor:
    def __init__(self, k8s, namespace, bootstrap_pod, console=None):
        self.started = False
        self.stop_calls = 0

    def start(self):
        self.started = True

    def stop(self):
        self.stop_calls += 1
