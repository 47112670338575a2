"""Ingress routing the local port to the platform services."""

from __future__ import annotations

from kubernetes import client

from dpctl.config.settings import settings
from dpctl.utils.version_compare import is_v2_plus

# Hosts that must always resolve so the UI works from the host and from other containers
_REQUIRED_HOSTS = ("localhost", "host.docker.internal")


def expand_hosts(hosts: tuple[str, ...] | list[str]) -> list[str]:
    """No hosts means a single catch-all rule. Otherwise the local hosts are appended."""
    if not hosts:
        return [""]
    expanded = list(hosts)
    for host in _REQUIRED_HOSTS:
        if host not in expanded:
            expanded.append(host)
    return expanded


def _path(path: str, service: str) -> client.V1HTTPIngressPath:
    return client.V1HTTPIngressPath(
        path=path,
        path_type="Prefix",
        backend=client.V1IngressBackend(
            service=client.V1IngressServiceBackend(
                name=service,
                port=client.V1ServiceBackendPort(name="http"),
            ),
        ),
    )


def _rule(host: str, chart_version: str) -> client.V1IngressRule:
    release = settings.platform_release
    # The v2 chart serves the webapp from the server
    default_service = f"{release}-airbyte-server-svc" if is_v2_plus(chart_version) else f"{release}-airbyte-webapp-svc"
    return client.V1IngressRule(
        host=host or None,
        http=client.V1HTTPIngressRuleValue(paths=[
            _path("/api/v1/connector_builder", f"{release}-airbyte-connector-builder-server-svc"),
            _path("/", default_service),
        ]),
    )


def build_ingress(chart_version: str, hosts: tuple[str, ...] | list[str] = ()) -> client.V1Ingress:
    return client.V1Ingress(
        metadata=client.V1ObjectMeta(
            name=settings.ingress_name,
            namespace=settings.platform_namespace,
        ),
        spec=client.V1IngressSpec(
            ingress_class_name="nginx",
            rules=[_rule(host, chart_version) for host in expand_hosts(hosts)],
        ),
    )
