"""Helm values for the platform and ingress-nginx charts."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Iterable

import yaml

from dpctl.config.settings import settings
from dpctl.core.errors import ConfigError
from dpctl.models.install import InstallRequest
from dpctl.utils.version_compare import is_v2_plus

logger = logging.getLogger(__name__)

_INDEXED_KEY_RX = re.compile(r"^(?P<key>[^\[]+)\[(?P<index>\d+)\]$")

_LOW_RESOURCE_ENV_VARS = (
    "CHECK_JOB_MAIN_CONTAINER_CPU_REQUEST",
    "CHECK_JOB_MAIN_CONTAINER_MEMORY_REQUEST",
    "DISCOVER_JOB_MAIN_CONTAINER_CPU_REQUEST",
    "DISCOVER_JOB_MAIN_CONTAINER_MEMORY_REQUEST",
    "SPEC_JOB_MAIN_CONTAINER_CPU_REQUEST",
    "SPEC_JOB_MAIN_CONTAINER_MEMORY_REQUEST",
    "SIDECAR_MAIN_CONTAINER_CPU_REQUEST",
    "SIDECAR_MAIN_CONTAINER_MEMORY_REQUEST",
)


def from_slice(values: Iterable[str]) -> dict[str, Any]:
    """Convert dotted ``a.b.c=value`` strings into a nested mapping.

    A ``key[n]`` segment addresses the n-th item of a list. Values stay
    strings, the chart templates quote them anyway.
    """
    root: dict[str, Any] = {}
    for item in values:
        if "=" not in item:
            raise ConfigError(f"invalid value {item!r}, expected key=value")
        path, value = item.split("=", 1)
        keys = path.split(".")
        node: Any = root
        for i, key in enumerate(keys):
            last = i == len(keys) - 1
            m = _INDEXED_KEY_RX.match(key)
            if m:
                seq = node.setdefault(m.group("key"), [])
                index = int(m.group("index"))
                while len(seq) <= index:
                    seq.append({})
                if last:
                    seq[index] = value
                else:
                    node = seq[index]
                continue
            if last:
                node[key] = value
            else:
                child = node.get(key)
                if not isinstance(child, dict):
                    child = node[key] = {}
                node = child
    return root


def from_yaml_file(path: str | Path) -> dict[str, Any]:
    if not path:
        return {}
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"failed to read file {path}: {e}") from e
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"failed to unmarshal file {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"values file {path} must contain a mapping")
    return data


def merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge ``override`` into ``base`` in place and return ``base``.

    Nested mappings merge recursively; anything else from ``override`` wins.
    """
    for key, value in override.items():
        current = base.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merge(current, value)
        else:
            base[key] = value
    return base


def to_yaml(values: dict[str, Any]) -> str:
    return yaml.safe_dump(values, default_flow_style=False, sort_keys=True)


def build_platform_values(request: InstallRequest, chart_version: str) -> str:
    """Render the platform chart values as YAML.

    Priority, lowest first: code defaults, ``request.values``, the values file.
    """
    v2 = is_v2_plus(chart_version)
    builder_key = "connectorBuilderServer" if v2 else "connector-builder-server"
    launcher_key = "workloadLauncher" if v2 else "workload-launcher"

    vals: list[str] = []
    if v2:
        vals.append(f"server.env_vars.WEBAPP_URL=http://{settings.platform_release}-airbyte-server-svc:80")
    vals += [
        f"global.env_vars.AIRBYTE_INSTALLATION_ID={request.installation_id}",
        "global.jobs.resources.limits.cpu=3",
        "global.jobs.resources.limits.memory=4Gi",
        "airbyte-bootloader.env_vars.PLATFORM_LOG_FORMAT=json",
    ]

    if not request.disable_auth:
        vals.append("global.auth.enabled=true")

    if request.low_resource_mode:
        vals += [
            "server.env_vars.JOB_RESOURCE_VARIANT_OVERRIDE=lowresource",
            "global.jobs.resources.requests.cpu=0",
            "global.jobs.resources.requests.memory=0",
            f"{builder_key}.enabled=false",
        ]
        vals += [f"{launcher_key}.env_vars.{name}=0" for name in _LOW_RESOURCE_ENV_VARS]

    if request.docker_auth:
        vals.append(f"global.imagePullSecrets[0].name={settings.docker_auth_secret}")

    if request.insecure_cookies:
        cookie_key = "global.auth.security.cookieSecureSetting" if v2 else "global.auth.cookieSecureSetting"
        vals.append(f"{cookie_key}=false")

    values = from_slice(vals)
    merge(values, from_slice(request.values))
    merge(values, from_yaml_file(request.values_file))
    logger.debug("Platform values built for chart %s (v2=%s)", chart_version or "latest", v2)
    return to_yaml(values)


def build_nginx_values(port: int) -> str:
    """Values for an ingress-nginx controller reachable through the kind host port."""
    values = {
        "controller": {
            "hostPort": {
                "enabled": True,
                "ports": {"http": 8080, "https": 8443},
            },
            "service": {
                "type": "NodePort",
                "ports": {"http": port},
                "httpsPort": {"enable": False},
            },
            "config": {
                "proxy-body-size": "10m",
                "proxy-read-timeout": "600",
                "proxy-send-timeout": "600",
                # Non-privileged listen ports
                "http-port": 8080,
                "https-port": 8443,
            },
            # Rootless container runtimes refuse privileged ports
            "containerSecurityContext": {
                "allowPrivilegeEscalation": False,
                "runAsNonRoot": True,
                "runAsUser": 101,
                "capabilities": {"drop": ["ALL"], "add": ["NET_BIND_SERVICE"]},
            },
            "containerPort": {"http": 8080, "https": 8443, "healthz": 10254},
            "livenessProbe": _healthz_check(),
            "readinessProbe": _healthz_check(),
        },
    }
    return to_yaml(values)


def _healthz_check() -> dict[str, Any]:
    return {
        "httpGet": {"path": "/healthz", "port": 10254, "scheme": "HTTP"},
        "initialDelaySeconds": 30,
        "periodSeconds": 10,
        "timeoutSeconds": 5,
        "failureThreshold": 10,
    }
