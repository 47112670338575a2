"""Parse multi-document YAML manifests into individual resources."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from dpctl.core.errors import ConfigError

_POD_TEMPLATE_KINDS = ("Deployment", "StatefulSet", "DaemonSet", "Job", "ReplicaSet")


@dataclass
class ParsedResource:
    api_version: str
    kind: str
    name: str
    namespace: str
    raw: dict[str, Any]


def parse_manifest(manifest: str) -> list[ParsedResource]:
    """Parse a multi-document YAML string into a list of ParsedResource."""
    resources: list[ParsedResource] = []
    if not manifest:
        return resources

    for doc in yaml.safe_load_all(manifest):
        if not doc or not isinstance(doc, dict):
            continue
        metadata = doc.get("metadata", {}) or {}
        resources.append(ParsedResource(
            api_version=doc.get("apiVersion", ""),
            kind=doc.get("kind", ""),
            name=metadata.get("name", ""),
            namespace=metadata.get("namespace", ""),
            raw=doc,
        ))
    return resources


def _pod_spec(res: ParsedResource) -> dict[str, Any]:
    spec = res.raw.get("spec", {}) or {}
    if res.kind == "Pod":
        return spec
    if res.kind == "CronJob":
        spec = (spec.get("jobTemplate", {}) or {}).get("spec", {}) or {}
        return (spec.get("template", {}) or {}).get("spec", {}) or {}
    if res.kind in _POD_TEMPLATE_KINDS:
        return (spec.get("template", {}) or {}).get("spec", {}) or {}
    return {}


def find_images(manifest: str) -> list[str]:
    """Collect every container image a rendered chart references, sorted.

    Images the platform launches at runtime are listed as ``*_IMAGE`` keys in
    its ``airbyte-env`` ConfigMap, so those count too.
    """
    images: set[str] = set()
    for res in parse_manifest(manifest):
        if res.kind == "ConfigMap":
            if res.name.endswith("airbyte-env"):
                data = res.raw.get("data", {}) or {}
                images.update(str(v) for k, v in data.items() if k.endswith("_IMAGE"))
            continue
        pod_spec = _pod_spec(res)
        for key in ("initContainers", "containers"):
            for container in pod_spec.get(key, []) or []:
                images.add(container.get("image", ""))
    return sorted(i for i in images if i)


def load_secret_manifests(paths: tuple[str, ...] | list[str], namespace: str) -> list[dict[str, Any]]:
    """Read user-supplied Secret manifests, forcing them into ``namespace``."""
    secrets: list[dict[str, Any]] = []
    for path in paths:
        try:
            raw = Path(path).read_text(encoding="utf-8")
            resources = parse_manifest(raw)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"unable to read secret file {path}: {e}") from e
        for res in resources:
            if res.kind != "Secret":
                raise ConfigError(f"{path}: expected a Secret, found {res.kind or 'unknown kind'}")
            res.raw.setdefault("metadata", {})["namespace"] = namespace
            secrets.append(res.raw)
    return secrets
