"""Table / JSON / YAML output dispatch."""

from __future__ import annotations

import json
from typing import Any

import yaml
from rich.console import Console

from dpctl.models.events import DiagnosticResult
from dpctl.models.release import HelmRelease

console = Console()


def _release_to_dict(r: HelmRelease) -> dict[str, Any]:
    return {
        "name": r.name,
        "namespace": r.namespace,
        "status": r.status.value,
        "revision": r.version,
        "chart_version": r.chart_version,
        "app_version": r.app_version,
        "updated": r.info.last_deployed,
    }


def _result_to_dict(r: DiagnosticResult) -> dict[str, Any]:
    return {
        "severity": r.severity.value,
        "pod": r.pod_name,
        "reason": r.reason,
        "message": r.message,
    }


def output_status(
    releases: list[HelmRelease],
    url: str,
    fmt: str,
    failed_pods: list[DiagnosticResult] | None = None,
) -> None:
    failed_pods = failed_pods or []
    if fmt in ("json", "yaml"):
        data = {
            "url": url,
            "releases": [_release_to_dict(r) for r in releases],
            "failed_pods": [_result_to_dict(r) for r in failed_pods],
        }
        if fmt == "json":
            console.print_json(json.dumps(data, indent=2))
        else:
            console.print(yaml.dump(data, default_flow_style=False))
        return

    from dpctl.output.tables import failed_pods_table, release_status_table
    console.print(release_status_table(releases))
    if failed_pods:
        console.print(failed_pods_table(failed_pods))
    console.print(f"\nThe platform should be accessible at [bold]{url}[/bold]")
