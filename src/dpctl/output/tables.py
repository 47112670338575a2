"""Rich table builders for each command."""

from __future__ import annotations

from rich.panel import Panel
from rich.table import Table

from dpctl.models.events import DiagnosticResult
from dpctl.models.release import HelmRelease
from dpctl.output.themes import styled_severity, styled_status


def release_status_table(releases: list[HelmRelease]) -> Table:
    table = Table(title="Helm Releases", expand=True, show_lines=False)
    table.add_column("Namespace", style="blue", no_wrap=True)
    table.add_column("Release", style="bold white", no_wrap=True)
    table.add_column("Status", no_wrap=True)
    table.add_column("Rev", justify="right", style="dim")
    table.add_column("Chart Ver", style="magenta")
    table.add_column("App Ver", style="cyan")
    table.add_column("Updated", style="dim", no_wrap=True)

    for r in releases:
        table.add_row(
            r.namespace,
            r.name,
            styled_status(r.status),
            str(r.version),
            r.chart_version,
            r.app_version,
            r.info.last_deployed[:19].replace("T", " "),
        )
    return table


def failed_pods_table(results: list[DiagnosticResult]) -> Table:
    table = Table(title="Failed Pods", expand=True)
    table.add_column("Severity", no_wrap=True)
    table.add_column("Pod", style="cyan", no_wrap=True)
    table.add_column("Last Error", max_width=80)
    for r in results:
        table.add_row(styled_severity(r.severity), r.pod_name, r.message)
    return table


def credentials_panel(password: str, client_id: str, client_secret: str) -> Panel:
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Key", style="bold cyan", no_wrap=True)
    table.add_column("Value")

    table.add_row("Password", password)
    table.add_row("Client-Id", client_id)
    table.add_row("Client-Secret", client_secret)
    return Panel(table, title="[bold]Credentials[/bold]", border_style="blue")
