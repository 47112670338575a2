"""Status and severity color maps."""

from dpctl.models.events import Severity
from dpctl.models.release import ReleaseStatus

STATUS_COLORS: dict[ReleaseStatus, str] = {
    ReleaseStatus.DEPLOYED: "green",
    ReleaseStatus.FAILED: "red bold",
    ReleaseStatus.SUPERSEDED: "dim",
    ReleaseStatus.PENDING_INSTALL: "yellow",
    ReleaseStatus.PENDING_UPGRADE: "yellow",
    ReleaseStatus.PENDING_ROLLBACK: "yellow",
    ReleaseStatus.UNINSTALLING: "magenta",
    ReleaseStatus.UNINSTALLED: "dim",
    ReleaseStatus.UNKNOWN: "red",
}

SEVERITY_COLORS: dict[Severity, str] = {
    Severity.DEBUG: "dim",
    Severity.INFO: "blue",
    Severity.WARNING: "yellow",
    Severity.ERROR: "red bold",
}


def styled_status(status: ReleaseStatus) -> str:
    color = STATUS_COLORS.get(status, "white")
    return f"[{color}]{status.value}[/{color}]"


def styled_severity(severity: Severity) -> str:
    color = SEVERITY_COLORS.get(severity, "white")
    return f"[{color}]{severity.value}[/{color}]"
