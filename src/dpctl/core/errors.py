"""Error taxonomy for dpctl operations."""

from __future__ import annotations


class DpctlError(Exception):
    """Base class for every error dpctl reports to the user."""

    category = "general"


class ConfigError(DpctlError):
    category = "configuration"


class ClusterError(DpctlError):
    category = "cluster-communication"


class DockerError(DpctlError):
    category = "docker-communication"


class ChartInstallError(DpctlError):
    category = "chart-installation"


class BootloaderFailedError(ChartInstallError):
    """The platform bootstrap pod was the only pod to fail."""


class HelmStuckError(ChartInstallError):
    """A previous helm operation never finished and could not be cleaned up."""


class IngressError(DpctlError):
    category = "ingress-configuration"


class PortConflictError(IngressError):
    category = "port-conflict"

    def __init__(self, port: int, detail: str = ""):
        self.port = port
        msg = f"port {port} appears to be in use by another process"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class ReleaseNotFoundError(DpctlError):
    category = "chart-installation"

    def __init__(self, release: str):
        self.release = release
        super().__init__(f"release {release!r} not found")


class MigrationError(DpctlError):
    category = "migration"

    def __init__(self, step: str, detail: str):
        self.step = step
        super().__init__(f"migration step '{step}' failed: {detail}")


class ReachabilityTimeoutError(DpctlError):
    category = "timeout"


class ExecTimeoutError(DpctlError):
    category = "timeout"


class CancelledError(DpctlError):
    category = "cancelled"
