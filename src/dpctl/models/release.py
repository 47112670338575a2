"""Helm release models."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from dpctl.models.chart import ChartMetadata


class ReleaseStatus(enum.Enum):
    DEPLOYED = "deployed"
    FAILED = "failed"
    SUPERSEDED = "superseded"
    PENDING_INSTALL = "pending-install"
    PENDING_UPGRADE = "pending-upgrade"
    PENDING_ROLLBACK = "pending-rollback"
    UNINSTALLING = "uninstalling"
    UNINSTALLED = "uninstalled"
    UNKNOWN = "unknown"

    @classmethod
    def from_str(cls, s: str) -> ReleaseStatus:
        for member in cls:
            if member.value == s:
                return member
        return cls.UNKNOWN


@dataclass
class ReleaseInfo:
    last_deployed: str = ""
    status: ReleaseStatus = ReleaseStatus.UNKNOWN
    description: str = ""

    @classmethod
    def from_dict(cls, d: dict) -> ReleaseInfo:
        if not d:
            return cls()
        return cls(
            last_deployed=d.get("last_deployed", ""),
            status=ReleaseStatus.from_str(d.get("status", "unknown")),
            description=d.get("description", ""),
        )


@dataclass
class HelmRelease:
    name: str = ""
    namespace: str = ""
    version: int = 0
    info: ReleaseInfo = field(default_factory=ReleaseInfo)
    chart: ChartMetadata = field(default_factory=ChartMetadata)

    @property
    def chart_version(self) -> str:
        return self.chart.version

    @property
    def app_version(self) -> str:
        return self.chart.app_version

    @property
    def status(self) -> ReleaseStatus:
        return self.info.status

    @classmethod
    def from_dict(cls, d: dict) -> HelmRelease:
        """Build a release from the JSON helm prints with ``-o json``."""
        chart_raw = d.get("chart", {}) or {}
        return cls(
            name=d.get("name", ""),
            namespace=d.get("namespace", ""),
            version=d.get("version", 0),
            info=ReleaseInfo.from_dict(d.get("info", {})),
            chart=ChartMetadata.from_dict(chart_raw.get("metadata", {})),
        )
