"""Cluster event and diagnostic result models."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


class Severity(enum.Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class DiagnosticResult:
    severity: Severity
    message: str
    reason: str = ""
    pod_name: str = ""
    namespace: str = ""


@dataclass
class ClusterEvent:
    name: str = ""
    type: str = ""
    reason: str = ""
    regarding_name: str = ""
    regarding_namespace: str = ""
    note: str = ""
    count: int = 0
    last_timestamp: datetime | None = None

    @classmethod
    def from_k8s(cls, obj: Any) -> ClusterEvent:
        """Convert an events.k8s.io/v1 Event object from the kubernetes client."""
        metadata = getattr(obj, "metadata", None)
        regarding = getattr(obj, "regarding", None)
        return cls(
            name=(metadata.name if metadata else "") or "",
            type=getattr(obj, "type", "") or "",
            reason=getattr(obj, "reason", "") or "",
            regarding_name=(regarding.name if regarding else "") or "",
            regarding_namespace=(regarding.namespace if regarding else "") or "",
            note=getattr(obj, "note", "") or "",
            count=getattr(obj, "deprecated_count", 0) or 0,
            last_timestamp=_last_observed(obj),
        )


def _last_observed(obj: Any) -> datetime | None:
    # deprecated_last_timestamp is the only field reliably populated by kubelet
    series = getattr(obj, "series", None)
    candidates = (
        getattr(obj, "deprecated_last_timestamp", None),
        getattr(series, "last_observed_time", None) if series else None,
        getattr(obj, "event_time", None),
    )
    for ts in candidates:
        if ts is None:
            continue
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        return ts
    return None
