"""Chart metadata models."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ChartMetadata:
    name: str = ""
    version: str = ""
    app_version: str = ""
    description: str = ""
    api_version: str = ""

    @classmethod
    def from_dict(cls, d: dict) -> ChartMetadata:
        if not d:
            return cls()
        return cls(
            name=d.get("name", ""),
            version=str(d.get("version", "")),
            app_version=str(d.get("appVersion", "")),
            description=d.get("description", ""),
            api_version=d.get("apiVersion", ""),
        )
