"""Data migration models."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass
class MigrationJob:
    source_volume: str
    destination: Path
    database: str = "db-airbyte"
    legacy_database: str = "airbyte"
    role: str = "airbyte"
    role_password: str = "airbyte"
    copy_container: str = ""
    transform_container: str = ""
