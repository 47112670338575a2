"""Install request models."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class VolumeMount:
    host_path: str
    container_path: str


@dataclass(frozen=True)
class InstallRequest:
    chart_version: str = ""
    chart_location: str = ""
    values_file: str = ""
    values: tuple[str, ...] = ()
    hosts: tuple[str, ...] = ()
    secret_files: tuple[str, ...] = ()
    volume_mounts: tuple[VolumeMount, ...] = ()

    docker_server: str = "https://index.docker.io/v1/"
    docker_user: str = ""
    docker_password: str = ""
    docker_email: str = ""

    low_resource_mode: bool = False
    insecure_cookies: bool = False
    disable_auth: bool = False
    migrate: bool = False
    migrate_volume: str = "airbyte_db"
    no_browser: bool = False
    installation_id: str = ""
    port: int = 8000

    @property
    def docker_auth(self) -> bool:
        return bool(self.docker_user and self.docker_password)
