"""Move a docker-compose era platform database into the cluster volume layout.

The legacy install kept Postgres data in a named docker volume with a
``docker`` superuser and an ``airbyte`` database. The chart expects an
``airbyte`` role and a ``db-airbyte`` database on a host directory, so the
data is copied out of the volume and then renamed in place by a throwaway
Postgres container.

Running a migration twice is not safe: the second ``CREATE ROLE`` fails.
"""

from __future__ import annotations

import logging
import os
import tarfile
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

import docker
from tenacity import RetryError, Retrying, retry_if_result, stop_after_delay, stop_when_event_set, wait_fixed

from dpctl.config.settings import settings
from dpctl.core.errors import ExecTimeoutError, MigrationError
from dpctl.models.migration import MigrationJob

logger = logging.getLogger(__name__)

PGDATA = "/var/lib/postgresql/data"
IMAGE_ALPINE = "alpine:3.20"
IMAGE_POSTGRES = "postgres:13-alpine"

# TODO: replace the fixed warm-up with a pg_isready exec poll
WARMUP_DELAY = 10.0
EXEC_POLL_INTERVAL = 0.5
EXEC_TIMEOUT = 300.0

TRANSFORM_ENV = {
    "POSTGRES_USER": "docker",
    "POSTGRES_PASSWORD": "docker",
    "POSTGRES_DB": "postgres",
    "PGDATA": PGDATA,
}


def _psql(statement: str) -> list[str]:
    return ["psql", "-U", "docker", "-d", "postgres", "-c", statement]


@contextmanager
def _step(name: str) -> Iterator[None]:
    """Re-raise any failure inside the block as a MigrationError for ``name``."""
    try:
        yield
    except MigrationError:
        raise
    except Exception as e:
        raise MigrationError(name, str(e)) from e


class Migrator:
    """Runs the legacy volume migration against a docker daemon."""

    def __init__(
        self,
        docker_client: docker.DockerClient,
        data_dir: Path | None = None,
        cancel: threading.Event | None = None,
    ):
        self.docker = docker_client
        self.data_dir = Path(data_dir) if data_dir is not None else settings.data_dir
        self.cancel = cancel or threading.Event()

    def from_docker_volume(self, volume: str) -> MigrationJob:
        job = MigrationJob(
            source_volume=volume,
            destination=self.data_dir / settings.pv_psql / "pgdata",
        )

        with _step("inspect volume"):
            try:
                self.docker.volumes.get(volume)
            except docker.errors.NotFound as e:
                raise MigrationError("inspect volume", f"volume {volume} does not exist") from e

        with _step("ensure images"):
            self._ensure_image(IMAGE_ALPINE)
            self._ensure_image(IMAGE_POSTGRES)

        with _step("create copy container"):
            copier = self.docker.containers.create(
                IMAGE_ALPINE,
                entrypoint=["tail", "-f", "/dev/null"],
                volumes={volume: {"bind": PGDATA, "mode": "rw"}},
            )
            job.copy_container = copier.id
            logger.debug("Created initial migration container %s", copier.id)

        try:
            with _step("copy data"):
                copier.start()
                job.destination.mkdir(mode=0o766, parents=True, exist_ok=True)
                os.chmod(job.destination, 0o777)
                self._copy_from_container(copier, PGDATA + "/.", job.destination)
                logger.debug("Copied database files from %s to %s", copier.id, job.destination)
        finally:
            self._stop_and_remove(copier)

        with _step("create transform container"):
            transform = self.docker.containers.create(
                IMAGE_POSTGRES,
                environment=TRANSFORM_ENV,
                volumes={str(job.destination): {"bind": PGDATA, "mode": "rw"}},
            )
            job.transform_container = transform.id
            logger.debug("Created secondary migration container %s", transform.id)

        try:
            with _step("start transform container"):
                transform.start()

            if self.cancel.wait(WARMUP_DELAY):
                raise MigrationError("wait for postgres", "cancelled")

            with _step("create role"):
                self._exec(transform, _psql(
                    f"CREATE ROLE {job.role} SUPERUSER CREATEROLE CREATEDB REPLICATION "
                    f"BYPASSRLS LOGIN PASSWORD '{job.role_password}'"
                ), "create role")
            with _step("rename database"):
                self._exec(transform, _psql(
                    f'ALTER DATABASE "{job.legacy_database}" RENAME TO "{job.database}"'
                ), "rename database")
        finally:
            self._stop_and_remove(transform)

        return job

    def _ensure_image(self, image: str) -> None:
        if self.docker.images.list(name=image):
            logger.debug("Image %s already exists", image)
            return
        logger.debug("Image %s not found, pulling it", image)
        self.docker.images.pull(image)

    def _copy_from_container(self, container: Any, src: str, dst: Path) -> None:
        """Emulate ``docker cp <container>:<src> <dst>`` for a directory source."""
        bits, _ = container.get_archive(src)
        with tempfile.TemporaryFile() as buf:
            for chunk in bits:
                buf.write(chunk)
            buf.seek(0)
            with tarfile.open(fileobj=buf) as tar:
                members = [m for m in tar.getmembers() if _rebase(m)]
                tar.extractall(dst, members=members, filter="tar")

    def _exec(self, container: Any, cmd: list[str], step: str) -> None:
        """Run ``cmd`` in ``container`` and wait for it to exit cleanly."""
        api = self.docker.api
        exec_id = api.exec_create(container.id, cmd)["Id"]
        api.exec_start(exec_id, detach=True)

        try:
            for attempt in Retrying(
                retry=retry_if_result(lambda state: bool(state.get("Running"))),
                wait=wait_fixed(EXEC_POLL_INTERVAL),
                stop=stop_after_delay(EXEC_TIMEOUT) | stop_when_event_set(self.cancel),
                sleep=self.cancel.wait,
            ):
                with attempt:
                    state = api.exec_inspect(exec_id)
                    exit_code = state.get("ExitCode")
                    if not state.get("Running") and exit_code not in (None, 0):
                        raise MigrationError(step, f"exec exited with non-zero exit code: {exit_code}")
                if not attempt.retry_state.outcome.failed:
                    attempt.retry_state.set_result(state)
        except RetryError as e:
            if self.cancel.is_set():
                raise MigrationError(step, "cancelled") from e
            raise ExecTimeoutError(f"timed out waiting for docker exec in {container.id}") from e

    def _stop_and_remove(self, container: Any) -> None:
        logger.debug("Stopping container %s", container.id)
        try:
            container.stop()
        except Exception as e:
            logger.debug("Unable to stop docker container %s: %s", container.id, e)
        logger.debug("Removing container %s", container.id)
        try:
            container.remove(force=True)
        except Exception as e:
            logger.debug("Unable to remove docker container %s: %s", container.id, e)


def _rebase(member: tarfile.TarInfo) -> bool:
    """Strip the archive's root directory from ``member``.

    Returns False for the root entry itself, which has nothing left to extract.
    """
    parts = [p for p in member.name.split("/") if p]
    if parts and parts[0] in (".", "data"):
        parts = parts[1:]
    if not parts:
        return False
    member.name = "/".join(parts)
    if member.islnk() and member.linkname:
        link = [p for p in member.linkname.split("/") if p]
        if link and link[0] in (".", "data"):
            link = link[1:]
        member.linkname = "/".join(link)
    return True
