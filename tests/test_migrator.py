import io
import tarfile
import threading
import time

import docker
import pytest

from dpctl.core import migrator
from dpctl.core.errors import MigrationError
from dpctl.core.migrator import IMAGE_ALPINE, IMAGE_POSTGRES, Migrator


def _archive(files):
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w") as tar:
        root = tarfile.TarInfo("data")
        root.type = tarfile.DIRTYPE
        tar.addfile(root)
        for name, content in files.items():
            info = tarfile.TarInfo(f"data/{name}")
            info.size = len(content)
            tar.addfile(info, io.BytesIO(content))
    return buf.getvalue()


class FakeContainer:
    def __init__(self, cid, image, archive=b"", log=None):
        self.id = cid
        self.image = image
        self.archive = archive
        self.log = log
        self.started = False
        self.removed = False

    def start(self):
        self.log.append(("start", self.image))
        self.started = True

    def stop(self):
        self.log.append(("stop", self.image))

    def remove(self, force=False):
        self.log.append(("remove", self.image))
        self.removed = True

    def get_archive(self, path):
        self.log.append(("get_archive", path))
        return iter([self.archive]), {"name": "data"}


class FakeDocker:
    def __init__(self, volumes=("airbyte_db",), images=(), archive=b"", exit_codes=(0, 0), running=False):
        self.log = []
        self.known_volumes = set(volumes)
        self.local_images = set(images)
        self.archive = archive
        self.exit_codes = list(exit_codes)
        self.running = running
        self.created = []
        self.execs = []

        self.volumes = self
        self.images = _Images(self)
        self.containers = _Containers(self)
        self.api = _Api(self)

    def get(self, name):
        if name not in self.known_volumes:
            raise docker.errors.NotFound(f"get volume {name}: no such volume")
        return name


class _Images:
    def __init__(self, d):
        self.d = d

    def list(self, name=None):
        return [name] if name in self.d.local_images else []

    def pull(self, image):
        self.d.log.append(("pull", image))
        self.d.local_images.add(image)


class _Containers:
    def __init__(self, d):
        self.d = d

    def create(self, image, **kwargs):
        c = FakeContainer(f"c{len(self.d.created)}", image, self.d.archive, self.d.log)
        c.kwargs = kwargs
        self.d.created.append(c)
        return c


class _Api:
    def __init__(self, d):
        self.d = d

    def exec_create(self, container, cmd):
        self.d.execs.append(cmd)
        return {"Id": f"exec-{len(self.d.execs)}"}

    def exec_start(self, exec_id, detach=False):
        pass

    def exec_inspect(self, exec_id):
        if self.d.running:
            return {"Running": True, "ExitCode": None}
        index = int(exec_id.split("-")[1]) - 1
        return {"Running": False, "ExitCode": self.d.exit_codes[index]}


@pytest.fixture(autouse=True)
def no_warmup(monkeypatch):
    monkeypatch.setattr(migrator, "WARMUP_DELAY", 0)
    monkeypatch.setattr(migrator, "EXEC_POLL_INTERVAL", 0.01)


def test_migration(tmp_path):
    d = FakeDocker(images=(IMAGE_ALPINE,), archive=_archive({"PG_VERSION": b"13\n", "base/1/112": b"x"}))
    job = Migrator(d, tmp_path).from_docker_volume("airbyte_db")

    assert job.destination == tmp_path / "airbyte-volume-db" / "pgdata"
    assert (job.destination / "PG_VERSION").read_text() == "13\n"
    assert (job.destination / "base" / "1" / "112").exists()
    assert ("pull", IMAGE_POSTGRES) in d.log
    assert ("pull", IMAGE_ALPINE) not in d.log

    copier, transform = d.created
    assert copier.kwargs["volumes"] == {"airbyte_db": {"bind": migrator.PGDATA, "mode": "rw"}}
    assert transform.kwargs["volumes"] == {str(job.destination): {"bind": migrator.PGDATA, "mode": "rw"}}
    assert copier.removed and transform.removed
    assert job.copy_container == "c0"
    assert job.transform_container == "c1"

    create_role, rename = d.execs
    assert "CREATE ROLE airbyte SUPERUSER" in create_role[-1]
    assert rename[-1] == 'ALTER DATABASE "airbyte" RENAME TO "db-airbyte"'


def test_copy_container_removed_before_transform_starts(tmp_path):
    d = FakeDocker(images=(IMAGE_ALPINE, IMAGE_POSTGRES), archive=_archive({}))
    Migrator(d, tmp_path).from_docker_volume("airbyte_db")
    lifecycle = [entry for entry in d.log if entry[0] in ("start", "remove")]
    assert lifecycle == [
        ("start", IMAGE_ALPINE),
        ("remove", IMAGE_ALPINE),
        ("start", IMAGE_POSTGRES),
        ("remove", IMAGE_POSTGRES),
    ]


def test_missing_volume(tmp_path):
    d = FakeDocker(volumes=())
    with pytest.raises(MigrationError, match="volume airbyte_db does not exist") as exc:
        Migrator(d, tmp_path).from_docker_volume("airbyte_db")
    assert exc.value.step == "inspect volume"
    assert d.created == []


def test_nonzero_exit_aborts(tmp_path):
    d = FakeDocker(images=(IMAGE_ALPINE, IMAGE_POSTGRES), archive=_archive({}), exit_codes=(1, 0))
    with pytest.raises(MigrationError, match="non-zero exit code: 1") as exc:
        Migrator(d, tmp_path).from_docker_volume("airbyte_db")
    assert exc.value.step == "create role"
    assert len(d.execs) == 1
    assert d.created[1].removed


def test_exec_timeout(tmp_path, monkeypatch):
    monkeypatch.setattr(migrator, "EXEC_TIMEOUT", 0.05)
    d = FakeDocker(images=(IMAGE_ALPINE, IMAGE_POSTGRES), archive=_archive({}), running=True)
    with pytest.raises(MigrationError, match="timed out") as exc:
        Migrator(d, tmp_path).from_docker_volume("airbyte_db")
    assert exc.value.step == "create role"


def test_cancel_during_warmup(tmp_path, monkeypatch):
    monkeypatch.setattr(migrator, "WARMUP_DELAY", 5)
    cancel = threading.Event()
    cancel.set()
    d = FakeDocker(images=(IMAGE_ALPINE, IMAGE_POSTGRES), archive=_archive({}))
    with pytest.raises(MigrationError, match="cancelled"):
        Migrator(d, tmp_path, cancel).from_docker_volume("airbyte_db")
    assert d.execs == []
    assert d.created[1].removed


def test_rebase_strips_archive_root():
    member = tarfile.TarInfo("data/base/1")
    assert migrator._rebase(member)
    assert member.name == "base/1"
    assert not migrator._rebase(tarfile.TarInfo("data"))
    assert not migrator._rebase(tarfile.TarInfo("./"))


def test_cancel_interrupts_exec_poll(tmp_path, monkeypatch):
    monkeypatch.setattr(migrator, "EXEC_TIMEOUT", 30.0)
    monkeypatch.setattr(migrator, "EXEC_POLL_INTERVAL", 1.0)
    cancel = threading.Event()
    d = FakeDocker(images=(IMAGE_ALPINE, IMAGE_POSTGRES), archive=_archive({}), running=True)

    timer = threading.Timer(0.3, cancel.set)
    timer.start()
    started = time.monotonic()
    try:
        with pytest.raises(MigrationError, match="cancelled") as exc:
            Migrator(d, tmp_path, cancel).from_docker_volume("airbyte_db")
    finally:
        timer.cancel()
    assert time.monotonic() - started < 2.0
    assert exc.value.step == "create role"
    assert d.created[1].removed
