from pathlib import Path
from types import SimpleNamespace

import pytest
import sh

from dpctl.core import cluster
from dpctl.core.cluster import KindCluster, kind_config, parse_volume_mounts
from dpctl.core.errors import ClusterError, ConfigError
from dpctl.models.install import VolumeMount


class FakeKind:
    def __init__(self, clusters="", fail=False):
        self.calls = []
        self.clusters = clusters
        self.fail = fail

    def __call__(self, *args):
        self.calls.append(args)
        if self.fail:
            raise sh.ErrorReturnCode_1(" ".join(("kind",) + args), b"", b"ERROR: failed to create cluster")
        if args[:2] == ("get", "clusters"):
            return self.clusters
        return ""


@pytest.fixture
def kind(monkeypatch):
    fake = FakeKind()
    monkeypatch.setattr(cluster, "sh", SimpleNamespace(kind=fake, ErrorReturnCode=sh.ErrorReturnCode))
    return fake


def test_parse_volume_mounts():
    assert parse_volume_mounts(["/host/a:/guest/a"]) == [VolumeMount("/host/a", "/guest/a")]


@pytest.mark.parametrize("spec", ["/only/host", "a:b:c", ":/guest", "/host:"])
def test_parse_volume_mounts_invalid(spec):
    with pytest.raises(ConfigError, match="not a valid volume spec"):
        parse_volume_mounts([spec])


def test_kind_config():
    cfg = kind_config(8000, Path("/data"), [VolumeMount("/h", "/g")])
    [node] = cfg["nodes"]
    assert node["role"] == "control-plane"
    assert node["extraPortMappings"] == [{"containerPort": 80, "hostPort": 8000}]
    assert node["extraMounts"] == [
        {"hostPath": "/data", "containerPath": "/var/local-path-provider"},
        {"hostPath": "/h", "containerPath": "/g"},
    ]
    assert "ingress-ready=true" in node["kubeadmConfigPatches"][0]


def test_exists(kind):
    kind.clusters = "dpctl\nother\n"
    assert KindCluster("dpctl", "/tmp/kubeconfig", Path("/tmp")).exists()
    assert not KindCluster("missing", "/tmp/kubeconfig", Path("/tmp")).exists()


def test_create(kind, tmp_path):
    kubeconfig = tmp_path / "home" / "dpctl.kubeconfig"
    KindCluster("dpctl", kubeconfig, tmp_path / "data").create(8000)

    [args] = kind.calls
    assert args[:2] == ("create", "cluster")
    assert args[args.index("--name") + 1] == "dpctl"
    assert args[args.index("--kubeconfig") + 1] == str(kubeconfig)
    assert args[args.index("--image") + 1] == cluster.NODE_IMAGE
    assert not Path(args[args.index("--config") + 1]).exists()
    assert (tmp_path / "data").is_dir()


def test_create_failure(kind, tmp_path):
    kind.fail = True
    with pytest.raises(ClusterError, match="failed to create cluster"):
        KindCluster("dpctl", tmp_path / "kubeconfig", tmp_path / "data").create(8000)


def test_load_images_is_best_effort(kind):
    class Images:
        def pull(self, image):
            if image == "bad:1":
                raise RuntimeError("manifest unknown")

    docker_client = SimpleNamespace(images=Images())
    failed = KindCluster("dpctl", "/tmp/kubeconfig", Path("/tmp")).load_images(docker_client, ["good:1", "bad:1"])

    assert failed == ["bad:1"]
    [args] = kind.calls
    assert args == ("load", "docker-image", "good:1", "--name", "dpctl")
