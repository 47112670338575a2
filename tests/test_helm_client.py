import json
from types import SimpleNamespace

import pytest
import sh

from dpctl.core import helm_client
from dpctl.core.errors import ChartInstallError, ReleaseNotFoundError
from dpctl.core.helm_client import HelmClient
from dpctl.models.release import ReleaseStatus

RELEASE_JSON = json.dumps({
    "name": "ingress-nginx",
    "namespace": "ingress-nginx",
    "version": 3,
    "info": {"status": "deployed", "last_deployed": "2024-09-12T15:56:31Z"},
    "chart": {"metadata": {"name": "ingress-nginx", "version": "4.11.1", "appVersion": "1.11.1"}},
})


class FakeHelmBinary:
    def __init__(self, out="", stderr=b""):
        self.calls = []
        self.out = out
        self.stderr = stderr

    def __call__(self, *args):
        self.calls.append(args)
        if self.stderr:
            raise sh.ErrorReturnCode_1("helm " + " ".join(args), b"", self.stderr)
        return self.out


@pytest.fixture
def helm_bin(monkeypatch):
    fake = FakeHelmBinary()
    monkeypatch.setattr(helm_client, "sh", SimpleNamespace(helm=fake, ErrorReturnCode=sh.ErrorReturnCode))
    return fake


def test_get_release(helm_bin):
    helm_bin.out = RELEASE_JSON
    rel = HelmClient("/tmp/kubeconfig").get_release("ingress-nginx", "ingress-nginx")
    assert rel.status == ReleaseStatus.DEPLOYED
    assert rel.chart_version == "4.11.1"
    assert rel.app_version == "1.11.1"
    assert helm_bin.calls[0][-2:] == ("--kubeconfig", "/tmp/kubeconfig")


def test_get_release_not_found(helm_bin):
    helm_bin.stderr = b"Error: release: not found"
    with pytest.raises(ReleaseNotFoundError):
        HelmClient().get_release("ingress-nginx", "ingress-nginx")


def test_get_release_other_error(helm_bin):
    helm_bin.stderr = b"Error: Kubernetes cluster unreachable"
    with pytest.raises(ChartInstallError, match="cluster unreachable"):
        HelmClient().get_release("ingress-nginx", "ingress-nginx")


def test_show_chart(helm_bin):
    helm_bin.out = "apiVersion: v2\nname: airbyte\nversion: 1.1.0\nappVersion: 1.1.0\n"
    meta = HelmClient().show_chart("airbyte/airbyte", "1.1.0")
    assert (meta.name, meta.version, meta.app_version) == ("airbyte", "1.1.0", "1.1.0")
    assert helm_bin.calls[0] == ("show", "chart", "airbyte/airbyte", "--version", "1.1.0")


def test_install_or_upgrade(helm_bin):
    helm_bin.out = RELEASE_JSON
    rel = HelmClient().install_or_upgrade("ingress-nginx", "nginx/ingress-nginx", "ingress-nginx", version="4.11.1",
                                          values_yaml="controller: {}\n")
    assert rel.version == 3
    args = helm_bin.calls[0]
    assert args[:5] == ("upgrade", "ingress-nginx", "nginx/ingress-nginx", "--install", "--namespace")
    assert "--wait" in args
    assert args[args.index("--version") + 1] == "4.11.1"


def test_install_failure_carries_stderr(helm_bin):
    helm_bin.stderr = b"Error: UPGRADE FAILED: another operation (install/upgrade/rollback) is in progress"
    with pytest.raises(ChartInstallError, match="another operation"):
        HelmClient().install_or_upgrade("r", "c", "ns")
