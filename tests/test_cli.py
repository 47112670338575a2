import json
from types import SimpleNamespace

from typer.testing import CliRunner

from fakes import FakeHelm, FakeK8s, make_pod, make_release
from dpctl.cli import app as cli
from dpctl.cli.commands import credentials_cmd, deployments_cmd, status_cmd
from dpctl.config.settings import settings
from dpctl.utils.encoding import b64

runner = CliRunner()


def test_status_without_cluster(monkeypatch):
    monkeypatch.setattr(status_cmd, "KindCluster", lambda: SimpleNamespace(name="dpctl", exists=lambda: False))
    result = runner.invoke(cli.app, ["status"])
    assert result.exit_code == 1


def test_status_json(monkeypatch):
    helm = FakeHelm(releases={
        settings.platform_release: make_release(settings.platform_release, settings.platform_namespace, "1.1.0"),
    })
    k8s = FakeK8s(pods=[make_pod("worker-0", "Failed")])
    monkeypatch.setattr(status_cmd, "KindCluster", lambda: SimpleNamespace(name="dpctl", exists=lambda: True))
    monkeypatch.setattr(status_cmd, "HelmClient", lambda kubeconfig: helm)
    monkeypatch.setattr(status_cmd, "K8sClient", lambda kubeconfig: k8s)

    result = runner.invoke(cli.app, ["status", "--output", "json", "--port", "9000"])

    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["url"] == "http://localhost:9000"
    assert [r["name"] for r in data["releases"]] == [settings.platform_release]
    assert data["failed_pods"][0]["pod"] == "worker-0"
    assert data["failed_pods"][0]["message"] == "unknown"


def test_credentials(monkeypatch):
    k8s = FakeK8s()
    k8s.secrets[settings.auth_secret] = SimpleNamespace(
        metadata=SimpleNamespace(name=settings.auth_secret),
        data={"instance-admin-password": b64("hunter2"), "instance-admin-client-id": b64("cid")},
    )
    monkeypatch.setattr(credentials_cmd, "K8sClient", lambda kubeconfig: k8s)

    result = runner.invoke(cli.app, ["credentials"])

    assert result.exit_code == 0, result.output
    assert "hunter2" in result.output
    assert "cid" in result.output


def test_deployments_list(monkeypatch):
    k8s = FakeK8s()
    k8s.deployments = ["airbyte-abctl-server", "airbyte-abctl-worker"]
    monkeypatch.setattr(deployments_cmd, "K8sClient", lambda kubeconfig: k8s)

    result = runner.invoke(cli.app, ["deployments"])

    assert result.exit_code == 0, result.output
    assert "Found the following deployments:" in result.output
    assert "airbyte-abctl-worker" in result.output


def test_deployments_empty(monkeypatch):
    monkeypatch.setattr(deployments_cmd, "K8sClient", lambda kubeconfig: FakeK8s())
    result = runner.invoke(cli.app, ["deployments"])
    assert result.exit_code == 0
    assert "No deployments found" in result.output


def test_deployments_restart(monkeypatch):
    k8s = FakeK8s()
    monkeypatch.setattr(deployments_cmd, "K8sClient", lambda kubeconfig: k8s)

    result = runner.invoke(cli.app, ["deployments", "--restart", "airbyte-abctl-server"])

    assert result.exit_code == 0, result.output
    assert k8s.log == [("deployment_restart", "airbyte-abctl-server")]
