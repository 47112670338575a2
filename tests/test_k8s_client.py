from types import SimpleNamespace

from dpctl.core.k8s_client import NODE_DATA_PATH, K8sClient


class FakeCoreV1:
    def __init__(self):
        self.created = []

    def create_persistent_volume(self, body):
        self.created.append(body)


def test_persistent_volume_uses_node_host_path():
    k8s = K8sClient()
    core = FakeCoreV1()
    k8s._core_v1 = core

    k8s.persistent_volume_create("airbyte-volume-db")

    [pv] = core.created
    assert pv.spec.host_path.path == f"{NODE_DATA_PATH}/airbyte-volume-db"
    assert pv.spec.host_path.type == "DirectoryOrCreate"
    assert pv.spec.persistent_volume_reclaim_policy == "Retain"


def test_deployment_list():
    k8s = K8sClient()
    items = [SimpleNamespace(metadata=SimpleNamespace(name="airbyte-abctl-server"))]
    k8s._apps_v1 = SimpleNamespace(
        list_namespaced_deployment=lambda namespace, _request_timeout: SimpleNamespace(items=items),
    )
    assert k8s.deployment_list("airbyte-abctl") == items
