"""Kubernetes API wrapper."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterator

from kubernetes import client, config, watch
from kubernetes.client import ApiException

from dpctl.config.settings import settings

logger = logging.getLogger(__name__)

# Root of the hostPath directories backing the platform volumes on the kind node
NODE_DATA_PATH = "/var/local-path-provisioner"


class K8sClient:
    """Thin wrapper around the Kubernetes Python client."""

    def __init__(self, kubeconfig: str | None = None, context: str | None = None):
        self.kubeconfig = kubeconfig
        self.context = context
        self._core_v1: client.CoreV1Api | None = None
        self._apps_v1: client.AppsV1Api | None = None
        self._networking_v1: client.NetworkingV1Api | None = None
        self._events_v1: client.EventsV1Api | None = None
        self._api_client: client.ApiClient | None = None

    def _load_config(self) -> client.ApiClient:
        if self._api_client is not None:
            return self._api_client
        cfg = client.Configuration()
        config.load_kube_config(
            config_file=self.kubeconfig,
            context=self.context,
            client_configuration=cfg,
        )
        # Prevent indefinite hangs on unreachable clusters
        cfg.retries = 1
        self._api_client = client.ApiClient(configuration=cfg)
        return self._api_client

    @property
    def core_v1(self) -> client.CoreV1Api:
        if self._core_v1 is None:
            self._core_v1 = client.CoreV1Api(api_client=self._load_config())
        return self._core_v1

    @property
    def apps_v1(self) -> client.AppsV1Api:
        if self._apps_v1 is None:
            self._apps_v1 = client.AppsV1Api(api_client=self._load_config())
        return self._apps_v1

    @property
    def networking_v1(self) -> client.NetworkingV1Api:
        if self._networking_v1 is None:
            self._networking_v1 = client.NetworkingV1Api(api_client=self._load_config())
        return self._networking_v1

    @property
    def events_v1(self) -> client.EventsV1Api:
        if self._events_v1 is None:
            self._events_v1 = client.EventsV1Api(api_client=self._load_config())
        return self._events_v1

    @staticmethod
    def _exists(read: Any, **kwargs: Any) -> bool:
        """Return False only on a 404; any other failure is treated as existing."""
        try:
            read(**kwargs)
            return True
        except ApiException as e:
            if e.status == 404:
                return False
            logger.debug("Existence check failed with status %s", e.status, exc_info=True)
            return True

    # -- namespaces -------------------------------------------------------

    def namespace_exists(self, namespace: str) -> bool:
        return self._exists(self.core_v1.read_namespace, name=namespace)

    def namespace_create(self, namespace: str) -> None:
        body = client.V1Namespace(metadata=client.V1ObjectMeta(name=namespace))
        try:
            self.core_v1.create_namespace(body=body)
        except ApiException as e:
            if e.status != 409:
                raise

    # -- volumes ----------------------------------------------------------

    def persistent_volume_exists(self, name: str) -> bool:
        return self._exists(self.core_v1.read_persistent_volume, name=name)

    def persistent_volume_create(self, name: str) -> None:
        pv = client.V1PersistentVolume(
            metadata=client.V1ObjectMeta(name=name),
            spec=client.V1PersistentVolumeSpec(
                capacity={"storage": settings.volume_size},
                host_path=client.V1HostPathVolumeSource(
                    path=f"{NODE_DATA_PATH}/{name}",
                    type="DirectoryOrCreate",
                ),
                access_modes=["ReadWriteOnce"],
                persistent_volume_reclaim_policy="Retain",
                storage_class_name=settings.storage_class,
            ),
        )
        self.core_v1.create_persistent_volume(body=pv)

    def persistent_volume_claim_exists(self, namespace: str, name: str) -> bool:
        return self._exists(
            self.core_v1.read_namespaced_persistent_volume_claim, name=name, namespace=namespace,
        )

    def persistent_volume_claim_create(self, namespace: str, name: str, volume_name: str) -> None:
        pvc = client.V1PersistentVolumeClaim(
            metadata=client.V1ObjectMeta(name=name, namespace=namespace),
            spec=client.V1PersistentVolumeClaimSpec(
                access_modes=["ReadWriteOnce"],
                resources=client.V1VolumeResourceRequirements(requests={"storage": settings.volume_size}),
                volume_name=volume_name,
                storage_class_name=settings.storage_class,
            ),
        )
        self.core_v1.create_namespaced_persistent_volume_claim(namespace=namespace, body=pvc)

    # -- secrets ----------------------------------------------------------

    def secret_create_or_update(self, secret: client.V1Secret | dict) -> None:
        if isinstance(secret, dict):
            metadata = secret.get("metadata", {}) or {}
            namespace, name = metadata.get("namespace", ""), metadata.get("name", "")
        else:
            namespace, name = secret.metadata.namespace, secret.metadata.name
        try:
            self.core_v1.read_namespaced_secret(name=name, namespace=namespace)
        except ApiException as e:
            if e.status != 404:
                raise
            self.core_v1.create_namespaced_secret(namespace=namespace, body=secret)
            return
        self.core_v1.replace_namespaced_secret(name=name, namespace=namespace, body=secret)

    def secret_get(self, namespace: str, name: str) -> client.V1Secret:
        return self.core_v1.read_namespaced_secret(name=name, namespace=namespace)

    def secret_delete_collection(self, namespace: str, secret_type: str) -> None:
        self.core_v1.delete_collection_namespaced_secret(
            namespace=namespace, field_selector=f"type={secret_type}",
        )

    # -- networking -------------------------------------------------------

    def ingress_exists(self, namespace: str, name: str) -> bool:
        return self._exists(self.networking_v1.read_namespaced_ingress, name=name, namespace=namespace)

    def ingress_create(self, namespace: str, ingress: client.V1Ingress) -> None:
        self.networking_v1.create_namespaced_ingress(namespace=namespace, body=ingress)

    def ingress_update(self, namespace: str, ingress: client.V1Ingress) -> None:
        self.networking_v1.replace_namespaced_ingress(
            name=ingress.metadata.name, namespace=namespace, body=ingress,
        )

    def service_get(self, namespace: str, name: str) -> client.V1Service:
        return self.core_v1.read_namespaced_service(name=name, namespace=namespace)

    # -- workloads --------------------------------------------------------

    def pod_list(self, namespace: str) -> list[client.V1Pod]:
        return self.core_v1.list_namespaced_pod(namespace=namespace, _request_timeout=30).items

    def deployment_list(self, namespace: str) -> list[client.V1Deployment]:
        return self.apps_v1.list_namespaced_deployment(namespace=namespace, _request_timeout=30).items

    def deployment_restart(self, namespace: str, name: str) -> None:
        """Equivalent of ``kubectl rollout restart deployment/<name>``."""
        restarted_at = datetime.now(timezone.utc).isoformat()
        patch = {"spec": {"template": {"metadata": {"annotations": {
            "kubectl.kubernetes.io/restartedAt": restarted_at,
        }}}}}
        self.apps_v1.patch_namespaced_deployment(name=name, namespace=namespace, body=patch)

    def logs_get(self, namespace: str, name: str) -> str:
        return self.core_v1.read_namespaced_pod_log(name=name, namespace=namespace, _request_timeout=30)

    def stream_pod_logs(self, namespace: str, name: str, since: datetime) -> PodLogStream:
        """Follow a pod's logs from ``since`` onwards."""
        since_seconds = max(1, int((datetime.now(timezone.utc) - since).total_seconds()))
        resp = self.core_v1.read_namespaced_pod_log(
            name=name,
            namespace=namespace,
            follow=True,
            since_seconds=since_seconds,
            _preload_content=False,
        )
        return PodLogStream(resp)

    # -- events -----------------------------------------------------------

    def watch_events(self, namespace: str) -> tuple[watch.Watch, Iterator[dict]]:
        """Open an events.k8s.io/v1 watch. Call ``stop()`` on the Watch to close it."""
        w = watch.Watch()
        stream = w.stream(self.events_v1.list_namespaced_event, namespace=namespace)
        return w, stream


class PodLogStream:
    """Line iterator over a follow-mode log response.

    ``close()`` may be called from another thread to abort a blocked read.
    """

    def __init__(self, resp: Any):
        self._resp = resp

    def __iter__(self) -> Iterator[bytes]:
        buf = b""
        try:
            for chunk in self._resp.stream(amt=4096, decode_content=True):
                buf += chunk
                while b"\n" in buf:
                    line, buf = buf.split(b"\n", 1)
                    yield line
            if buf:
                yield buf
        finally:
            self._resp.release_conn()

    def close(self) -> None:
        self._resp.close()
