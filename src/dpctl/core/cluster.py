"""kind cluster lifecycle, driven through the ``kind`` CLI."""

from __future__ import annotations

import logging
import tempfile
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Any

import sh
import yaml

from dpctl.config.settings import settings
from dpctl.core.errors import ClusterError, ConfigError
from dpctl.models.install import VolumeMount
from dpctl.utils.manifest_parser import find_images

logger = logging.getLogger(__name__)

# Must match a node image published for the kind release in use
NODE_IMAGE = "kindest/node:v1.29.8@sha256:d46b7aa29567e93b27f7531d258c372e829d7224b25e3fc6ffdefed12476d3aa"
NODE_DATA_MOUNT = "/var/local-path-provider"
IMAGE_PULL_MAX_WORKERS = 8

_KUBEADM_PATCH = """kind: InitConfiguration
nodeRegistration:
  kubeletExtraArgs:
    node-labels: "ingress-ready=true"
"""


def parse_volume_mounts(specs: list[str] | tuple[str, ...]) -> list[VolumeMount]:
    """Parse ``<HOST_PATH>:<GUEST_PATH>`` strings."""
    mounts: list[VolumeMount] = []
    for spec in specs:
        parts = spec.split(":")
        if len(parts) != 2 or not all(parts):
            raise ConfigError(f"volume {spec!r} is not a valid volume spec, must be <HOST_PATH>:<GUEST_PATH>")
        mounts.append(VolumeMount(host_path=parts[0], container_path=parts[1]))
    return mounts


def kind_config(port: int, data_dir: Path, extra_mounts: list[VolumeMount] | tuple[VolumeMount, ...] = ()) -> dict[str, Any]:
    mounts = [{"hostPath": str(data_dir), "containerPath": NODE_DATA_MOUNT}]
    mounts += [{"hostPath": m.host_path, "containerPath": m.container_path} for m in extra_mounts]
    return {
        "kind": "Cluster",
        "apiVersion": "kind.x-k8s.io/v1alpha4",
        "nodes": [{
            "role": "control-plane",
            "kubeadmConfigPatches": [_KUBEADM_PATCH],
            "extraMounts": mounts,
            "extraPortMappings": [{"containerPort": 80, "hostPort": port}],
        }],
    }


def _err_text(err: sh.ErrorReturnCode) -> str:
    raw = err.stderr or err.stdout or b""
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    return raw.strip()


class KindCluster:
    """A single-node kind cluster with its own kubeconfig file."""

    def __init__(self, name: str | None = None, kubeconfig: str | Path | None = None, data_dir: Path | None = None):
        self.name = name or settings.cluster_name
        self.kubeconfig = str(kubeconfig or settings.kubeconfig)
        self.data_dir = data_dir or settings.data_dir

    def exists(self) -> bool:
        try:
            out = str(sh.kind("get", "clusters"))
        except sh.ErrorReturnCode:
            logger.debug("Unable to list kind clusters", exc_info=True)
            return False
        return self.name in out.split()

    def create(self, port: int, extra_mounts: list[VolumeMount] | tuple[VolumeMount, ...] = ()) -> None:
        # Created up front so the directory is owned by the user rather than the docker daemon
        self.data_dir.mkdir(mode=0o766, parents=True, exist_ok=True)
        Path(self.kubeconfig).parent.mkdir(parents=True, exist_ok=True)

        cfg = kind_config(port, self.data_dir, extra_mounts)
        with tempfile.NamedTemporaryFile("w", suffix=".yaml", prefix="kind-", delete=False) as f:
            yaml.safe_dump(cfg, f, default_flow_style=False)
            cfg_path = f.name
        try:
            sh.kind(
                "create", "cluster",
                "--name", self.name,
                "--config", cfg_path,
                "--image", NODE_IMAGE,
                "--kubeconfig", self.kubeconfig,
                "--wait", "5m",
            )
        except sh.ErrorReturnCode as e:
            raise ClusterError(f"unable to create kind cluster: {_err_text(e)}") from e
        finally:
            Path(cfg_path).unlink(missing_ok=True)

    def delete(self) -> None:
        try:
            sh.kind("delete", "cluster", "--name", self.name, "--kubeconfig", self.kubeconfig)
        except sh.ErrorReturnCode as e:
            raise ClusterError(f"unable to delete kind cluster: {_err_text(e)}") from e

    def load_images(self, docker_client: Any, images: list[str]) -> list[str]:
        """Pull ``images`` in parallel and side-load them into the node.

        Best effort: returns the images that failed to pull, never raises.
        """
        if not images:
            return []
        failed: list[str] = []
        with ThreadPoolExecutor(max_workers=IMAGE_PULL_MAX_WORKERS) as executor:
            futures = {executor.submit(_pull, docker_client, img): img for img in images}
            for future in as_completed(futures):
                image, error = future.result()
                if error:
                    logger.debug("Error pulling image %s: %s", image, error)
                    failed.append(image)

        pulled = [i for i in images if i not in failed]
        if pulled:
            try:
                sh.kind("load", "docker-image", *pulled, "--name", self.name)
            except sh.ErrorReturnCode as e:
                logger.debug("Failed to load images into kind: %s", _err_text(e))
        return failed


def _pull(docker_client: Any, image: str) -> tuple[str, str | None]:
    try:
        docker_client.images.pull(image)
        return image, None
    except Exception as e:
        return image, str(e)


def images_from_manifest(manifest: str) -> list[str]:
    """Container images referenced by a ``helm template`` rendering."""
    return find_images(manifest)
