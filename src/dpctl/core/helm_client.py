"""Helm CLI wrapper."""

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path

import sh
import yaml

from dpctl.config.settings import settings
from dpctl.core.errors import ChartInstallError, ReleaseNotFoundError
from dpctl.models.chart import ChartMetadata
from dpctl.models.release import HelmRelease

logger = logging.getLogger(__name__)


def _stderr(err: sh.ErrorReturnCode) -> str:
    raw = err.stderr or err.stdout or b""
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    return raw.strip()


class HelmClient:
    """Drives the ``helm`` binary against the dpctl kubeconfig."""

    def __init__(self, kubeconfig: str | None = None):
        self.kubeconfig = kubeconfig

    def _run(self, *args: str) -> str:
        cmd = list(args)
        if self.kubeconfig:
            cmd += ["--kubeconfig", self.kubeconfig]
        logger.debug("helm %s", " ".join(cmd))
        return str(sh.helm(*cmd))

    def add_repo(self, name: str, url: str) -> None:
        try:
            self._run("repo", "add", name, url, "--force-update")
            self._run("repo", "update", name)
        except sh.ErrorReturnCode as e:
            raise ChartInstallError(f"unable to add {name} chart repo: {_stderr(e)}") from e

    def show_chart(self, chart: str, version: str = "") -> ChartMetadata:
        """Resolve a chart reference (repo/name, path or URL) to its metadata."""
        args = ["show", "chart", chart]
        if version:
            args += ["--version", version]
        try:
            out = self._run(*args)
        except sh.ErrorReturnCode as e:
            raise ChartInstallError(f"unable to fetch helm chart {chart!r}: {_stderr(e)}") from e
        return ChartMetadata.from_dict(yaml.safe_load(out) or {})

    def get_release(self, name: str, namespace: str) -> HelmRelease:
        try:
            out = self._run("status", name, "--namespace", namespace, "--output", "json")
        except sh.ErrorReturnCode as e:
            detail = _stderr(e)
            if "not found" in detail:
                raise ReleaseNotFoundError(name) from e
            raise ChartInstallError(f"unable to fetch release {name!r}: {detail}") from e
        return HelmRelease.from_dict(json.loads(out))

    def install_or_upgrade(
        self,
        release: str,
        chart: str,
        namespace: str,
        version: str = "",
        values_yaml: str = "",
        set_values: tuple[str, ...] = (),
    ) -> HelmRelease:
        with tempfile.TemporaryDirectory(prefix="dpctl-values-") as tmp:
            values_path = Path(tmp) / "values.yaml"
            values_path.write_text(values_yaml or "", encoding="utf-8")

            args = [
                "upgrade", release, chart,
                "--install",
                "--namespace", namespace,
                "--create-namespace",
                "--wait",
                "--timeout", settings.helm_timeout,
                "--values", str(values_path),
                "--output", "json",
            ]
            if version:
                args += ["--version", version]
            for value in set_values:
                args += ["--set", value]

            try:
                out = self._run(*args)
            except sh.ErrorReturnCode as e:
                raise ChartInstallError(_stderr(e)) from e
        return HelmRelease.from_dict(json.loads(out))

    def uninstall(self, release: str, namespace: str) -> None:
        try:
            self._run("uninstall", release, "--namespace", namespace, "--wait")
        except sh.ErrorReturnCode as e:
            raise ChartInstallError(f"unable to uninstall {release!r}: {_stderr(e)}") from e

    def template(self, chart: str, version: str = "", values_yaml: str = "") -> str:
        """Render a chart locally, used to discover the images it needs."""
        with tempfile.TemporaryDirectory(prefix="dpctl-values-") as tmp:
            values_path = Path(tmp) / "values.yaml"
            values_path.write_text(values_yaml or "", encoding="utf-8")
            args = ["template", chart, "--values", str(values_path)]
            if version:
                args += ["--version", version]
            try:
                return self._run(*args)
            except sh.ErrorReturnCode as e:
                raise ChartInstallError(f"unable to render chart {chart!r}: {_stderr(e)}") from e
