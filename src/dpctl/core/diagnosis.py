"""Post-mortem checks run when the platform chart fails to install."""

from __future__ import annotations

import logging
from typing import Any

from dpctl.core.errors import BootloaderFailedError, ChartInstallError
from dpctl.core.log_scanner import last_error_line, split_lines
from dpctl.models.events import DiagnosticResult, Severity
from dpctl.models.logs import LogLine

logger = logging.getLogger(__name__)


def run_diagnostics(k8s: Any, namespace: str) -> list[DiagnosticResult]:
    """Return one ERROR result per failed pod, carrying its last logged error.

    Pods whose logs cannot be read report ``unknown``.
    """
    results: list[DiagnosticResult] = []
    for pod in k8s.pod_list(namespace):
        if (pod.status.phase if pod.status else "") != "Failed":
            continue
        name = pod.metadata.name
        cause = ""
        try:
            cause = _root_cause(last_error_line(split_lines(k8s.logs_get(namespace, name))))
        except Exception as e:
            logger.debug("Failed to get logs for pod %s: %s", name, e)
        results.append(DiagnosticResult(
            severity=Severity.ERROR,
            message=cause or "unknown",
            reason=(pod.status.reason or "") if pod.status else "",
            pod_name=name,
            namespace=namespace,
        ))
    return results


def _root_cause(line: LogLine | None) -> str:
    """The error message, followed by the innermost cause of a structured throwable."""
    if line is None:
        return ""
    chain = line.throwable.chain() if line.throwable else []
    if chain and chain[-1] != line.message:
        return f"{line.message}: caused by {chain[-1]}"
    return line.message


def diagnose_chart_failure(
    k8s: Any,
    namespace: str,
    bootstrap_pod: str,
    chart_err: Exception,
) -> ChartInstallError:
    """Build the error to raise for a failed platform chart install.

    A failure while diagnosing is logged and the original error is returned
    unchanged.
    """
    try:
        failed = run_diagnostics(k8s, namespace)
    except Exception:
        logger.debug("Failed to diagnose chart failure", exc_info=True)
        failed = []

    if not failed:
        if isinstance(chart_err, ChartInstallError):
            return chart_err
        return ChartInstallError(str(chart_err))

    lines = [f"unable to install platform chart: {chart_err}", "failed pods:"]
    lines += [f"  {r.pod_name}: {r.message}" for r in failed]
    message = "\n".join(lines)

    if len(failed) == 1 and failed[0].pod_name == bootstrap_pod:
        return BootloaderFailedError(message)
    return ChartInstallError(message)
