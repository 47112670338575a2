"""Decide what to do with an existing Helm release before installing a chart."""

from __future__ import annotations

import logging
from typing import Protocol

from dpctl.core.errors import ReleaseNotFoundError
from dpctl.models import ReconciliationDecision
from dpctl.models.chart import ChartMetadata
from dpctl.models.release import HelmRelease, ReleaseStatus

logger = logging.getLogger(__name__)


class ReleaseGetter(Protocol):
    def get_release(self, name: str, namespace: str) -> HelmRelease: ...


def decide(
    helm: ReleaseGetter,
    release_name: str,
    namespace: str,
    desired: ChartMetadata,
) -> ReconciliationDecision:
    """Look up ``release_name`` and compare it against the desired chart.

    An unreadable release is treated as suspect and replaced rather than
    left in place.
    """
    try:
        release = helm.get_release(release_name, namespace)
    except ReleaseNotFoundError:
        logger.debug("Unable to find %s Helm release", release_name)
        return ReconciliationDecision.INSTALL
    except Exception as e:
        logger.debug("Unable to fetch %s Helm release: %s", release_name, e)
        return ReconciliationDecision.UNINSTALL_THEN_INSTALL

    return compare(release, desired)


def compare(release: HelmRelease, desired: ChartMetadata) -> ReconciliationDecision:
    if release.status != ReleaseStatus.DEPLOYED:
        logger.debug("Release %s has the status of %s", release.name, release.status.value)
        return ReconciliationDecision.UNINSTALL_THEN_INSTALL

    if release.chart_version != desired.version:
        logger.debug(
            "Chart version (%s) does not match Helm release (%s)",
            desired.version, release.chart_version,
        )
        return ReconciliationDecision.UNINSTALL_THEN_INSTALL

    if release.app_version != desired.app_version:
        logger.debug(
            "Chart app-version (%s) does not match Helm release (%s)",
            desired.app_version, release.app_version,
        )
        return ReconciliationDecision.UNINSTALL_THEN_INSTALL

    logger.debug(
        "Chart matched Helm release %s (version %s, app-version %s)",
        release.name, release.chart_version, release.app_version,
    )
    return ReconciliationDecision.NO_ACTION
