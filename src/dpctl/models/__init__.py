"""Data models for dpctl."""

from __future__ import annotations

import enum


class ReconciliationDecision(enum.Enum):
    """What to do with an existing Helm release before installing."""

    NO_ACTION = "no-action"
    INSTALL = "install"
    UNINSTALL_THEN_INSTALL = "uninstall-then-install"
