"""Read and rotate the platform's instance-admin credentials."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from dpctl.config.settings import settings
from dpctl.core.errors import ClusterError
from dpctl.utils.encoding import b64, decode_secret_value

logger = logging.getLogger(__name__)

KEY_PASSWORD = "instance-admin-password"
KEY_CLIENT_ID = "instance-admin-client-id"
KEY_CLIENT_SECRET = "instance-admin-client-secret"


@dataclass
class Credentials:
    password: str = ""
    client_id: str = ""
    client_secret: str = ""

    @classmethod
    def from_secret(cls, secret: Any) -> Credentials:
        data = secret.data or {}
        return cls(
            password=decode_secret_value(data.get(KEY_PASSWORD)),
            client_id=decode_secret_value(data.get(KEY_CLIENT_ID)),
            client_secret=decode_secret_value(data.get(KEY_CLIENT_SECRET)),
        )


def get_credentials(k8s: Any) -> Credentials:
    try:
        secret = k8s.secret_get(settings.platform_namespace, settings.auth_secret)
    except Exception as e:
        raise ClusterError(f"unable to read secret {settings.auth_secret!r}: {e}") from e
    return Credentials.from_secret(secret)


def update_password(k8s: Any, password: str) -> bool:
    """Store a new password and restart the server so it is picked up.

    Returns False without touching the cluster when the password is unchanged.
    """
    ns = settings.platform_namespace
    try:
        secret = k8s.secret_get(ns, settings.auth_secret)
    except Exception as e:
        raise ClusterError(f"unable to read secret {settings.auth_secret!r}: {e}") from e

    if decode_secret_value((secret.data or {}).get(KEY_PASSWORD)) == password:
        logger.debug("Password unchanged, nothing to update")
        return False

    secret.data = dict(secret.data or {})
    secret.data[KEY_PASSWORD] = b64(password)
    try:
        k8s.secret_create_or_update(secret)
    except Exception as e:
        raise ClusterError(f"unable to update the password: {e}") from e
    try:
        k8s.deployment_restart(ns, settings.server_deployment)
    except Exception as e:
        raise ClusterError(f"unable to restart {settings.server_deployment}: {e}") from e
    return True
