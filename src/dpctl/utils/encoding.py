"""Base64 helpers for Kubernetes secret payloads."""

from __future__ import annotations

import base64
import json


def b64(value: str) -> str:
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


def docker_config_json(server: str, user: str, password: str, email: str = "") -> bytes:
    """Build a ``.dockerconfigjson`` payload for a single registry.

    Pipeline: auths map -> json -> utf-8. The ``auth`` field is
    base64("user:pass") as the docker CLI writes it.
    """
    payload = {
        "auths": {
            server: {
                "username": user,
                "password": password,
                "email": email,
                "auth": b64(f"{user}:{password}"),
            },
        },
    }
    return json.dumps(payload).encode("utf-8")


def docker_registry_secret_data(server: str, user: str, password: str, email: str = "") -> dict[str, str]:
    """Secret ``data`` for a ``kubernetes.io/dockerconfigjson`` secret."""
    raw = docker_config_json(server, user, password, email)
    return {".dockerconfigjson": base64.b64encode(raw).decode("ascii")}


def decode_secret_value(value: str | None) -> str:
    """Decode one entry of a Secret's ``data`` map."""
    if not value:
        return ""
    return base64.b64decode(value).decode("utf-8")
