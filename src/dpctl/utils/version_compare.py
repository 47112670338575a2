"""Chart version helpers."""

from __future__ import annotations

from packaging.version import Version, InvalidVersion


def parse_version(v: str) -> Version | None:
    """Parse a version string, returning None on failure."""
    try:
        return Version(v)
    except InvalidVersion:
        # Try stripping leading 'v'
        if v.startswith("v"):
            try:
                return Version(v[1:])
            except InvalidVersion:
                pass
    return None


def is_v2_plus(chart_version: str) -> bool:
    """Return True for platform chart versions 2.0.0 and above.

    The v2 chart renamed several values keys and services, so callers switch
    on this. Unparseable or empty versions are treated as v1.
    """
    v = parse_version(chart_version) if chart_version else None
    if v is None:
        return False
    return v >= Version("2.0.0")
