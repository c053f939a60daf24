"""Semantic version helpers.

Versions are MAJOR.MINOR.PATCH with an optional pre-release suffix
("1.2.0", "12.1.0-rc.1"). A leading "v" is tolerated. Ordering is
delegated to packaging.version.
"""

from __future__ import annotations

import re

from packaging.version import InvalidVersion, Version

_SEMVER = re.compile(
    r"^v?(?P<core>\d+\.\d+\.\d+)(?P<pre>-[0-9A-Za-z]+(?:\.[0-9A-Za-z]+)*)?$"
)


def normalize_version(raw: str) -> str:
    """Turn a filename-safe version ("1_2_0") into dotted form."""
    return raw.strip().replace("_", ".")


def clean_version(raw: str | None) -> str | None:
    """Return the canonical version string, or None if `raw` is not valid."""
    if not raw:
        return None
    match = _SEMVER.match(raw.strip())
    if not match:
        return None
    cleaned = match.group("core") + (match.group("pre") or "")
    try:
        Version(cleaned)
    except InvalidVersion:
        return None
    return cleaned


def is_valid(raw: str | None) -> bool:
    return clean_version(raw) is not None


def parse(raw: str) -> Version:
    cleaned = clean_version(raw)
    if cleaned is None:
        raise ValueError(f"Invalid version format: {raw!r}")
    return Version(cleaned)


def compare(a: str, b: str) -> int:
    va, vb = parse(a), parse(b)
    return (va > vb) - (va < vb)


def in_interval(version: str, lower: str, upper: str) -> bool:
    """True if lower < version <= upper.

    A pre-release only falls inside the interval when one of the bounds
    has the same MAJOR.MINOR.PATCH, so "1.2.0-rc.1" is not part of
    (1.0.0, 1.3.0] but is part of (1.0.0, 1.2.0].
    """
    v, lo, hi = parse(version), parse(lower), parse(upper)
    if v.is_prerelease and v.release not in (lo.release, hi.release):
        return False
    return lo < v <= hi


def highest(versions: list[str]) -> str | None:
    if not versions:
        return None
    return max(versions, key=parse)
