"""Version string canonicalization for fixture keys."""

from __future__ import annotations

import re

_INVALID_RE = re.compile(r"[^A-Za-z0-9]")
_UNDERSCORE_RUN_RE = re.compile(r"_+")


def normalize_version(raw: str) -> str:
    """Turn a free-form version string into a path-safe token.

    >>> normalize_version("1.2.3-alpha")
    'v1_2_3_alpha'

    Tokens that already carry the ``v`` prefix are not prefixed again, which
    keeps the function idempotent.
    """
    normalized = _INVALID_RE.sub("_", raw)
    normalized = _UNDERSCORE_RUN_RE.sub("_", normalized).strip("_")
    if normalized.startswith("v"):
        return normalized
    return "v" + normalized
