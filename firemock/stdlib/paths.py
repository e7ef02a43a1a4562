"""Path helpers for reference nodes."""

from __future__ import annotations

import re

DEFAULT_ROOT_PATH = "Mock://"

# Trailing segment after the last "/" made of non-metacharacters
_NAME_PATTERN = re.compile(r"/([^.$\[\]#/]+)$")


def extract_name(path: str | None) -> str | None:
    """Return the trailing path segment, or ``None`` if there is none.

    >>> extract_name("Mock://users")
    'users'
    >>> extract_name("Mock://") is None
    True
    """
    match = _NAME_PATTERN.search(path or "")
    return match.group(1) if match else None


def join_path(base: str, name: str) -> str:
    """Append *name* to *base* with exactly one separator.

    >>> join_path("Mock://", "users")
    'Mock://users'
    >>> join_path("Mock://users", "alice")
    'Mock://users/alice'
    """
    if base.endswith("/"):
        return f"{base}{name}"
    return f"{base}/{name}"
