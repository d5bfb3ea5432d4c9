"""Platform-aware path utilities."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

__all__ = [
    "home",
    "is_windows",
]


def is_windows() -> bool:
    return os.name == "nt"


@lru_cache(maxsize=1)
def home() -> Path:
    """User home directory.

    USERPROFILE (Windows) or HOME wins over the platform lookup, so CI jobs and
    containers that relocate the home directory are honoured.
    """
    value = os.environ.get("USERPROFILE" if is_windows() else "HOME", "").strip()
    return Path(value) if value else Path.home()


def clear_caches() -> None:
    """Clear cached paths (tests change HOME between cases)."""
    home.cache_clear()
