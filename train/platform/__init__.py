"""Platform abstraction layer."""

from .paths import home, is_windows
from .process import ProcessError, run, run_streaming

__all__ = [
    # paths
    "home",
    "is_windows",
    # process
    "ProcessError",
    "run",
    "run_streaming",
]
