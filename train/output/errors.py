"""Error presentation utilities.

Centralized error formatting and exit code mapping for consistent UX.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from train.core.errors import ErrorCode
from train.output.console import Style
from train.services.errors import TrainError

if TYPE_CHECKING:
    from train.output.console import ConsoleProtocol

__all__ = ["print_train_error", "train_error_exit_code"]


def print_train_error(error: TrainError, console: ConsoleProtocol) -> None:
    """Print a fatal error naming the service and the underlying diagnostic."""
    if error.service is not None:
        console.error(f"{error.service}: {error.message}")
    else:
        console.error(error.message)
    if error.hint:
        console.print(error.hint.rstrip(), Style.DIM)


def train_error_exit_code(error: TrainError) -> int:
    """Get exit code for a release train error."""
    match error.kind:
        case "validation" | "not_found" | "aborted":
            return int(ErrorCode.USER_ERROR)
        case "config" | "vcs":
            return int(ErrorCode.ENV_ERROR)
        case "build":
            return int(ErrorCode.BUILD_ERROR)
        case "remote_api" | "timeout":
            return int(ErrorCode.NETWORK_ERROR)
        case "io":
            return int(ErrorCode.IO_ERROR)
        case "pipeline_failed":
            return int(ErrorCode.PIPELINE_ERROR)
    # Fallback for exhaustiveness
    return int(ErrorCode.ENV_ERROR)
