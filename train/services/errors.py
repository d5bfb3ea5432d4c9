from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Literal

TrainErrorKind = Literal[
    "io",
    "vcs",
    "remote_api",
    "not_found",
    "timeout",
    "validation",
    "config",
    "build",
    "pipeline_failed",
    "aborted",
]


@dataclass(frozen=True, slots=True)
class TrainError:
    kind: TrainErrorKind
    message: str
    hint: str | None = None
    service: str | None = None

    def for_service(self, service: str) -> TrainError:
        """Attach the offending service unless one is already recorded."""
        if self.service is not None:
            return self
        return replace(self, service=service)
