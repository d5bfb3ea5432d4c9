"""Error codes for CLI exit status.

These values are used as process exit codes and should remain stable:
- 0: Success
- 1: User error (bad version, declined confirmation, no previous release)
- 2: Environment error (invalid deploy.toml, git failure)
- 3: Build error (mvn clean install failed)
- 4: Network error (GitLab API unreachable or rejected the request)
- 5: I/O error (descriptor or release notes could not be read/written)
- 6: Pipeline error (a remote pipeline ended failed/canceled/skipped)
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands."""

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    BUILD_ERROR = 3
    NETWORK_ERROR = 4
    IO_ERROR = 5
    PIPELINE_ERROR = 6
