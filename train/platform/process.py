"""Subprocess execution with Result-based error handling.

Every git and mvn invocation goes through this module, so failures come back
as structured ProcessError values instead of exceptions.

Usage:
    result = run(["git", "rev-parse", "HEAD"], cwd=repo_path)
    match result:
        case Ok(stdout):
            print(stdout.strip())
        case Err(error):
            print(error.diagnostic)
"""

from __future__ import annotations

import subprocess
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path

from train.core.result import Err, Ok, Result

__all__ = ["ProcessError", "run", "run_streaming"]


@dataclass(frozen=True, slots=True)
class ProcessError:
    """A command that could not be started, timed out, or exited non-zero.

    Attributes:
        command: The command line as executed.
        returncode: Exit status; -1 when the process never completed.
        stdout: Captured standard output (the merged log for streamed runs).
        stderr: Captured standard error, or the reason the process never ran.
    """

    command: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    def __str__(self) -> str:
        shown = " ".join(self.command[:3]) + (" ..." if len(self.command) > 3 else "")
        return f"{shown} failed (exit {self.returncode})"

    @property
    def diagnostic(self) -> str:
        """Best available explanation: stderr, then stdout, then the summary."""
        return self.stderr.strip() or self.stdout.strip() or str(self)


def _failed(
    cmd: Sequence[str], returncode: int, stdout: str = "", stderr: str = ""
) -> Err[ProcessError]:
    return Err(
        ProcessError(command=tuple(cmd), returncode=returncode, stdout=stdout, stderr=stderr)
    )


def run(
    cmd: list[str],
    cwd: Path,
    env: dict[str, str] | None = None,
    *,
    timeout: float | None = None,
) -> Result[str, ProcessError]:
    """Run a command to completion and return its stdout.

    Args:
        cmd: Command and arguments.
        cwd: Working directory.
        env: Full environment for the child (inherits ours when None).
        timeout: Seconds before the process is killed (None waits forever).
    """
    try:
        proc = subprocess.run(
            cmd,
            cwd=str(cwd),
            env=env,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        partial = e.stdout if isinstance(e.stdout, str) else ""
        return _failed(cmd, -1, partial, f"Command timed out after {timeout}s")
    except OSError as e:
        return _failed(cmd, -1, stderr=str(e))

    if proc.returncode != 0:
        return _failed(cmd, proc.returncode, proc.stdout, proc.stderr)
    return Ok(proc.stdout)


def run_streaming(
    cmd: list[str],
    cwd: Path,
    on_line: Callable[[str], None],
    env: dict[str, str] | None = None,
) -> Result[str, ProcessError]:
    """Run a long command, handing each output line to on_line as it arrives.

    stderr is merged into stdout so build logs keep their natural order. The
    whole log is returned, or attached to the error as stdout on failure.
    """
    lines: list[str] = []
    try:
        with subprocess.Popen(
            cmd,
            cwd=str(cwd),
            env=env,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
        ) as proc:
            if proc.stdout is None:
                proc.kill()
                return _failed(cmd, -1, stderr="process has no output stream")
            for raw in proc.stdout:
                line = raw.rstrip("\n")
                lines.append(line)
                on_line(line)
            returncode = proc.wait()
    except OSError as e:
        return _failed(cmd, -1, stderr=str(e))

    output = "\n".join(lines)
    if returncode != 0:
        return _failed(cmd, returncode, output)
    return Ok(output)
