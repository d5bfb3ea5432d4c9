"""Maven builds and local repository housekeeping."""

from __future__ import annotations

import os
import shutil
from collections.abc import Sequence
from pathlib import Path

from train.core.result import Err, Ok, Result
from train.output.console import ConsoleProtocol, Style
from train.platform.paths import home, is_windows
from train.platform.process import run_streaming
from train.services.errors import TrainError

M2_REPO_ENV = "M2_REPO"
BUILD_ARGS = ("clean", "install", "-DskipTests=true")

# Lines of build output kept in the error hint when a build fails.
_FAILURE_TAIL_LINES = 40


def mvn_executable() -> str:
    return "mvn.cmd" if is_windows() else "mvn"


def local_cache_path() -> Path:
    """Maven local repository: $M2_REPO, else ~/.m2/repository."""
    override = os.environ.get(M2_REPO_ENV, "").strip()
    if override:
        return Path(override)
    return home() / ".m2" / "repository"


def clean_cache(paths: Sequence[str], console: ConsoleProtocol) -> Result[None, TrainError]:
    """Remove the given sub-paths of the local repository (missing ones are skipped)."""
    root = local_cache_path()
    for rel in paths:
        target = root / rel
        if not target.exists():
            console.print(f"Maven cache {target} does not exist, skipping", Style.DIM)
            continue
        console.info(f"Cleaning Maven cache: {target}")
        try:
            shutil.rmtree(target)
        except OSError as e:
            return Err(
                TrainError(kind="io", message=f"failed to remove {target}", hint=str(e))
            )
    return Ok(None)


def build_and_install(directory: Path, console: ConsoleProtocol) -> Result[None, TrainError]:
    """Run `mvn clean install -DskipTests=true`, streaming output to the console."""
    cmd = [mvn_executable(), *BUILD_ARGS]
    result = run_streaming(cmd, cwd=directory, on_line=lambda line: console.print(line, Style.DIM))
    if isinstance(result, Err):
        tail = "\n".join(result.error.diagnostic.splitlines()[-_FAILURE_TAIL_LINES:])
        return Err(
            TrainError(
                kind="build",
                message=f"mvn clean install failed in {directory}",
                hint=tail,
            )
        )
    return Ok(None)


def build_service(
    directory: Path,
    console: ConsoleProtocol,
    prebuild: Sequence[str] = (),
) -> Result[None, TrainError]:
    """Build prebuild modules (in order), then the service itself."""
    for module in prebuild:
        module_dir = directory / module
        if not module_dir.is_dir():
            return Err(
                TrainError(kind="build", message=f"{module} directory not found in {directory}")
            )
        console.print(f"  Building {module} first...", Style.DIM)
        result = build_and_install(module_dir, console)
        if isinstance(result, Err):
            return result
    return build_and_install(directory, console)
