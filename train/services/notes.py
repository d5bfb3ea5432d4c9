"""Release notes: tasks that are new in a release, across all services.

For each service the commits since the previous release's last tag are
compared with the commits that made up the previous release itself. Task ids
found only in the former are new. Cherry-picks into the previous release
branch therefore do not show up twice.

    previous lineage   origin/release-11
    branch point       merge-base(origin/release-11, origin/<trunk>)
    marker             latest release tag reachable from the lineage
                       (or the lineage tip when it has none)
    between            (marker, HEAD]
    in_previous        (branch point, marker]
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path

from train.core.result import Err, Ok, Result
from train.git.refs import RELEASE_TAG_PATTERNS, find_remote_release_branch, remote_ref
from train.git.repository import CommitInfo, GitError, Repository
from train.output.console import ConsoleProtocol, Style
from train.services.errors import TrainError

TASK_ID_RE = re.compile(r"^([A-Za-z]{2,10}-\d{5,6})\b")

_TASKS_DIVIDER = "-" * 30
_STATS_DIVIDER = "-" * 50


def notes_filename(version: int) -> str:
    return f"release-notes-{version}.txt"


def extract_task_id(message: str) -> str | None:
    """Task id at the very start of a commit subject, if any."""
    m = TASK_ID_RE.match(message)
    return m.group(1) if m else None


def task_ids(commits: Iterable[CommitInfo]) -> list[str]:
    """Task ids in commit order; commits without one are skipped."""
    return [tid for c in commits if (tid := extract_task_id(c.message)) is not None]


@dataclass(frozen=True, slots=True)
class ServiceTasks:
    """Per-service result of the commit range comparison."""

    service: str
    marker: str
    commits: int
    tasks: int
    between: frozenset[str]
    in_previous: frozenset[str]


@dataclass(frozen=True, slots=True)
class ReleaseNotes:
    path: Path
    lineage: str | None
    delta: tuple[str, ...]
    services: tuple[ServiceTasks, ...]


def _vcs_error(error: GitError) -> TrainError:
    return TrainError(kind="vcs", message=f"git {error.command} failed", hint=error.message)


def resolve_previous_lineage(repo: Repository, version: int) -> Result[str, TrainError]:
    """Name of the previous release branch on origin (either naming form)."""
    previous = version - 1
    if previous < 1:
        return Err(
            TrainError(
                kind="not_found",
                message=f"no previous release possible for version {version}",
            )
        )
    branch = find_remote_release_branch(repo, previous)
    if branch is None:
        return Err(
            TrainError(
                kind="not_found",
                message=(
                    f"previous release branch release-{previous} "
                    f"or release/{previous} not found"
                ),
            )
        )
    return Ok(branch)


def find_marker(repo: Repository, lineage: str) -> Result[str, GitError]:
    """Latest release tag on the lineage, else the lineage branch itself."""
    lineage_ref = remote_ref(lineage)
    tags: set[str] = set()
    for pattern in RELEASE_TAG_PATTERNS:
        result = repo.tags_merged_into(lineage_ref, pattern)
        if isinstance(result, Err):
            return result
        tags.update(result.value)
    if not tags:
        return Ok(lineage_ref)
    return Ok(max(tags))


def collect_service(
    service: str,
    repo: Repository,
    lineage: str,
    trunk: str,
) -> Result[ServiceTasks, TrainError]:
    """Compare the new commit range of one service with its previous release."""
    branch_point = repo.merge_base(remote_ref(lineage), remote_ref(trunk))
    if isinstance(branch_point, Err):
        return Err(_vcs_error(branch_point.error).for_service(service))

    marker = find_marker(repo, lineage)
    if isinstance(marker, Err):
        return Err(_vcs_error(marker.error).for_service(service))

    marker_commit = repo.resolve_commit(marker.value)
    if isinstance(marker_commit, Err):
        return Err(_vcs_error(marker_commit.error).for_service(service))

    between = repo.commits_between(marker_commit.value, "HEAD")
    if isinstance(between, Err):
        return Err(_vcs_error(between.error).for_service(service))

    in_previous = repo.commits_between(branch_point.value, marker_commit.value)
    if isinstance(in_previous, Err):
        return Err(_vcs_error(in_previous.error).for_service(service))

    between_ids = task_ids(between.value)
    return Ok(
        ServiceTasks(
            service=service,
            marker=marker.value,
            commits=len(between.value),
            tasks=len(between_ids),
            between=frozenset(between_ids),
            in_previous=frozenset(task_ids(in_previous.value)),
        )
    )


def reduce_tasks(results: Iterable[ServiceTasks]) -> tuple[set[str], set[str], list[str]]:
    """Merge per-service task sets.

    Returns:
        (between, in_previous, delta) where delta = between - in_previous, sorted
    """
    between: set[str] = set()
    in_previous: set[str] = set()
    for r in results:
        between |= r.between
        in_previous |= r.in_previous
    return between, in_previous, sorted(between - in_previous)


def _title(version: int) -> list[str]:
    title = f"Release Notes for Version {version}"
    return [title, "=" * len(title), ""]


def render_missing_lineage(version: int) -> str:
    lines = _title(version)
    lines.append("No previous release branch found to compare against.")
    return "\n".join(lines) + "\n"


def render_notes(
    version: int,
    lineage: str,
    delta: list[str],
    services: Iterable[ServiceTasks],
    url_prefix: str = "",
) -> str:
    lines = _title(version)
    lines += [f"Comparing with previous release branch: {lineage}", ""]

    if delta:
        lines += ["Tasks included in this release:", _TASKS_DIVIDER, ""]
        lines += [f"{url_prefix}{task}" for task in delta]
        lines += ["", f"Total new tasks: {len(delta)}"]
    else:
        lines.append("No new tasks with IDs found in commit messages.")

    lines += ["", "", "Service Statistics:", _STATS_DIVIDER]
    lines.append(f"{'Service':<30} {'Last Tag':<20} Stats")
    lines.append(_STATS_DIVIDER)
    for s in sorted(services, key=lambda s: s.service):
        lines.append(f"{s.service:<30} {s.marker:<20} {s.commits} commits, {s.tasks} tasks")

    return "\n".join(lines) + "\n"


def _write(path: Path, content: str) -> Result[Path, TrainError]:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8", newline="\n")
    except OSError as e:
        return Err(TrainError(kind="io", message=f"failed to write {path}", hint=str(e)))
    return Ok(path)


def _print_ids(console: ConsoleProtocol, label: str, ids: Iterable[str]) -> None:
    ordered = sorted(ids)
    console.info(f"{label}: {len(ordered)}")
    for task in ordered:
        console.print(f"  {task}", Style.DIM)


def synthesize(
    services: Mapping[str, Path],
    version: int,
    *,
    url_prefix: str = "",
    trunk: str = "develop",
    out_dir: Path,
    console: ConsoleProtocol,
) -> Result[ReleaseNotes, TrainError]:
    """Write release-notes-<version>.txt for the given services.

    The previous lineage is looked up in the first service. Services whose
    history cannot be compared are reported as warnings and left out.
    """
    if not services:
        return Err(TrainError(kind="validation", message="no services to compare"))

    path = out_dir / notes_filename(version)
    first = next(iter(services.values()))

    match resolve_previous_lineage(Repository(first), version):
        case Err(e):
            console.warning(f"Could not find previous release branch: {e.message}")
            console.print("Writing release notes without a task list", Style.DIM)
            written = _write(path, render_missing_lineage(version))
            if isinstance(written, Err):
                return written
            return Ok(ReleaseNotes(path=path, lineage=None, delta=(), services=()))
        case Ok(lineage):
            pass

    console.info(f"Previous release branch: {lineage}")

    collected: list[ServiceTasks] = []
    for name, directory in services.items():
        match collect_service(name, Repository(directory), lineage, trunk):
            case Ok(tasks):
                console.print(
                    f"  {name}: {tasks.commits} commits, {tasks.tasks} with task ids "
                    f"(since {tasks.marker})",
                    Style.DIM,
                )
                collected.append(tasks)
            case Err(e):
                detail = f": {e.hint.strip()}" if e.hint else ""
                console.warning(f"{name}: {e.message}{detail}; skipped")

    between, in_previous, delta = reduce_tasks(collected)
    _print_ids(console, "Tasks between releases", between)
    _print_ids(console, "Tasks already in previous release", in_previous)
    _print_ids(console, "New tasks in this release", delta)

    written = _write(path, render_notes(version, lineage, delta, collected, url_prefix))
    if isinstance(written, Err):
        return written

    console.success(f"Release notes created: {path}")
    return Ok(
        ReleaseNotes(
            path=path,
            lineage=lineage,
            delta=tuple(delta),
            services=tuple(sorted(collected, key=lambda s: s.service)),
        )
    )
