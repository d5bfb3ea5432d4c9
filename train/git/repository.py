"""Git repository abstraction.

This module provides the Repository class for the single-repo git operations
the release train needs. All operations return Result types.

Usage:
    repo = Repository(Path("/work/proezd-api"))

    match repo.check_clean():
        case Ok(True):
            print("Working tree clean")
        case Ok(False):
            print(repo.status_text().unwrap_or(""))
        case Err(e):
            print(f"Error: {e.message}")
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from train.core.result import Err, Ok, Result
from train.git.refs import separator_variants
from train.platform.process import ProcessError
from train.platform.process import run as run_process

_GIT_TIMEOUT_SECONDS = 30.0
_GIT_NETWORK_TIMEOUT_SECONDS = 3 * 60.0
_NETWORK_COMMANDS = frozenset({"fetch", "pull", "push", "clone"})

# Separates hash and subject in `git log` output; cannot occur in a subject line.
_LOG_FIELD_SEP = "\x1f"

__all__ = [
    "CommitInfo",
    "GitError",
    "Repository",
]


@dataclass(frozen=True, slots=True)
class GitError:
    """Error from a git operation.

    Attributes:
        command: The git command that failed
        message: Error message (git's own diagnostic when available)
        returncode: Process return code
    """

    command: str
    message: str
    returncode: int = 1


@dataclass(frozen=True, slots=True)
class CommitInfo:
    """A commit as listed by `git log`: full hash and subject line."""

    sha: str
    message: str


class Repository:
    """Git repository abstraction.

    Attributes:
        path: Path to the repository root
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def exists(self) -> bool:
        """Check if this is a valid git repository (.git dir or worktree file)."""
        return (self.path / ".git").exists()

    # -- working tree -------------------------------------------------------

    def check_clean(self) -> Result[bool, GitError]:
        """Check whether tracked files match HEAD.

        Untracked files are ignored, matching what `git commit -a` would pick up.
        """
        # Refresh cached stat info first; non-zero here only means "changes exist".
        self._run(["update-index", "-q", "--refresh"])

        result = self._run(["diff-index", "--quiet", "HEAD", "--"])
        match result:
            case Ok(_):
                return Ok(True)
            case Err(e) if e.returncode == 1:
                return Ok(False)
            case Err(e):
                return Err(_git_error("diff-index", e))

    def status_text(self) -> Result[str, GitError]:
        """Human-readable `git status` output."""
        return self._simple(["status"])

    def reset_hard(self) -> Result[str, GitError]:
        """Discard changes to tracked files (`git reset --hard HEAD`)."""
        return self._simple(["reset", "--hard", "HEAD"])

    def diff(self) -> Result[str, GitError]:
        """Unstaged changes as a unified diff (empty string when none)."""
        return self._simple(["diff"])

    # -- branches, commits, tags --------------------------------------------

    def current_branch(self) -> str | None:
        """Get current branch name.

        Returns None if detached HEAD or error.
        """
        result = self._run(["rev-parse", "--abbrev-ref", "HEAD"])
        match result:
            case Ok(stdout):
                branch = stdout.strip()
                return None if branch == "HEAD" else branch
            case Err(_):
                return None

    def checkout(self, ref: str) -> Result[str, GitError]:
        return self._simple(["checkout", ref])

    def create_branch(self, name: str) -> Result[str, GitError]:
        """Create a branch at HEAD and switch to it (`git checkout -b`)."""
        return self._simple(["checkout", "-b", name])

    def pull(self) -> Result[str, GitError]:
        return self._simple(["pull"])

    def add_all(self) -> Result[str, GitError]:
        return self._simple(["add", "."])

    def commit(self, message: str) -> Result[str, GitError]:
        return self._simple(["commit", "-m", message])

    def tag(self, name: str) -> Result[str, GitError]:
        return self._simple(["tag", name])

    def push_with_tags(self) -> Result[str, GitError]:
        """Push the current branch with its tags, overwriting stale release refs."""
        return self._simple(["push", "-u", "origin", "HEAD", "--tags", "--force-with-lease"])

    def delete_branch_if_exists(self, name: str) -> None:
        """Delete a branch locally and on origin, under both release naming forms.

        Failures are ignored: the branch usually does not exist.
        """
        variants = separator_variants(name)
        for branch in variants:
            self._run(["branch", "-D", branch])
        for branch in variants:
            self._run(["push", "origin", "--delete", branch])

    def delete_tag_if_exists(self, name: str) -> None:
        """Delete a tag locally and on origin, under both release naming forms.

        Failures are ignored: the tag usually does not exist.
        """
        variants = separator_variants(name)
        for tag in variants:
            self._run(["tag", "-d", tag])
        for tag in variants:
            self._run(["push", "origin", f":refs/tags/{tag}"])

    # -- history queries ----------------------------------------------------

    def ref_exists(self, ref: str) -> bool:
        return isinstance(self._run(["rev-parse", "--verify", "--quiet", ref]), Ok)

    def resolve_commit(self, ref: str) -> Result[str, GitError]:
        """Resolve a branch, tag (annotated or not) or sha to a commit hash."""
        result = self._simple(["rev-list", "-n", "1", ref])
        if isinstance(result, Err):
            return result
        sha = result.value.strip()
        if not sha:
            return Err(GitError(command="rev-list", message=f"no commit for {ref}"))
        return Ok(sha)

    def merge_base(self, a: str, b: str) -> Result[str, GitError]:
        result = self._simple(["merge-base", a, b])
        if isinstance(result, Err):
            return result
        return Ok(result.value.strip())

    def tags_merged_into(self, ref: str, pattern: str) -> Result[list[str], GitError]:
        """Tags matching a glob pattern that are reachable from ref."""
        result = self._simple(["tag", "--merged", ref, pattern])
        if isinstance(result, Err):
            return result
        return Ok([ln.strip() for ln in result.value.splitlines() if ln.strip()])

    def commits_between(self, from_ref: str, to_ref: str) -> Result[list[CommitInfo], GitError]:
        """Commits in (from_ref, to_ref], newest first."""
        result = self._simple(
            ["log", f"--pretty=format:%H{_LOG_FIELD_SEP}%s", f"{from_ref}..{to_ref}"]
        )
        if isinstance(result, Err):
            return result

        commits: list[CommitInfo] = []
        for line in result.value.splitlines():
            if _LOG_FIELD_SEP not in line:
                continue
            sha, message = line.split(_LOG_FIELD_SEP, 1)
            commits.append(CommitInfo(sha=sha.strip(), message=message))
        return Ok(commits)

    # -- plumbing -----------------------------------------------------------

    def _simple(self, args: list[str]) -> Result[str, GitError]:
        result = self._run(args)
        if isinstance(result, Err):
            return Err(_git_error(args[0], result.error))
        return Ok(result.value)

    def _run(self, args: list[str]) -> Result[str, ProcessError]:
        """Run a git command in this repository."""
        command = args[0] if args else ""
        timeout = (
            _GIT_NETWORK_TIMEOUT_SECONDS if command in _NETWORK_COMMANDS else _GIT_TIMEOUT_SECONDS
        )
        return run_process(["git", "-C", str(self.path), *args], cwd=self.path, timeout=timeout)


def _git_error(command: str, error: ProcessError) -> GitError:
    return GitError(
        command=command,
        message=error.stderr.strip() or error.stdout.strip() or f"git {command} failed",
        returncode=error.returncode,
    )
