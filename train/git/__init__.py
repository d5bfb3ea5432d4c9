"""Git operations module.

- Repository: single repository operations over the git CLI
- refs: release branch/tag naming, tolerant of both historical separators

Usage:
    from train.git import Repository, find_remote_release_branch

    repo = Repository(Path("/work/proezd-api"))
    previous = find_remote_release_branch(repo, 11)  # "release-11" or "release/11"
"""

from train.git.refs import (
    RELEASE_TAG_PATTERNS,
    find_remote_release_branch,
    release_branch_name,
    release_tag_name,
    remote_ref,
    separator_variants,
)
from train.git.repository import CommitInfo, GitError, Repository

__all__ = [
    # Repository
    "CommitInfo",
    "GitError",
    "Repository",
    # refs
    "RELEASE_TAG_PATTERNS",
    "find_remote_release_branch",
    "release_branch_name",
    "release_tag_name",
    "remote_ref",
    "separator_variants",
]
