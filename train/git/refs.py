"""Release branch and tag naming.

Release refs went through a naming migration: older lineages use a slash
(``release/11``, ``release/11.0``), newer ones a hyphen (``release-12``,
``release-12.0``). Everything that reads refs goes through this module and
tries both forms; everything that writes refs uses the hyphen form.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from train.git.repository import Repository

__all__ = [
    "RELEASE_TAG_PATTERNS",
    "find_remote_release_branch",
    "release_branch_name",
    "release_tag_name",
    "separator_variants",
]

_PREFIX = "release"
_SEPARATORS = ("-", "/")

RELEASE_TAG_PATTERNS = tuple(f"{_PREFIX}{sep}*" for sep in ("/", "-"))

REMOTE = "origin"


def release_branch_name(version: int) -> str:
    return f"{_PREFIX}-{version}"


def release_tag_name(version: int) -> str:
    return f"{_PREFIX}-{version}.0"


def separator_variants(name: str) -> tuple[str, ...]:
    """All spellings of a release ref, hyphen form first.

    Names outside the release namespace are returned unchanged.
    """
    for sep in _SEPARATORS:
        if name.startswith(_PREFIX + sep):
            rest = name[len(_PREFIX) + 1 :]
            return tuple(f"{_PREFIX}{s}{rest}" for s in _SEPARATORS)
    return (name,)


def remote_ref(branch: str) -> str:
    return f"{REMOTE}/{branch}"


def find_remote_release_branch(repo: Repository, version: int) -> str | None:
    """Find the remote release branch for a version under either naming form.

    Returns the branch name (without the remote prefix), or None.
    """
    for name in separator_variants(release_branch_name(version)):
        if repo.ref_exists(remote_ref(name)):
            return name
    return None
