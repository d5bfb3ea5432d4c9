from __future__ import annotations

import shutil
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from train.test.support import GitRemoteRepo


@pytest.fixture
def git_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Isolate git from the user's configuration and fix the commit identity."""
    if shutil.which("git") is None:
        pytest.skip("git not installed")
    global_config = tmp_path / "gitconfig"
    global_config.write_text("", encoding="utf-8")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(global_config))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Release Bot")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "release@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Release Bot")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "release@example.com")
    monkeypatch.setenv("GIT_TERMINAL_PROMPT", "0")
    yield tmp_path


@pytest.fixture
def make_repo(git_env: Path) -> Callable[[str], GitRemoteRepo]:
    """Factory: make_repo("proezd-api") -> GitRemoteRepo under <tmp>/work."""

    def _make(name: str) -> GitRemoteRepo:
        return GitRemoteRepo(git_env / "work", name)

    return _make
