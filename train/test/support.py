"""Test support: throwaway git repositories with an origin remote."""

from __future__ import annotations

import subprocess
from pathlib import Path


def git(cwd: Path, *args: str) -> str:
    proc = subprocess.run(
        ["git", *args],
        cwd=cwd,
        check=True,
        capture_output=True,
        text=True,
    )
    return proc.stdout


class GitRemoteRepo:
    """A working copy on `develop` whose origin is a local bare repository."""

    def __init__(self, root: Path, name: str) -> None:
        self.origin = root / f"{name}.git"
        self.path = root / name
        self.origin.mkdir(parents=True)
        git(self.origin, "init", "--bare", "-b", "develop")
        self.path.mkdir(parents=True)
        git(self.path, "init", "-b", "develop")
        git(self.path, "remote", "add", "origin", str(self.origin))

    def write(self, rel: str, content: str) -> Path:
        target = self.path / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        return target

    def commit(self, message: str, files: dict[str, str] | None = None) -> str:
        for rel, content in (files or {}).items():
            self.write(rel, content)
        git(self.path, "add", "-A")
        git(self.path, "commit", "--allow-empty", "-m", message)
        return git(self.path, "rev-parse", "HEAD").strip()

    def run(self, *args: str) -> str:
        return git(self.path, *args)

    def push_all(self) -> None:
        git(self.path, "push", "-u", "origin", "--all")
        git(self.path, "push", "origin", "--tags")
