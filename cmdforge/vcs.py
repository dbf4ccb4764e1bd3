"""
vcs.py

Responsibility: Isolate all git command-line interaction.

This module must be the only place that builds `git` command lines. The
release publisher talks to the `VCS` protocol, so the publish ordering rules
can be checked against a fake.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Protocol

from cmdforge import process
from cmdforge.errors import CommandError, TagFailure, VCSFailure

logger = logging.getLogger(__name__)


class VCS(Protocol):
    def head(self) -> str: ...

    def tag_exists(self, name: str) -> bool: ...

    def tag(self, name: str, message: str) -> None: ...

    def pull(self, remote: str, branch: str, *, rebase: bool = True) -> None: ...

    def abort_rebase(self) -> None: ...

    def push(self, remote: str, branch: str, *, tags: bool = False) -> None: ...


class Git:
    def __init__(self, repo_dir: Path, env: dict[str, str] | None = None) -> None:
        self._repo_dir = Path(repo_dir)
        self._env = env

    def _git(self, *args: str) -> str:
        return process.run(["git", *args], cwd=self._repo_dir, env=self._env)

    def head(self) -> str:
        try:
            return self._git("rev-parse", "HEAD").strip()
        except CommandError as e:
            raise VCSFailure(f"Cannot resolve HEAD in {self._repo_dir}") from e

    def tag_exists(self, name: str) -> bool:
        try:
            self._git("rev-parse", "-q", "--verify", f"refs/tags/{name}")
        except CommandError:
            return False
        return True

    def tag(self, name: str, message: str) -> None:
        try:
            self._git("tag", "-a", name, "-m", message)
        except CommandError as e:
            raise TagFailure(f"Could not create tag {name}: {e.output.strip()}") from e

    def pull(self, remote: str, branch: str, *, rebase: bool = True) -> None:
        args = ["pull", remote, branch]
        if rebase:
            args.append("--rebase")
        try:
            self._git(*args)
        except CommandError as e:
            raise VCSFailure(f"git pull from {remote}/{branch} failed:\n{e.output.strip()}") from e

    def rebase_in_progress(self) -> bool:
        for marker in ("rebase-merge", "rebase-apply"):
            path = Path(self._git("rev-parse", "--git-path", marker).strip())
            if not path.is_absolute():
                path = self._repo_dir / path
            if os.path.exists(path):
                return True
        return False

    def abort_rebase(self) -> None:
        if not self.rebase_in_progress():
            return
        try:
            self._git("rebase", "--abort")
        except CommandError as e:
            raise VCSFailure(f"git rebase --abort failed; resolve {self._repo_dir} by hand:\n{e.output.strip()}") from e

    def push(self, remote: str, branch: str, *, tags: bool = False) -> None:
        args = ["push", remote, branch]
        if tags:
            args.append("--tags")
        try:
            self._git(*args)
        except CommandError as e:
            raise VCSFailure(f"git push to {remote}/{branch} rejected:\n{e.output.strip()}") from e
