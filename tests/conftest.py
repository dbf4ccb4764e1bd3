from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Sequence

import pytest

from cmdforge.config import Config, parse_config
from cmdforge.errors import CompileError, TagFailure, VCSFailure
from cmdforge.toolchain import TestReport
from cmdforge.workflows import Workspace


def run_cmd(args: list[str], cwd: Path, expect_code: int = 0) -> subprocess.CompletedProcess[str]:
    proc = subprocess.run(args, cwd=str(cwd), text=True, capture_output=True, check=False)
    if proc.returncode != expect_code:
        raise AssertionError(
            f"command failed\ncwd={cwd}\nargs={args}\n"
            f"expected={expect_code} got={proc.returncode}\n"
            f"stdout:\n{proc.stdout}\n\nstderr:\n{proc.stderr}"
        )
    return proc


def init_git_repo(path: Path) -> None:
    run_cmd(["git", "init"], cwd=path)
    run_cmd(["git", "checkout", "-B", "main"], cwd=path)
    configure_git_user(path)


def configure_git_user(path: Path) -> None:
    run_cmd(["git", "config", "user.email", "test@example.com"], cwd=path)
    run_cmd(["git", "config", "user.name", "Cmdforge Test"], cwd=path)
    run_cmd(["git", "config", "commit.gpgsign", "false"], cwd=path)
    run_cmd(["git", "config", "tag.gpgsign", "false"], cwd=path)


def commit_file(repo: Path, name: str, content: str, message: str) -> None:
    (repo / name).write_text(content, encoding="utf-8")
    run_cmd(["git", "add", name], cwd=repo)
    run_cmd(["git", "commit", "-m", message], cwd=repo)


def make_commands(project_dir: Path, *names: str, entry_file: str = "main.go") -> None:
    for name in names:
        d = project_dir / "cmd" / name
        d.mkdir(parents=True, exist_ok=True)
        (d / entry_file).write_text("package main\n\nfunc main() {}\n", encoding="utf-8")


class FakeToolchain:
    """
    Records every call; compile writes a small file so artifacts can be checked.
    """

    def __init__(
        self,
        *,
        fail_compile: Sequence[str] = (),
        test_report: TestReport | None = None,
        findings: Sequence[str] = (),
        unformatted: Sequence[str] = (),
        types_error: Exception | None = None,
    ) -> None:
        self.fail_compile = set(fail_compile)
        self.test_report = test_report or TestReport(passed=True, output="ok", coverage=81.5)
        self.findings = list(findings)
        self.unformatted = list(unformatted)
        self.types_error = types_error
        self.calls: list[tuple] = []

    def compile(self, entry_path: Path, output_path: Path) -> None:
        name = entry_path.parent.name
        self.calls.append(("compile", name))
        if name in self.fail_compile:
            raise CompileError(f"cmd/{name}/main.go:1: syntax error")
        Path(output_path).write_text(f"binary:{name}", encoding="utf-8")

    def run_tests(
        self,
        scope: str = "./...",
        *,
        verbose: bool = False,
        race: bool = True,
        run: str | None = None,
        coverage_file: Path | None = None,
        tags: Sequence[str] = (),
    ) -> TestReport:
        self.calls.append(("test", scope, run, tuple(tags)))
        return self.test_report

    def lint(self, scope: str = "./...") -> list[str]:
        self.calls.append(("lint", scope))
        return list(self.findings)

    def check_format(self, scope: str = ".") -> list[str]:
        self.calls.append(("format-check", scope))
        return list(self.unformatted)

    def apply_format(self, scope: str = ".") -> None:
        self.calls.append(("format", scope))

    def check_types(self, scope: str = "./...") -> None:
        self.calls.append(("check-types", scope))
        if self.types_error is not None:
            raise self.types_error

    def download_deps(self) -> None:
        self.calls.append(("deps",))

    def run_program(self, entry_path: Path, args: Sequence[str] = ()) -> None:
        self.calls.append(("run", entry_path.parent.name, tuple(args)))

    def names(self) -> list[str]:
        return [c[0] for c in self.calls]


class FakeVCS:
    def __init__(self, *, pull_error: bool = False, push_error: bool = False, head: str = "0123456789abcdef") -> None:
        self.pull_error = pull_error
        self.push_error = push_error
        self._head = head
        self.tags: dict[str, str] = {}
        self.calls: list[tuple] = []

    def head(self) -> str:
        return self._head

    def tag_exists(self, name: str) -> bool:
        return name in self.tags

    def tag(self, name: str, message: str) -> None:
        self.calls.append(("tag", name))
        if name in self.tags:
            raise TagFailure(f"tag {name} exists")
        self.tags[name] = message

    def pull(self, remote: str, branch: str, *, rebase: bool = True) -> None:
        self.calls.append(("pull", remote, branch, rebase))
        if self.pull_error:
            raise VCSFailure("CONFLICT (content): Merge conflict in main.go")

    def abort_rebase(self) -> None:
        self.calls.append(("abort_rebase",))

    def push(self, remote: str, branch: str, *, tags: bool = False) -> None:
        self.calls.append(("push", remote, branch, tags))
        if self.push_error:
            raise VCSFailure("! [rejected] main -> main (fetch first)")

    def names(self) -> list[str]:
        return [c[0] for c in self.calls]


@pytest.fixture()
def config(tmp_path: Path) -> Config:
    return parse_config({}, tmp_path)


@pytest.fixture()
def toolchain() -> FakeToolchain:
    return FakeToolchain()


@pytest.fixture()
def vcs() -> FakeVCS:
    return FakeVCS()


@pytest.fixture()
def output() -> list[str]:
    return []


@pytest.fixture()
def workspace(config: Config, toolchain: FakeToolchain, vcs: FakeVCS, output: list[str]) -> Workspace:
    return Workspace(config=config, toolchain=toolchain, vcs=vcs, emit=output.append)
