"""
toolchain.py

Responsibility: Isolate every invocation of the language toolchain.

This module must be the only place that:
- Builds `go`, `gofmt`, `goimports` and `golangci-lint` command lines
- Runs them as subprocesses
- Interprets their output (coverage totals, unformatted file lists, findings)

The rest of cmdforge only sees the narrow protocols below, so task
sequencing can be exercised with fake collaborators.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Sequence

from cmdforge import process
from cmdforge.errors import CommandError, CompileError

logger = logging.getLogger(__name__)

_COVERAGE_TOTAL = re.compile(r"^total:.*?(\d+(?:\.\d+)?)%\s*$", re.MULTILINE)


@dataclass(frozen=True)
class TestReport:
    __test__ = False

    passed: bool
    output: str = ""
    coverage: float | None = None


class Compiler(Protocol):
    def compile(self, entry_path: Path, output_path: Path) -> None: ...


class TestRunner(Protocol):
    __test__ = False

    def run_tests(
        self,
        scope: str = "./...",
        *,
        verbose: bool = False,
        race: bool = True,
        run: str | None = None,
        coverage_file: Path | None = None,
        tags: Sequence[str] = (),
    ) -> TestReport: ...


class Linter(Protocol):
    def lint(self, scope: str = "./...") -> list[str]: ...

    def check_format(self, scope: str = ".") -> list[str]: ...

    def apply_format(self, scope: str = ".") -> None: ...

    def check_types(self, scope: str = "./...") -> None: ...


class Toolchain(Compiler, TestRunner, Linter, Protocol):
    def download_deps(self) -> None: ...

    def run_program(self, entry_path: Path, args: Sequence[str] = ()) -> None: ...


def parse_coverage_total(text: str) -> float | None:
    """
    Extract the total percentage from `go tool cover -func` output.
    """
    matches = _COVERAGE_TOTAL.findall(text)
    if not matches:
        return None
    return float(matches[-1])


class GoToolchain:
    """
    Compiler, TestRunner and Linter for a Go module rooted at `project_dir`.
    """

    def __init__(self, project_dir: Path, go: str = "go") -> None:
        self._project_dir = Path(project_dir)
        self._go = go

    def _package_arg(self, package_dir: Path) -> str:
        rel = os.path.relpath(package_dir, self._project_dir).replace(os.sep, "/")
        return f"./{rel}/"

    def compile(self, entry_path: Path, output_path: Path) -> None:
        cmd = [self._go, "build", "-o", str(output_path), self._package_arg(entry_path.parent)]
        try:
            process.run(cmd, cwd=self._project_dir)
        except CommandError as e:
            raise CompileError(str(e)) from e

    def check_types(self, scope: str = "./...") -> None:
        try:
            process.run([self._go, "build", "-o", os.devnull, scope], cwd=self._project_dir)
        except CommandError as e:
            raise CompileError(str(e)) from e

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
        cmd = [self._go, "test"]
        if tags:
            cmd.append(f"-tags={','.join(tags)}")
        if verbose:
            cmd.append("-v")
        if race:
            cmd.append("-race")
        if run:
            cmd += ["-run", run]
        if coverage_file is not None:
            cmd += [f"-coverprofile={coverage_file}", "-covermode=atomic"]
        cmd.append(scope)

        try:
            output = process.run(cmd, cwd=self._project_dir)
        except CommandError as e:
            return TestReport(passed=False, output=e.output)

        coverage = None
        if coverage_file is not None and Path(coverage_file).exists():
            summary = process.run([self._go, "tool", "cover", f"-func={coverage_file}"], cwd=self._project_dir)
            coverage = parse_coverage_total(summary)
        return TestReport(passed=True, output=output, coverage=coverage)

    def lint(self, scope: str = "./...") -> list[str]:
        if shutil.which("golangci-lint") is None:
            logger.warning("golangci-lint not found. Install with: brew install golangci-lint")
            return []
        try:
            process.run(["golangci-lint", "run", scope], cwd=self._project_dir)
        except CommandError as e:
            findings = [line for line in e.output.splitlines() if line.strip()]
            return findings or [str(e)]
        return []

    def check_format(self, scope: str = ".") -> list[str]:
        output = process.run(["gofmt", "-l", scope], cwd=self._project_dir)
        return [line.strip() for line in output.splitlines() if line.strip()]

    def apply_format(self, scope: str = ".") -> None:
        process.run([self._go, "fmt", "./..."], cwd=self._project_dir)
        if shutil.which("goimports") is None:
            logger.warning("goimports not found. Install with: go install golang.org/x/tools/cmd/goimports@latest")
            return
        process.run(["goimports", "-w", scope], cwd=self._project_dir)

    def download_deps(self) -> None:
        process.run([self._go, "mod", "download"], cwd=self._project_dir)
        process.run([self._go, "mod", "tidy"], cwd=self._project_dir)

    def run_program(self, entry_path: Path, args: Sequence[str] = ()) -> None:
        """
        `go run` a command in the foreground, attached to the terminal.
        """
        process.run_interactive([self._go, "run", self._package_arg(entry_path.parent), *args], cwd=self._project_dir)
