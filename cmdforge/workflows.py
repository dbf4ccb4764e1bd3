"""
workflows.py

Responsibility: The fixed registry of cmdforge tasks.

Every task kind is listed once in `TaskKind`, with its prerequisites in
`PREREQUISITES` and its help text in `DESCRIPTIONS`. `build_graph` binds each
kind to an action closure over a `Workspace` (config plus collaborator
handles) and returns a validated `TaskGraph`. Composite workflows (`verify`,
`ci`, `package`, `publish`, `quick`) have no action; their prerequisite order
is the workflow. `preflight` checks what a run needs (test name, command to
run, version file) before the first task has side effects.
"""

from __future__ import annotations

import enum
import logging
import os
import shutil
from dataclasses import dataclass, field
from typing import Callable

from cmdforge.artifacts import ArtifactBuilder
from cmdforge.config import Config
from cmdforge.discovery import Target, discover_targets
from cmdforge.errors import ConfigurationError, FormatMismatch, LintFindings, TestFailure
from cmdforge.github_client import GitHubClient, ReleaseInfo
from cmdforge.release import ReleasePublisher, tag_name
from cmdforge.renderer import INFO_TEMPLATE, render_text
from cmdforge.tasks import Task, TaskGraph
from cmdforge.toolchain import TestReport, Toolchain
from cmdforge.vcs import VCS
from cmdforge.versioning import Level, VersionStore

logger = logging.getLogger(__name__)


class TaskKind(str, enum.Enum):
    DEPS = "deps"
    CLEAN = "clean"
    BUILD = "build"
    TEST = "test"
    TEST_VERBOSE = "test-verbose"
    TEST_SINGLE = "test-single"
    TEST_INTEGRATION = "test-integration"
    LINT = "lint"
    FORMAT = "format"
    FORMAT_CHECK = "format-check"
    CHECK_TYPES = "check-types"
    VERIFY = "verify"
    PACKAGE = "package"
    CI = "ci"
    VERSION = "version"
    MICRO = "micro+"
    MINOR = "minor+"
    MAJOR = "major+"
    RELEASE = "release"
    JUST_PUBLISH = "just-publish"
    PUBLISH = "publish"
    GITHUB_RELEASE = "github-release"
    INFO = "info"
    QUICK = "quick"
    RUN = "run"


PREREQUISITES: dict[TaskKind, tuple[TaskKind, ...]] = {
    TaskKind.VERIFY: (TaskKind.CHECK_TYPES, TaskKind.TEST, TaskKind.LINT),
    TaskKind.PACKAGE: (TaskKind.BUILD,),
    TaskKind.CI: (TaskKind.CLEAN, TaskKind.LINT, TaskKind.CHECK_TYPES, TaskKind.TEST, TaskKind.PACKAGE),
    TaskKind.PUBLISH: (TaskKind.CLEAN, TaskKind.BUILD, TaskKind.RELEASE, TaskKind.JUST_PUBLISH),
    TaskKind.QUICK: (TaskKind.BUILD, TaskKind.TEST),
}

DESCRIPTIONS: dict[TaskKind, str] = {
    TaskKind.DEPS: "Install/update dependencies",
    TaskKind.CLEAN: "Clean build artifacts",
    TaskKind.BUILD: "Full build (builds all binaries in the command root)",
    TaskKind.TEST: "Run all tests with race detection and coverage",
    TaskKind.TEST_VERBOSE: "Run tests with verbose output",
    TaskKind.TEST_SINGLE: "Run a single test (usage: cmdforge test-single TestName)",
    TaskKind.TEST_INTEGRATION: "Run integration tests",
    TaskKind.LINT: "Run code quality checks",
    TaskKind.FORMAT: "Format code",
    TaskKind.FORMAT_CHECK: "Check if code is properly formatted",
    TaskKind.CHECK_TYPES: "Validate types and compilation",
    TaskKind.VERIFY: "Run full verification (check-types, test, lint)",
    TaskKind.PACKAGE: "Create package (build all binaries)",
    TaskKind.CI: "CI pipeline (clean, lint, check-types, test, package)",
    TaskKind.VERSION: "Show current project version",
    TaskKind.MICRO: "Increment micro/patch version (x.y.z -> x.y.z+1)",
    TaskKind.MINOR: "Increment minor version (x.y.z -> x.y+1.0)",
    TaskKind.MAJOR: "Increment major version (x.y.z -> x+1.0.0)",
    TaskKind.RELEASE: "Create and tag release version",
    TaskKind.JUST_PUBLISH: "Push changes and tags to the remote",
    TaskKind.PUBLISH: "Full publish workflow (clean, build, release, just-publish)",
    TaskKind.GITHUB_RELEASE: "Create a GitHub release for the current version tag",
    TaskKind.INFO: "Show project information",
    TaskKind.QUICK: "Quick build and test",
    TaskKind.RUN: "Run a command from source (usage: cmdforge run NAME [ARGS...])",
}

ALIASES: dict[str, TaskKind] = {
    "check": TaskKind.VERIFY,
    "all": TaskKind.CI,
    "dev": TaskKind.QUICK,
    "dev-setup": TaskKind.DEPS,
}


def resolve_task_name(name: str) -> TaskKind:
    if name in ALIASES:
        return ALIASES[name]
    try:
        return TaskKind(name)
    except ValueError as e:
        raise ConfigurationError(f"Unknown task: {name}") from e


@dataclass
class Workspace:
    """
    Everything a task action may touch, passed explicitly.
    """

    config: Config
    toolchain: Toolchain
    vcs: VCS
    emit: Callable[[str], None] = print
    test_name: str | None = None
    run_target: str | None = None
    run_args: tuple[str, ...] = ()
    github_token: str | None = None
    github_factory: Callable[..., GitHubClient] = field(default=GitHubClient)

    @property
    def versions(self) -> VersionStore:
        return VersionStore(self.config.version_file)

    @property
    def publisher(self) -> ReleasePublisher:
        return ReleasePublisher(self.vcs, self.config)


def _check_tests(report: TestReport, what: str) -> None:
    if not report.passed:
        raise TestFailure(f"{what} failed\n{report.output}".rstrip())


def _clean(ws: Workspace) -> None:
    if ws.config.bin_dir.exists():
        shutil.rmtree(ws.config.bin_dir)
    if ws.config.coverage_file.exists():
        os.remove(ws.config.coverage_file)
    logger.info("Removed %s and %s", ws.config.bin_dir, ws.config.coverage_file)


def _build(ws: Workspace) -> None:
    targets = discover_targets(ws.config)
    if not targets:
        logger.warning("No command entry points found under %s", ws.config.cmd_root)
        return
    builder = ArtifactBuilder(ws.toolchain, ws.config.bin_dir, jobs=ws.config.jobs)
    report = builder.build_all(targets)
    for result in report.results:
        if result.ok:
            ws.emit(f"Built {result.target.artifact_path}")
        else:
            ws.emit(f"FAILED {result.target.name}: {result.error.underlying_error}")
    report.raise_for_failures()


def _test(ws: Workspace) -> None:
    report = ws.toolchain.run_tests("./...", race=True, coverage_file=ws.config.coverage_file)
    _check_tests(report, "Tests")
    if report.coverage is not None:
        ws.emit(f"total coverage: {report.coverage:.1f}%")


def _test_verbose(ws: Workspace) -> None:
    report = ws.toolchain.run_tests("./...", verbose=True, race=True)
    ws.emit(report.output.rstrip())
    _check_tests(report, "Verbose tests")


def _test_single(ws: Workspace) -> None:
    if not ws.test_name:
        raise ConfigurationError("Please specify a test name: cmdforge test-single TestName (or TEST=TestName)")
    report = ws.toolchain.run_tests("./...", verbose=True, race=True, run=ws.test_name)
    ws.emit(report.output.rstrip())
    _check_tests(report, f"Test {ws.test_name}")


def _test_integration(ws: Workspace) -> None:
    report = ws.toolchain.run_tests("./tests/integration/...", verbose=True, race=False, tags=("integration",))
    ws.emit(report.output.rstrip())
    _check_tests(report, "Integration tests")


def _resolve_run_target(ws: Workspace) -> Target:
    if not ws.run_target:
        raise ConfigurationError("Please specify a command to run: cmdforge run NAME [ARGS...]")
    for target in discover_targets(ws.config):
        if target.name == ws.run_target:
            return target
    raise ConfigurationError(f"No command named {ws.run_target!r} under {ws.config.cmd_root}")


def _run_target(ws: Workspace) -> None:
    target = _resolve_run_target(ws)
    ws.toolchain.run_program(target.entry_path, ws.run_args)


def _lint(ws: Workspace) -> None:
    findings = ws.toolchain.lint("./...")
    if findings:
        raise LintFindings(findings)


def _format_check(ws: Workspace) -> None:
    files = ws.toolchain.check_format(".")
    if files:
        raise FormatMismatch(files)


def _bump(level: Level) -> Callable[[Workspace], None]:
    def action(ws: Workspace) -> None:
        new = ws.versions.bump(level)
        ws.emit(f"Version updated to: {new}")

    return action


def _release(ws: Workspace) -> None:
    tag = ws.publisher.release(ws.versions.read())
    ws.emit(f"Tagged release {tag.name}")


def _github_configured(ws: Workspace) -> bool:
    if not ws.config.github.enabled:
        logger.warning("github.owner and github.repo are not configured; skipping GitHub release")
        return False
    return True


def _github_release(ws: Workspace) -> ReleaseInfo:
    gh_config = ws.config.github
    token = ws.github_token or os.environ.get("GITHUB_TOKEN") or ""
    if not token:
        raise ConfigurationError("GitHub token is required (set GITHUB_TOKEN)")

    version = ws.versions.read()
    name = tag_name(ws.config, version)
    client = ws.github_factory(token, api_base=gh_config.api_base)
    existing = client.get_release_by_tag(gh_config.owner, gh_config.repo, name)
    if existing is not None:
        ws.emit(f"GitHub release already exists: {existing.html_url}")
        return existing

    body = render_text(ws.config.tag_message, {"version": str(version), "tag": name})
    created = client.create_release(owner=gh_config.owner, repo=gh_config.repo, tag=name, name=name, body=body)
    ws.emit(f"Created GitHub release {created.html_url}")
    return created


def _info(ws: Workspace) -> None:
    context = {
        "project_name": ws.config.project_name,
        "description": ws.config.description,
        "project_dir": ws.config.project_dir,
        "version": ws.versions.read(),
        "bin_dir": ws.config.bin_dir,
        "targets": [t.name for t in discover_targets(ws.config)],
    }
    ws.emit(render_text(INFO_TEMPLATE, context).rstrip())


ACTIONS: dict[TaskKind, Callable[[Workspace], object]] = {
    TaskKind.DEPS: lambda ws: ws.toolchain.download_deps(),
    TaskKind.CLEAN: _clean,
    TaskKind.BUILD: _build,
    TaskKind.TEST: _test,
    TaskKind.TEST_VERBOSE: _test_verbose,
    TaskKind.TEST_SINGLE: _test_single,
    TaskKind.TEST_INTEGRATION: _test_integration,
    TaskKind.LINT: _lint,
    TaskKind.FORMAT: lambda ws: ws.toolchain.apply_format("."),
    TaskKind.FORMAT_CHECK: _format_check,
    TaskKind.CHECK_TYPES: lambda ws: ws.toolchain.check_types("./..."),
    TaskKind.VERSION: lambda ws: ws.emit(str(ws.versions.read())),
    TaskKind.MICRO: _bump(Level.MICRO),
    TaskKind.MINOR: _bump(Level.MINOR),
    TaskKind.MAJOR: _bump(Level.MAJOR),
    TaskKind.RELEASE: _release,
    TaskKind.JUST_PUBLISH: lambda ws: ws.publisher.publish(),
    TaskKind.GITHUB_RELEASE: _github_release,
    TaskKind.INFO: _info,
    TaskKind.RUN: _run_target,
}


def _bind(action: Callable[[Workspace], object], ws: Workspace) -> Callable[[], object]:
    return lambda: action(ws)


def build_graph(ws: Workspace) -> TaskGraph:
    tasks = []
    for kind in TaskKind:
        action = ACTIONS.get(kind)
        condition = _bind(_github_configured, ws) if kind is TaskKind.GITHUB_RELEASE else None
        tasks.append(
            Task(
                name=kind.value,
                prerequisites=tuple(p.value for p in PREREQUISITES.get(kind, ())),
                action=_bind(action, ws) if action is not None else None,
                description=DESCRIPTIONS[kind],
                condition=condition,
            )
        )
    return TaskGraph(tasks)


_VERSION_READERS = {
    TaskKind.VERSION,
    TaskKind.MICRO,
    TaskKind.MINOR,
    TaskKind.MAJOR,
    TaskKind.RELEASE,
    TaskKind.GITHUB_RELEASE,
    TaskKind.INFO,
}


def preflight(graph: TaskGraph, ws: Workspace, kind: TaskKind) -> None:
    """
    Check the inputs a run of `kind` depends on before any task has side
    effects: the test name, the command to run and the version file.
    """
    closure = {TaskKind(name) for name in graph.closure(kind.value)}
    if TaskKind.TEST_SINGLE in closure and not ws.test_name:
        raise ConfigurationError("Please specify a test name: cmdforge test-single TestName (or TEST=TestName)")
    if TaskKind.RUN in closure:
        _resolve_run_target(ws)
    if closure & _VERSION_READERS:
        ws.versions.read()
