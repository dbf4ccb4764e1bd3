from __future__ import annotations

from pathlib import Path

import pytest

from conftest import FakeToolchain, FakeVCS, make_commands

from cmdforge.config import Config, parse_config
from cmdforge.errors import (
    AggregateBuildFailure,
    ConfigurationError,
    FormatMismatch,
    LintFindings,
    TagFailure,
    TestFailure,
    VCSFailure,
)
from cmdforge.github_client import ReleaseInfo
from cmdforge.tasks import Executor, TaskState
from cmdforge.toolchain import TestReport
from cmdforge.versioning import Version, VersionStore
from cmdforge.workflows import ALIASES, TaskKind, Workspace, build_graph, preflight, resolve_task_name


def run(ws: Workspace, name: str):
    return Executor(build_graph(ws)).run(resolve_task_name(name).value)


def test_registry_is_valid_and_complete(workspace: Workspace) -> None:
    graph = build_graph(workspace)
    assert set(graph) == {k.value for k in TaskKind}
    assert graph["verify"].prerequisites == ("check-types", "test", "lint")
    assert graph["ci"].prerequisites == ("clean", "lint", "check-types", "test", "package")
    assert graph["publish"].prerequisites == ("clean", "build", "release", "just-publish")
    assert graph["quick"].prerequisites == ("build", "test")
    assert all(graph[n].composite for n in ("verify", "ci", "publish", "package", "quick"))


def test_aliases_resolve() -> None:
    assert resolve_task_name("check") is TaskKind.VERIFY
    assert resolve_task_name("all") is TaskKind.CI
    assert resolve_task_name("dev") is TaskKind.QUICK
    assert resolve_task_name("dev-setup") is TaskKind.DEPS
    assert set(ALIASES) == {"check", "all", "dev", "dev-setup"}
    with pytest.raises(ConfigurationError):
        resolve_task_name("deploy")


def test_build_two_commands(workspace: Workspace, config: Config, tmp_path: Path, output: list[str]) -> None:
    make_commands(tmp_path, "a", "b")

    result = run(workspace, "build")

    assert result.ok
    assert sorted(p.name for p in config.bin_dir.iterdir()) == ["a", "b"]
    assert output == [f"Built {config.bin_dir / 'a'}", f"Built {config.bin_dir / 'b'}"]


def test_build_failure_still_attempts_other_targets(config: Config, tmp_path: Path, vcs: FakeVCS, output: list[str]) -> None:
    make_commands(tmp_path, "a", "b")
    toolchain = FakeToolchain(fail_compile=["a"])
    ws = Workspace(config=config, toolchain=toolchain, vcs=vcs, emit=output.append)

    result = run(ws, "build")

    assert not result.ok
    assert isinstance(result.error, AggregateBuildFailure)
    assert toolchain.calls == [("compile", "a"), ("compile", "b")]
    assert output[0].startswith("FAILED a:")
    assert output[1] == f"Built {config.bin_dir / 'b'}"
    assert [p.name for p in config.bin_dir.iterdir()] == ["b"]


def test_build_with_no_commands_succeeds(workspace: Workspace, toolchain: FakeToolchain) -> None:
    assert run(workspace, "build").ok
    assert toolchain.calls == []


def test_verify_runs_in_declared_order(workspace: Workspace, toolchain: FakeToolchain) -> None:
    result = run(workspace, "check")

    assert result.ok
    assert toolchain.names() == ["check-types", "test", "lint"]
    assert result.order == ["check-types", "test", "lint", "verify"]


def test_ci_cleans_then_gates_then_packages(workspace: Workspace, toolchain: FakeToolchain, config: Config, tmp_path: Path) -> None:
    make_commands(tmp_path, "a")
    config.bin_dir.mkdir()
    (config.bin_dir / "stale").write_text("old", encoding="utf-8")
    config.coverage_file.write_text("mode: atomic", encoding="utf-8")

    result = run(workspace, "all")

    assert result.ok
    assert result.order == ["clean", "lint", "check-types", "test", "build", "package", "ci"]
    assert toolchain.names() == ["lint", "check-types", "test", "compile"]
    assert sorted(p.name for p in config.bin_dir.iterdir()) == ["a"]
    assert not config.coverage_file.exists()


def test_ci_stops_at_first_failing_gate(config: Config, vcs: FakeVCS, tmp_path: Path) -> None:
    make_commands(tmp_path, "a")
    toolchain = FakeToolchain(findings=["main.go:3:1: unused variable x"])
    ws = Workspace(config=config, toolchain=toolchain, vcs=vcs, emit=lambda s: None)

    result = run(ws, "ci")

    assert isinstance(result.error, LintFindings)
    assert result.failed_task == "lint"
    assert toolchain.names() == ["lint"]
    for name in ("check-types", "test", "build", "package", "ci"):
        assert result.states[name] is TaskState.SKIPPED


def test_test_reports_coverage(workspace: Workspace, toolchain: FakeToolchain, output: list[str], config: Config) -> None:
    assert run(workspace, "test").ok
    assert toolchain.calls == [("test", "./...", None, ())]
    assert output == ["total coverage: 81.5%"]


def test_test_failure_fails_task(config: Config, vcs: FakeVCS) -> None:
    toolchain = FakeToolchain(test_report=TestReport(passed=False, output="--- FAIL: TestParse"))
    ws = Workspace(config=config, toolchain=toolchain, vcs=vcs, emit=lambda s: None)

    result = run(ws, "test")

    assert isinstance(result.error, TestFailure)
    assert "TestParse" in str(result.error)


def test_test_single_requires_a_name(workspace: Workspace, toolchain: FakeToolchain) -> None:
    result = run(workspace, "test-single")

    assert isinstance(result.error, ConfigurationError)
    assert toolchain.calls == []


def test_test_single_runs_named_test(workspace: Workspace, toolchain: FakeToolchain) -> None:
    workspace.test_name = "TestEval"
    assert run(workspace, "test-single").ok
    assert toolchain.calls == [("test", "./...", "TestEval", ())]


def test_integration_tests_use_build_tag(workspace: Workspace, toolchain: FakeToolchain) -> None:
    assert run(workspace, "test-integration").ok
    assert toolchain.calls == [("test", "./tests/integration/...", None, ("integration",))]


def test_format_check_reports_files(config: Config, vcs: FakeVCS) -> None:
    ws = Workspace(config=config, toolchain=FakeToolchain(unformatted=["cmd/a/main.go"]), vcs=vcs, emit=lambda s: None)

    result = run(ws, "format-check")

    assert isinstance(result.error, FormatMismatch)
    assert result.error.files == ["cmd/a/main.go"]


def test_format_and_deps_delegate(workspace: Workspace, toolchain: FakeToolchain) -> None:
    assert run(workspace, "format").ok
    assert run(workspace, "deps").ok
    assert toolchain.names() == ["format", "deps"]


def test_version_bumps_persist(workspace: Workspace, config: Config, output: list[str]) -> None:
    VersionStore(config.version_file).write(Version(1, 2, 3))

    assert run(workspace, "minor+").ok
    assert run(workspace, "micro+").ok
    assert run(workspace, "major+").ok
    assert run(workspace, "version").ok

    assert output == [
        "Version updated to: 1.3.0",
        "Version updated to: 1.3.1",
        "Version updated to: 2.0.0",
        "2.0.0",
    ]


def test_publish_sequence(workspace: Workspace, vcs: FakeVCS, config: Config, tmp_path: Path) -> None:
    make_commands(tmp_path, "a", "b")
    VersionStore(config.version_file).write(Version(0, 3, 0))

    result = run(workspace, "publish")

    assert result.ok
    assert result.order == ["clean", "build", "release", "just-publish", "publish"]
    assert vcs.tags == {"v0.3.0": "Release version 0.3.0"}
    assert vcs.names() == ["tag", "pull", "push", "push"]


def test_publish_twice_fails_on_duplicate_tag_before_pushing(workspace: Workspace, vcs: FakeVCS) -> None:
    assert run(workspace, "publish").ok
    vcs.calls.clear()

    result = run(workspace, "publish")

    assert isinstance(result.error, TagFailure)
    assert result.states["just-publish"] is TaskState.SKIPPED
    assert vcs.calls == []


def test_publish_with_build_failure_never_tags(config: Config, vcs: FakeVCS, tmp_path: Path) -> None:
    make_commands(tmp_path, "a")
    ws = Workspace(config=config, toolchain=FakeToolchain(fail_compile=["a"]), vcs=vcs, emit=lambda s: None)

    result = run(ws, "publish")

    assert result.failed_task == "build"
    assert vcs.calls == []


def test_just_publish_conflict_surfaces_vcs_failure(config: Config, toolchain: FakeToolchain) -> None:
    vcs = FakeVCS(pull_error=True)
    ws = Workspace(config=config, toolchain=toolchain, vcs=vcs, emit=lambda s: None)

    result = run(ws, "just-publish")

    assert isinstance(result.error, VCSFailure)
    assert "push" not in vcs.names()


def test_info_lists_targets(workspace: Workspace, output: list[str], tmp_path: Path) -> None:
    make_commands(tmp_path, "zylisp")
    assert run(workspace, "info").ok
    (text,) = output
    assert "Project: CLI tools (cli)" in text
    assert "Version: 0.0.0" in text
    assert "Targets: zylisp" in text


def test_github_release_skipped_when_unconfigured(workspace: Workspace) -> None:
    result = run(workspace, "github-release")
    assert result.ok
    assert result.states["github-release"] is TaskState.SKIPPED


class FakeGitHub:
    instances: list[FakeGitHub] = []

    def __init__(self, token: str, api_base: str = "") -> None:
        self.token = token
        self.api_base = api_base
        self.created: list[dict] = []
        self.existing: ReleaseInfo | None = None
        FakeGitHub.instances.append(self)

    def get_release_by_tag(self, owner: str, repo: str, tag: str) -> ReleaseInfo | None:
        return self.existing

    def create_release(self, **kwargs) -> ReleaseInfo:
        self.created.append(kwargs)
        return ReleaseInfo(id=1, tag_name=kwargs["tag"], name=kwargs["name"], html_url="https://github.example/r/1")


def test_github_release_creates_release_for_current_tag(tmp_path: Path, toolchain: FakeToolchain, vcs: FakeVCS) -> None:
    cfg = parse_config({"github": {"owner": "zylisp", "repo": "cli"}}, tmp_path)
    VersionStore(cfg.version_file).write(Version(1, 0, 0))
    FakeGitHub.instances.clear()
    ws = Workspace(config=cfg, toolchain=toolchain, vcs=vcs, emit=lambda s: None, github_token="t0k", github_factory=FakeGitHub)

    assert run(ws, "github-release").ok

    (client,) = FakeGitHub.instances
    assert client.token == "t0k"
    assert client.api_base == "https://api.github.com"
    assert client.created == [
        {"owner": "zylisp", "repo": "cli", "tag": "v1.0.0", "name": "v1.0.0", "body": "Release version 1.0.0"}
    ]


def test_github_release_requires_token(tmp_path: Path, toolchain: FakeToolchain, vcs: FakeVCS, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    cfg = parse_config({"github": {"owner": "zylisp", "repo": "cli"}}, tmp_path)
    ws = Workspace(config=cfg, toolchain=toolchain, vcs=vcs, emit=lambda s: None, github_factory=FakeGitHub)

    result = run(ws, "github-release")

    assert isinstance(result.error, ConfigurationError)


def test_quick_builds_then_tests(workspace: Workspace, toolchain: FakeToolchain, tmp_path: Path) -> None:
    make_commands(tmp_path, "a")

    result = run(workspace, "dev")

    assert result.ok
    assert result.order == ["build", "test", "quick"]
    assert toolchain.names() == ["compile", "test"]


def test_run_executes_named_command_with_arguments(config: Config, toolchain: FakeToolchain, vcs: FakeVCS, tmp_path: Path) -> None:
    make_commands(tmp_path, "repl", "server")
    ws = Workspace(config=config, toolchain=toolchain, vcs=vcs, run_target="repl", run_args=("--prompt=alt",))

    assert run(ws, "run").ok
    assert toolchain.calls == [("run", "repl", ("--prompt=alt",))]


@pytest.mark.parametrize("target", [None, "missing"])
def test_run_rejects_missing_or_unknown_command(config: Config, toolchain: FakeToolchain, vcs: FakeVCS, tmp_path: Path, target: str | None) -> None:
    make_commands(tmp_path, "repl")
    ws = Workspace(config=config, toolchain=toolchain, vcs=vcs, run_target=target)

    with pytest.raises(ConfigurationError):
        preflight(build_graph(ws), ws, TaskKind.RUN)
    assert toolchain.calls == []


def test_preflight_reads_version_only_when_needed(workspace: Workspace, config: Config) -> None:
    config.version_file.write_text("not-a-version\n", encoding="utf-8")
    graph = build_graph(workspace)

    preflight(graph, workspace, TaskKind.CI)
    for kind in (TaskKind.PUBLISH, TaskKind.RELEASE, TaskKind.MINOR, TaskKind.INFO):
        with pytest.raises(ConfigurationError):
            preflight(graph, workspace, kind)


def test_preflight_requires_test_name(workspace: Workspace) -> None:
    with pytest.raises(ConfigurationError, match="test name"):
        preflight(build_graph(workspace), workspace, TaskKind.TEST_SINGLE)
