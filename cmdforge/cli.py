"""
cli.py

Responsibility: CLI entrypoint for cmdforge.

High-level flow (one subcommand per task):
1) Load `cmdforge.yaml` -> `Config` (CLI flags override)
2) Wire the Go toolchain and git adapters into a `Workspace`
3) Build and validate the task graph, then check the inputs the run needs
4) Run the requested task and its prerequisites, fail-fast

Exit codes: 0 on success, 2 for configuration/usage errors, 1 for any other
task failure.

This module should orchestrate behavior but keep concerns isolated:
- Task registry: `workflows.py`
- Execution semantics: `tasks.py`
- Toolchain / git: `toolchain.py`, `vcs.py`
"""

from __future__ import annotations

import argparse
import logging
import os
import sys

from rich.console import Console
from rich.text import Text

from cmdforge import __version__
from cmdforge.config import Config, load_config
from cmdforge.errors import CmdforgeError, ConfigurationError
from cmdforge.tasks import Executor, Task, TaskState
from cmdforge.toolchain import GoToolchain
from cmdforge.vcs import Git
from cmdforge.workflows import ALIASES, DESCRIPTIONS, TaskKind, Workspace, build_graph, preflight, resolve_task_name

logger = logging.getLogger("cmdforge")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATEFMT = "%H:%M:%S"


_log_handler: logging.Handler | None = None


def setup_logging(verbose: bool) -> None:
    global _log_handler
    root = logging.getLogger()
    if _log_handler is not None:
        root.removeHandler(_log_handler)
    _log_handler = logging.StreamHandler(sys.stderr)
    _log_handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT))
    root.addHandler(_log_handler)
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)


class StatusPrinter:
    """
    Executor listener printing colored status lines for each task transition.
    """

    def __init__(self, console: Console) -> None:
        self._console = console

    def __call__(self, task: Task, state: TaskState) -> None:
        if state is TaskState.RUNNING and not task.composite:
            self._console.print(f"[bold blue]{task.description or task.name}...[/bold blue]")
        elif state is TaskState.SUCCEEDED:
            self._console.print(f"[bold green]✅ {task.name} completed[/bold green]")
        elif state is TaskState.SKIPPED:
            self._console.print(f"[bold yellow]⚠ {task.name} skipped[/bold yellow]")
        elif state is TaskState.FAILED:
            self._console.print(f"[bold red]❌ {task.name} failed[/bold red]")


def make_workspace(
    config: Config,
    console: Console,
    test_name: str | None,
    run_target: str | None = None,
    run_args: tuple[str, ...] = (),
) -> Workspace:
    return Workspace(
        config=config,
        toolchain=GoToolchain(config.project_dir),
        vcs=Git(config.project_dir),
        emit=lambda text: console.print(text, markup=False, highlight=False),
        test_name=test_name,
        run_target=run_target,
        run_args=run_args,
    )


def execute(ws: Workspace, kind: TaskKind, console: Console) -> int:
    graph = build_graph(ws)
    preflight(graph, ws, kind)
    result = Executor(graph, listener=StatusPrinter(console)).run(kind.value)
    result.raise_for_error()
    return 0


def task_cmd(args: argparse.Namespace) -> int:
    kind = resolve_task_name(args.task)
    test_name = getattr(args, "test", None) or os.environ.get("TEST")
    if kind is TaskKind.TEST_SINGLE and not test_name:
        raise ConfigurationError("Please specify a test name: cmdforge test-single TestName (or TEST=TestName)")

    config = load_config(args.project_dir, args.config).with_overrides(jobs=args.jobs)
    console = Console()
    run_args = list(getattr(args, "program_args", None) or [])
    if run_args[:1] == ["--"]:
        run_args = run_args[1:]
    ws = make_workspace(config, console, test_name, getattr(args, "target", None), tuple(run_args))
    return execute(ws, kind, console)


def help_cmd(args: argparse.Namespace) -> int:
    config = load_config(args.project_dir, args.config)
    console = Console()
    console.print(f"[bold blue]{config.description} - Available Commands[/bold blue]\n")
    for name in sorted(k.value for k in TaskKind):
        console.print(f"[bold green]{name:<20}[/bold green] {DESCRIPTIONS[TaskKind(name)]}", highlight=False)
    for alias, target in sorted(ALIASES.items()):
        console.print(f"[bold green]{alias:<20}[/bold green] Alias for {target.value}", highlight=False)
    console.print("\n[bold yellow]Prerequisites:[/bold yellow]\n  - Go 1.21+\n  - git")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--project-dir", default=".", help="Project root (default: current directory)")
    common.add_argument("--config", default=None, help="Config file (default: <project-dir>/cmdforge.yaml)")
    common.add_argument("--jobs", type=int, default=None, help="Build up to N targets in parallel")
    common.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    p = argparse.ArgumentParser(prog="cmdforge", description="cmdforge - multi-binary build and release orchestrator")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = p.add_subparsers(dest="command", required=True)

    h = sub.add_parser("help", parents=[common], help="Show the available commands")
    h.set_defaults(func=help_cmd)

    for kind in TaskKind:
        t = sub.add_parser(kind.value, parents=[common], help=DESCRIPTIONS[kind])
        if kind is TaskKind.TEST_SINGLE:
            t.add_argument("test", nargs="?", default=None, help="Test name pattern (or set env TEST)")
        elif kind is TaskKind.RUN:
            t.add_argument("target", nargs="?", default=None, help="Command under cmd/ to run")
            t.add_argument("program_args", nargs=argparse.REMAINDER, help="Arguments passed to the command")
        t.set_defaults(func=task_cmd, task=kind.value)

    for alias, target in ALIASES.items():
        a = sub.add_parser(alias, parents=[common], help=f"Alias for {target.value}")
        a.set_defaults(func=task_cmd, task=alias)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    setup_logging(bool(args.verbose))
    err = Console(stderr=True)
    try:
        return int(args.func(args))
    except ConfigurationError as e:
        err.print(Text.assemble(("Error: ", "bold red"), str(e)))
        return 2
    except CmdforgeError as e:
        logger.debug("Task failed", exc_info=True)
        err.print(Text.assemble(("Error: ", "bold red"), str(e)))
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
