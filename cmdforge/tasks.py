"""
tasks.py

Responsibility: Model named tasks as a dependency graph and execute them.

Execution rules (per `Executor.run` call):
- Prerequisites run first, depth-first, left-to-right in declaration order.
- A task that already Succeeded or was Skipped in this run is not run again.
- The first failing task aborts the run: every task that has not started yet
  is marked Skipped and the failure is returned as the run's error.
- One task runs at a time; nothing is parallelized.

The graph is validated (unknown prerequisites, cycles) when it is built, so a
bad graph fails before any action has a chance to run.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field

from cmdforge.errors import ConfigurationError

logger = logging.getLogger(__name__)


class TaskState(enum.Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class Task:
    """
    A named unit of work. A task without an action is composite: it only
    sequences its prerequisites.

    `condition`, when given, is evaluated right before the action; a falsy
    result marks the task Skipped instead of running it.
    """

    name: str
    prerequisites: tuple[str, ...] = ()
    action: Callable[[], object] | None = None
    description: str = ""
    condition: Callable[[], bool] | None = None

    @property
    def composite(self) -> bool:
        return self.action is None


Listener = Callable[[Task, TaskState], None]


class TaskGraph(Mapping[str, Task]):
    def __init__(self, tasks: Iterable[Task]) -> None:
        self._tasks: dict[str, Task] = {}
        for task in tasks:
            if task.name in self._tasks:
                raise ConfigurationError(f"Task defined twice: {task.name}")
            self._tasks[task.name] = task
        self._validate()

    def __getitem__(self, name: str) -> Task:
        return self._tasks[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._tasks)

    def __len__(self) -> int:
        return len(self._tasks)

    def _validate(self) -> None:
        for task in self._tasks.values():
            for dep in task.prerequisites:
                if dep not in self._tasks:
                    raise ConfigurationError(f"Task {task.name!r} depends on unknown task {dep!r}")
            if len(set(task.prerequisites)) != len(task.prerequisites):
                raise ConfigurationError(f"Task {task.name!r} lists a prerequisite more than once")

        done: set[str] = set()
        for name in self._tasks:
            self._check_cycles(name, [], done)

    def _check_cycles(self, name: str, path: list[str], done: set[str]) -> None:
        if name in done:
            return
        if name in path:
            cycle = path[path.index(name) :] + [name]
            raise ConfigurationError(f"Cyclic task graph: {' -> '.join(cycle)}")
        path.append(name)
        for dep in self._tasks[name].prerequisites:
            self._check_cycles(dep, path, done)
        path.pop()
        done.add(name)

    def closure(self, name: str) -> list[str]:
        """
        `name` and everything it transitively depends on, in execution order.
        """
        if name not in self._tasks:
            raise ConfigurationError(f"Unknown task: {name}")
        order: list[str] = []

        def visit(n: str) -> None:
            if n in order:
                return
            for dep in self._tasks[n].prerequisites:
                visit(dep)
            order.append(n)

        visit(name)
        return order


@dataclass
class RunResult:
    requested: str
    states: dict[str, TaskState] = field(default_factory=dict)
    order: list[str] = field(default_factory=list)
    failed_task: str | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error


class _Abort(Exception):
    pass


class Executor:
    def __init__(self, graph: TaskGraph, listener: Listener | None = None) -> None:
        self._graph = graph
        self._listener = listener

    def _set(self, result: RunResult, task: Task, state: TaskState) -> None:
        result.states[task.name] = state
        if self._listener is not None:
            self._listener(task, state)

    def run(self, name: str) -> RunResult:
        """
        Run `name` and its prerequisites. Task failures are returned in the
        result; only an unknown task name raises.
        """
        result = RunResult(requested=name)
        for n in self._graph.closure(name):
            result.states[n] = TaskState.PENDING

        try:
            self._visit(name, result)
        except _Abort:
            for n, state in result.states.items():
                if state is TaskState.PENDING:
                    result.states[n] = TaskState.SKIPPED
            logger.debug("Run of %s aborted after %s failed", name, result.failed_task)
        return result

    def _visit(self, name: str, result: RunResult) -> None:
        if result.states[name] in (TaskState.SUCCEEDED, TaskState.SKIPPED):
            return
        task = self._graph[name]
        for dep in task.prerequisites:
            self._visit(dep, result)

        try:
            if task.condition is not None and not task.condition():
                logger.info("Skipping %s: precondition not met", name)
                self._set(result, task, TaskState.SKIPPED)
                return

            self._set(result, task, TaskState.RUNNING)
            result.order.append(name)
            logger.debug("Running task %s", name)
            if task.action is not None:
                task.action()
        except Exception as e:
            result.failed_task = name
            result.error = e
            self._set(result, task, TaskState.FAILED)
            logger.debug("Task %s failed: %s", name, e)
            raise _Abort() from e
        self._set(result, task, TaskState.SUCCEEDED)
