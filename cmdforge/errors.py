"""
errors.py

Responsibility: The error taxonomy shared by every cmdforge component.

The CLI maps these to exit codes:
- `ConfigurationError` -> 2 (raised before any side effect)
- everything else -> 1
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from cmdforge.discovery import Target


class CmdforgeError(RuntimeError):
    pass


class ConfigurationError(CmdforgeError):
    pass


class CommandError(CmdforgeError):
    """
    A subprocess exited non-zero. Adapters wrap this into a domain error.
    """

    def __init__(self, cmd: Sequence[str], output: str = "", returncode: int | None = None) -> None:
        self.cmd = list(cmd)
        self.output = output
        self.returncode = returncode
        super().__init__(f"Command failed: {' '.join(self.cmd)}\n\n{output}".rstrip())


class CompileError(CmdforgeError):
    pass


class BuildFailure(CmdforgeError):
    def __init__(self, target: Target | None, underlying_error: BaseException | None, message: str | None = None) -> None:
        self.target = target
        self.underlying_error = underlying_error
        if message is None:
            name = target.name if target is not None else "<unknown>"
            message = f"Failed to build {name}: {underlying_error}"
        super().__init__(message)


class AggregateBuildFailure(BuildFailure):
    """
    One or more targets of a batch failed; `failures` keeps each per-target error.
    """

    def __init__(self, failures: Sequence[BuildFailure]) -> None:
        self.failures = list(failures)
        names = ", ".join(f.target.name for f in self.failures if f.target is not None)
        super().__init__(None, None, f"{len(self.failures)} target(s) failed to build: {names}")


class TestFailure(CmdforgeError):
    __test__ = False  # keep pytest from collecting this class


class LintFindings(CmdforgeError):
    def __init__(self, findings: Sequence[str]) -> None:
        self.findings = list(findings)
        super().__init__(f"{len(self.findings)} lint finding(s)\n" + "\n".join(self.findings))


class FormatMismatch(CmdforgeError):
    def __init__(self, files: Sequence[str]) -> None:
        self.files = list(files)
        super().__init__("Code not formatted. Run 'cmdforge format'\n" + "\n".join(self.files))


class TagFailure(CmdforgeError):
    pass


class VCSFailure(CmdforgeError):
    pass
