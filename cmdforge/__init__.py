"""
cmdforge package

This package implements a build-and-release orchestrator for projects that
ship several executables from one source tree (`cmd/<name>/main.go`).

Key responsibilities are split across modules:
- `config.py`: load `cmdforge.yaml` into a typed `Config`
- `discovery.py`: find command entry points and their artifact paths
- `artifacts.py`: build each target atomically, aggregate batch results
- `tasks.py`: dependency-ordered, fail-fast task execution
- `workflows.py`: the fixed task registry (build, test, verify, ci, publish, ...)
- `versioning.py`: semantic version increments and the version file
- `release.py`: tagging and rebase-before-push publishing
- `toolchain.py` / `vcs.py` / `github_client.py`: external tools and APIs
- `cli.py`: CLI entrypoint
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
