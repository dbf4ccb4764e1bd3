"""
artifacts.py

Responsibility: Turn discovered targets into build artifacts.

Rules:
- The output directory is created idempotently before each build.
- The compiler writes to a temporary file next to the artifact; it is renamed
  into place only on success, so a failed build never leaves a partial artifact.
- In a batch, every target is attempted; the batch succeeds only if all did.
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from cmdforge.discovery import Target
from cmdforge.errors import AggregateBuildFailure, BuildFailure, CmdforgeError
from cmdforge.toolchain import Compiler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildResult:
    target: Target
    error: BuildFailure | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class BuildReport:
    results: tuple[BuildResult, ...]

    @property
    def ok(self) -> bool:
        return all(r.ok for r in self.results)

    @property
    def built(self) -> list[Target]:
        return [r.target for r in self.results if r.ok]

    @property
    def failures(self) -> list[BuildFailure]:
        return [r.error for r in self.results if r.error is not None]

    def raise_for_failures(self) -> None:
        if not self.ok:
            raise AggregateBuildFailure(self.failures)


class ArtifactBuilder:
    def __init__(self, compiler: Compiler, bin_dir: Path, *, jobs: int = 1) -> None:
        self._compiler = compiler
        self._bin_dir = Path(bin_dir)
        self._jobs = max(1, jobs)

    def _temp_path(self, target: Target) -> Path:
        return self._bin_dir / f".{target.name}.tmp-{os.getpid()}"

    def build(self, target: Target) -> BuildResult:
        """
        Build one target; compile errors are returned in the result, never raised.
        """
        logger.info("Building %s from %s", target.artifact_path, target.package_dir)
        tmp = self._temp_path(target)
        try:
            self._bin_dir.mkdir(parents=True, exist_ok=True)
            self._compiler.compile(target.entry_path, tmp)
            if not tmp.exists():
                raise CmdforgeError(f"compiler reported success but produced no output at {tmp}")
            os.replace(tmp, target.artifact_path)
        except (CmdforgeError, OSError) as e:
            tmp.unlink(missing_ok=True)
            logger.error("Failed to build %s: %s", target.name, e)
            return BuildResult(target=target, error=BuildFailure(target, e))

        logger.info("Built %s", target.artifact_path)
        return BuildResult(target=target)

    def build_all(self, targets: Sequence[Target]) -> BuildReport:
        if self._jobs > 1 and len(targets) > 1:
            with ThreadPoolExecutor(max_workers=self._jobs) as pool:
                results = list(pool.map(self.build, targets))
        else:
            results = [self.build(t) for t in targets]
        return BuildReport(results=tuple(results))
