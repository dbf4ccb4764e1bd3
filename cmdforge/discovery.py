"""
discovery.py

Responsibility: Enumerate command entry points and derive their artifacts.

A target is every immediate subdirectory of the command root that contains
the configured entry file (by default `cmd/<name>/main.go`). The artifact of
target `<name>` is always `<bin_dir>/<name>`.

Targets are recomputed on every invocation and never persisted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from cmdforge.config import Config

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Target:
    name: str
    entry_path: Path
    artifact_path: Path

    @property
    def package_dir(self) -> Path:
        return self.entry_path.parent


def artifact_path_for(name: str, bin_dir: Path) -> Path:
    return bin_dir / name


def discover_targets(config: Config) -> list[Target]:
    """
    Return the targets under `config.cmd_root`, sorted by name.

    A missing command root, or one without matching subdirectories, gives an
    empty list.
    """
    root = config.cmd_root
    if not root.is_dir():
        logger.debug("Command root %s does not exist; no targets", root)
        return []

    targets: list[Target] = []
    for child in sorted(root.iterdir(), key=lambda p: p.name):
        entry = child / config.entry_file
        if not child.is_dir() or not entry.is_file():
            continue
        targets.append(
            Target(
                name=child.name,
                entry_path=entry,
                artifact_path=artifact_path_for(child.name, config.bin_dir),
            )
        )

    logger.debug("Discovered %d target(s): %s", len(targets), ", ".join(t.name for t in targets))
    return targets
