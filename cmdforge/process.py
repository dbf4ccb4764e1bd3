"""
process.py

Responsibility: The single subprocess entry point used by the toolchain and VCS adapters.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from cmdforge.errors import CommandError

logger = logging.getLogger(__name__)


def run(cmd: list[str], *, cwd: Path, env: dict[str, str] | None = None) -> str:
    """
    Run a subprocess command and return its combined output, raising a CommandError on failure.
    """
    logger.debug("Running %s (cwd=%s)", " ".join(cmd), cwd)
    try:
        proc = subprocess.run(cmd, cwd=str(cwd), env=env, check=True, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True)
    except subprocess.CalledProcessError as e:
        raise CommandError(cmd, e.stdout or "", e.returncode) from e
    except FileNotFoundError as e:
        raise CommandError(cmd, f"executable not found: {cmd[0]}") from e
    return proc.stdout or ""


def run_interactive(cmd: list[str], *, cwd: Path) -> None:
    """
    Run a command with inherited stdio (REPLs, servers), raising a CommandError on failure.
    """
    logger.debug("Running %s interactively (cwd=%s)", " ".join(cmd), cwd)
    try:
        subprocess.run(cmd, cwd=str(cwd), check=True)
    except subprocess.CalledProcessError as e:
        raise CommandError(cmd, "", e.returncode) from e
    except FileNotFoundError as e:
        raise CommandError(cmd, f"executable not found: {cmd[0]}") from e
