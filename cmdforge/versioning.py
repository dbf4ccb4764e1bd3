"""
versioning.py

Responsibility: Semantic versions, increments and the version-of-record file.

`increment` is pure: the same (version, level) always gives the same result,
and raising a component resets every lower-order component to zero.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass
from pathlib import Path

from cmdforge.errors import ConfigurationError

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"^v?(\d+)\.(\d+)\.(\d+)$")


class Level(enum.Enum):
    MAJOR = "major"
    MINOR = "minor"
    MICRO = "micro"


@dataclass(frozen=True, order=True)
class Version:
    major: int = 0
    minor: int = 0
    micro: int = 0

    def __post_init__(self) -> None:
        for part in (self.major, self.minor, self.micro):
            if isinstance(part, bool) or not isinstance(part, int) or part < 0:
                raise ConfigurationError(f"Version components must be non-negative integers: {self!r}")

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.micro}"

    @classmethod
    def parse(cls, text: str) -> Version:
        m = _VERSION_RE.match(text.strip())
        if m is None:
            raise ConfigurationError(f"Not a major.minor.micro version: {text!r}")
        return cls(int(m.group(1)), int(m.group(2)), int(m.group(3)))


def increment(current: Version, level: Level) -> Version:
    if level is Level.MAJOR:
        return Version(current.major + 1, 0, 0)
    if level is Level.MINOR:
        return Version(current.major, current.minor + 1, 0)
    return Version(current.major, current.minor, current.micro + 1)


class VersionStore:
    """
    A one-line text file holding the current version. A missing file reads as 0.0.0.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def read(self) -> Version:
        if not self.path.exists():
            return Version()
        return Version.parse(self.path.read_text(encoding="utf-8"))

    def write(self, version: Version) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(f"{version}\n", encoding="utf-8", newline="\n")
        tmp.replace(self.path)

    def bump(self, level: Level) -> Version:
        current = self.read()
        new = increment(current, level)
        self.write(new)
        logger.info("Version %s -> %s (%s+)", current, new, level.value)
        return new
