"""
config.py

Responsibility: Load `cmdforge.yaml` into a frozen, typed `Config`.

The resulting value is passed explicitly to every component (discoverer,
builder, executor, publisher). Nothing reads project settings from ambient
global state.

Rules:
- A missing config file yields the defaults.
- Relative paths are resolved against the project root.
- Type problems are reported as `ConfigurationError` at load time.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from cmdforge.errors import ConfigurationError
from cmdforge.renderer import render_text

CONFIG_FILE = "cmdforge.yaml"


@dataclass(frozen=True)
class GitHubConfig:
    """GitHub repository that receives releases for pushed tags (optional)."""

    owner: str | None = None
    repo: str | None = None
    api_base: str = "https://api.github.com"

    @property
    def enabled(self) -> bool:
        return bool(self.owner and self.repo)


@dataclass(frozen=True)
class Config:
    project_dir: Path
    project_name: str = "cli"
    description: str = "CLI tools"
    cmd_root: Path = Path("cmd")
    entry_file: str = "main.go"
    bin_dir: Path = Path("bin")
    coverage_file: Path = Path("coverage.out")
    version_file: Path = Path("VERSION")
    tag_prefix: str = "v"
    tag_message: str = "Release version {{ version }}"
    remote: str = "origin"
    branch: str = "main"
    jobs: int = 1
    github: GitHubConfig = field(default_factory=GitHubConfig)

    def with_overrides(self, **changes: Any) -> Config:
        changes = {k: v for k, v in changes.items() if v is not None}
        if "jobs" in changes:
            _check_jobs(changes["jobs"])
        return replace(self, **changes)


def _check_jobs(jobs: Any) -> int:
    if isinstance(jobs, bool) or not isinstance(jobs, int) or jobs < 1:
        raise ConfigurationError(f"`jobs` must be a positive integer, got {jobs!r}")
    return jobs


def _str_field(data: dict[str, Any], key: str, default: str) -> str:
    raw = data.get(key, default)
    if raw is None:
        return default
    if not isinstance(raw, (str, int, float)) or isinstance(raw, bool):
        raise ConfigurationError(f"`{key}` must be a string when provided.")
    value = str(raw).strip()
    return value or default


def _path_field(data: dict[str, Any], key: str, default: Path, project_dir: Path) -> Path:
    path = Path(_str_field(data, key, str(default)))
    return path if path.is_absolute() else project_dir / path


def _parse_github(raw: Any) -> GitHubConfig:
    if raw is None:
        return GitHubConfig()
    if not isinstance(raw, dict):
        raise ConfigurationError("`github` must be an object/mapping when provided.")
    owner = raw.get("owner")
    if owner is not None:
        owner = str(owner).strip() or None
    repo = raw.get("repo")
    if repo is not None:
        repo = str(repo).strip() or None
    return GitHubConfig(
        owner=owner,
        repo=repo,
        api_base=str(raw.get("api_base") or GitHubConfig.api_base).rstrip("/"),
    )


def parse_config(data: dict[str, Any], project_dir: str | Path) -> Config:
    """
    Build a `Config` from an already-loaded mapping.
    """
    root = Path(project_dir).resolve()
    defaults = Config(project_dir=root)

    tag_message = data.get("tag_message", defaults.tag_message)
    if not isinstance(tag_message, str) or not tag_message.strip():
        raise ConfigurationError("`tag_message` must be a non-empty string template.")
    tag_prefix = str(data.get("tag_prefix", defaults.tag_prefix) or "")
    # A broken template must fail here, not halfway through a publish.
    render_text(tag_message, {"version": "0.0.0", "tag": f"{tag_prefix}0.0.0"})

    entry_file = _str_field(data, "entry_file", defaults.entry_file)
    if "/" in entry_file or "\\" in entry_file:
        raise ConfigurationError("`entry_file` must be a plain file name, not a path.")

    return Config(
        project_dir=root,
        project_name=_str_field(data, "project_name", defaults.project_name),
        description=_str_field(data, "description", defaults.description),
        cmd_root=_path_field(data, "cmd_root", defaults.cmd_root, root),
        entry_file=entry_file,
        bin_dir=_path_field(data, "bin_dir", defaults.bin_dir, root),
        coverage_file=_path_field(data, "coverage_file", defaults.coverage_file, root),
        version_file=_path_field(data, "version_file", defaults.version_file, root),
        tag_prefix=tag_prefix,
        tag_message=tag_message,
        remote=_str_field(data, "remote", defaults.remote),
        branch=_str_field(data, "branch", defaults.branch),
        jobs=_check_jobs(data.get("jobs", defaults.jobs)),
        github=_parse_github(data.get("github")),
    )


def load_config(project_dir: str | Path, config_path: str | Path | None = None) -> Config:
    """
    Load the project configuration.

    `config_path` defaults to `<project_dir>/cmdforge.yaml`; an explicitly
    given path must exist, the default one may be absent.
    """
    root = Path(project_dir).resolve()
    if not root.is_dir():
        raise ConfigurationError(f"Project directory does not exist: {root}")

    if config_path is None:
        path = root / CONFIG_FILE
        if not path.exists():
            return parse_config({}, root)
    else:
        path = Path(config_path)
        if not path.is_absolute():
            path = root / path
        if not path.exists():
            raise ConfigurationError(f"Config file does not exist: {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError("Config must be a mapping/object at the top level.")
    return parse_config(data, root)
