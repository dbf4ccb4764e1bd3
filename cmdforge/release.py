"""
release.py

Responsibility: Tag releases and publish commits and tags to the remote.

Ordering rules for `publish`:
1) pull --rebase from the remote main line
2) push commits
3) push tags
A failed rebase is aborted and nothing is pushed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from cmdforge.config import Config
from cmdforge.errors import CmdforgeError, TagFailure, VCSFailure
from cmdforge.renderer import render_text
from cmdforge.vcs import VCS
from cmdforge.versioning import Version

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReleaseTag:
    version: Version
    name: str
    commit: str
    message: str


def tag_name(config: Config, version: Version) -> str:
    return f"{config.tag_prefix}{version}"


class ReleasePublisher:
    def __init__(self, vcs: VCS, config: Config) -> None:
        self._vcs = vcs
        self._config = config

    def release(self, version: Version) -> ReleaseTag:
        """
        Create an annotated tag for `version` at HEAD. Existing tags are never overwritten.
        """
        name = tag_name(self._config, version)
        if self._vcs.tag_exists(name):
            raise TagFailure(f"Tag {name} already exists; tags are immutable")

        message = render_text(self._config.tag_message, {"version": str(version), "tag": name})
        commit = self._vcs.head()
        self._vcs.tag(name, message)
        logger.info("Tagged release %s at %s", name, commit[:12])
        return ReleaseTag(version=version, name=name, commit=commit, message=message)

    def publish(self) -> None:
        remote, branch = self._config.remote, self._config.branch
        try:
            self._vcs.pull(remote, branch, rebase=True)
        except VCSFailure:
            logger.error("Rebase onto %s/%s failed; aborting before any push", remote, branch)
            try:
                self._vcs.abort_rebase()
            except CmdforgeError as abort_error:
                logger.error("%s", abort_error)
            raise

        self._vcs.push(remote, branch)
        self._vcs.push(remote, branch, tags=True)
        logger.info("Published %s and tags to %s", branch, remote)
