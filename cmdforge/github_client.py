"""
github_client.py

Responsibility: Isolate all direct GitHub REST API interaction.

This module must be the only place that:
- Constructs GitHub REST endpoints
- Sends HTTP requests to api.github.com
- Interprets GitHub API responses / error payloads

Tags themselves are pushed with git (`vcs.py`); this client only attaches a
GitHub release to a tag that already exists on the remote.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import requests

from cmdforge.errors import CmdforgeError


class GitHubError(CmdforgeError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


@dataclass(frozen=True)
class ReleaseInfo:
    id: int
    tag_name: str
    name: str
    html_url: str


def _release_info(data: dict[str, Any]) -> ReleaseInfo:
    return ReleaseInfo(
        id=int(data["id"]),
        tag_name=data["tag_name"],
        name=data.get("name") or data["tag_name"],
        html_url=data.get("html_url") or "",
    )


class GitHubClient:
    def __init__(self, token: str, api_base: str = "https://api.github.com") -> None:
        if not token.strip():
            raise GitHubError("GitHub token is required.")
        self._token = token
        self._api_base = api_base.rstrip("/")

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self._token}",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "cmdforge",
        }

    def _request(self, method: str, path: str, *, json_body: dict[str, Any] | None = None) -> Any:
        url = f"{self._api_base}{path}"
        try:
            r = requests.request(method, url, headers=self._headers(), json=json_body, timeout=30)
        except requests.RequestException as e:
            raise GitHubError(f"GitHub API request failed {method} {path}: {e}") from e
        if r.status_code >= 400:
            try:
                payload = r.json()
            except ValueError:
                payload = {"message": r.text}
            raise GitHubError(
                f"GitHub API error {r.status_code} {method} {path}: {payload.get('message', payload)}",
                status_code=r.status_code,
            )
        if r.status_code == 204:
            return None
        return r.json()

    def get_release_by_tag(self, owner: str, repo: str, tag: str) -> ReleaseInfo | None:
        """
        Return the release attached to `tag`, or None when there is none.
        """
        try:
            data = self._request("GET", f"/repos/{owner}/{repo}/releases/tags/{tag}")
        except GitHubError as e:
            if e.status_code == 404:
                return None
            raise
        return _release_info(data)

    def create_release(
        self,
        *,
        owner: str,
        repo: str,
        tag: str,
        name: str,
        body: str = "",
        draft: bool = False,
        prerelease: bool = False,
    ) -> ReleaseInfo:
        payload = {
            "tag_name": tag,
            "name": name,
            "body": body,
            "draft": draft,
            "prerelease": prerelease,
        }
        data = self._request("POST", f"/repos/{owner}/{repo}/releases", json_body=payload)
        return _release_info(data)
