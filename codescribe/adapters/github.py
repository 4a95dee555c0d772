"""GitHub REST adapter for pull requests (change-requests)."""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

import requests

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
REQUEST_TIMEOUT = 30

_REMOTE_PATTERN = re.compile(r"github\.com[/:]([\w-]+)/([\w-]+)")


class GitHubAPIError(Exception):
    """Raised when a GitHub API request fails."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


def parse_repo_info(remote_url: str) -> tuple[str, str]:
    """Parse owner and repository name from a GitHub remote URL.

    Raises:
        GitHubAPIError: If the URL does not point at github.com
    """
    match = _REMOTE_PATTERN.search(remote_url or "")
    if not match:
        raise GitHubAPIError("Could not parse GitHub owner and repo from remote URL.")
    return match.group(1), match.group(2)


class GitHubClient:
    """Thin request/response wrapper over the pulls endpoints."""

    def __init__(self, token: str, base_url: str = GITHUB_API_URL, timeout: int = REQUEST_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            }
        )

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise GitHubAPIError(f"GitHub request failed: {method} {path}: {e}") from e

        if response.status_code >= 400:
            try:
                detail = response.json()
            except ValueError:
                detail = {"message": response.text}
            message = detail.get("message", "") if isinstance(detail, dict) else str(detail)
            errors = detail.get("errors") if isinstance(detail, dict) else None
            if errors:
                message = f"{message}: " + "; ".join(
                    e.get("message", str(e)) if isinstance(e, dict) else str(e) for e in errors
                )
            raise GitHubAPIError(
                f"GitHub API error {response.status_code}: {message}",
                status=response.status_code,
            )

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise GitHubAPIError(
                f"GitHub API returned a non-JSON response: {method} {path}",
                status=response.status_code,
            ) from e

    def list_pull_requests(self, owner: str, repo: str, branch: str, state: str = "open") -> list[dict]:
        """List pull requests whose head is owner:branch."""
        return self._request(
            "GET",
            f"/repos/{owner}/{repo}/pulls",
            params={"head": f"{owner}:{branch}", "state": state},
        )

    def create_pull_request(
        self,
        owner: str,
        repo: str,
        title: str,
        body: str,
        head: str,
        base: str = "main",
        draft: bool = True,
    ) -> dict:
        return self._request(
            "POST",
            f"/repos/{owner}/{repo}/pulls",
            json={"title": title, "body": body, "head": head, "base": base, "draft": draft},
        )

    def update_pull_request(self, owner: str, repo: str, number: int, title: str, body: str) -> dict:
        """Update title and body of a pull request in one call."""
        return self._request(
            "PATCH",
            f"/repos/{owner}/{repo}/pulls/{number}",
            json={"title": title, "body": body},
        )

    def list_reviews(self, owner: str, repo: str, number: int) -> list[dict]:
        return self._request("GET", f"/repos/{owner}/{repo}/pulls/{number}/reviews")

    def request_reviewers(self, owner: str, repo: str, number: int, reviewers: list[str]) -> dict:
        return self._request(
            "POST",
            f"/repos/{owner}/{repo}/pulls/{number}/requested_reviewers",
            json={"reviewers": reviewers},
        )
