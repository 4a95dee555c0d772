"""Code-review workflow: creates or updates the branch's pull request."""

from __future__ import annotations

import logging
from typing import Any, Optional

from codescribe.adapters.github import GITHUB_API_URL, GitHubAPIError, GitHubClient, parse_repo_info
from codescribe.analysis.models import Context
from codescribe.core.ai import AIEngine
from codescribe.core.config import Config
from codescribe.workflows.base import BaseWorkflow
from codescribe.workflows.models import CommandOptions, PullRequestContent

logger = logging.getLogger(__name__)


def review_status(reviews: list[dict]) -> tuple[bool, bool]:
    """Return (changes_requested, approved) from each reviewer's latest review."""
    latest: dict[str, str] = {}
    for review in reviews:
        state = review.get("state", "")
        if state in ("COMMENTED", "PENDING"):
            continue
        user = (review.get("user") or {}).get("login", "")
        latest[user] = state
    changes_requested = "CHANGES_REQUESTED" in latest.values()
    approved = not changes_requested and "APPROVED" in latest.values()
    return changes_requested, approved


class CodeReviewWorkflow(BaseWorkflow):
    """Keeps exactly one open pull request per head branch."""

    name = "code-review"
    critical = True

    def __init__(self, config: Config, client: Optional[GitHubClient] = None):
        super().__init__(config)
        self._client = client

    @property
    def client(self) -> GitHubClient:
        if self._client is None:
            self._client = GitHubClient(
                self.config.github_token, base_url=self.config.get("github.apiUrl", GITHUB_API_URL)
            )
        return self._client

    def can_execute(self, context: Context) -> bool:
        return self.skip_reason(context) is None

    def skip_reason(self, context: Context) -> Optional[str]:
        if not self._client and not self.config.github_token:
            return "GITHUB_TOKEN is not set"
        if not context.git.remote_url:
            return "no remote URL"
        return None

    def pr_content(self, context: Context) -> PullRequestContent:
        ai = context.ai
        if ai and ai.get("title") and ai.get("body"):
            return PullRequestContent.from_dict(ai, generated=bool(ai.get("generated", True)))
        return AIEngine.fallback_pr_content(context)

    def execute(self, context: Context, options: CommandOptions) -> dict[str, Any]:
        """Update the open pull request for the branch, or create one.

        Raises:
            GitHubAPIError: If the remote URL is not a GitHub repo or a request fails
        """
        owner, repo = parse_repo_info(context.git.remote_url)
        branch = context.git.branch
        content = self.pr_content(context)
        settings = self.get_config()

        logger.info(f"Checking for existing pull request on {owner}/{repo}:{branch}")
        existing = self.client.list_pull_requests(owner, repo, branch)
        if existing:
            pr = self._update(owner, repo, existing[0], content)
            is_update = True
        else:
            try:
                pr = self.client.create_pull_request(
                    owner,
                    repo,
                    title=content.title,
                    body=content.body,
                    head=branch,
                    base=self.config.get("git.defaultBranch", "main"),
                    draft=settings.get("createDraft", True),
                )
                is_update = False
                logger.info(f"Created pull request #{pr.get('number')}")
            except GitHubAPIError as e:
                if e.status != 422 or "already exists" not in str(e).lower():
                    raise
                logger.info("Pull request already exists, updating it instead")
                existing = self.client.list_pull_requests(owner, repo, branch)
                if not existing:
                    raise
                pr = self._update(owner, repo, existing[0], content)
                is_update = True

        changes_requested = approved = False
        if is_update:
            try:
                changes_requested, approved = review_status(self.client.list_reviews(owner, repo, pr["number"]))
            except GitHubAPIError as e:
                logger.warning(f"Could not read reviews for #{pr['number']}: {e}")

        reviewers = settings.get("reviewers") or []
        if not is_update and settings.get("autoAssignReviewers") and reviewers:
            try:
                self.client.request_reviewers(owner, repo, pr["number"], reviewers)
            except GitHubAPIError as e:
                logger.warning(f"Could not request reviewers: {e}")

        return {
            "pr": {
                "number": pr.get("number"),
                "html_url": pr.get("html_url"),
                "title": pr.get("title", content.title),
                "state": pr.get("state", "open"),
                "merged": bool(pr.get("merged")),
                "draft": bool(pr.get("draft", False)),
                "review_comments": pr.get("review_comments", 0) or 0,
                "changes_requested": changes_requested,
                "approved": approved,
            },
            "owner": owner,
            "repo": repo,
            "is_update": is_update,
        }

    def _update(self, owner: str, repo: str, pr: dict, content: PullRequestContent) -> dict:
        number = pr["number"]
        updated = self.client.update_pull_request(owner, repo, number, content.title, content.body)
        logger.info(f"Updated pull request #{number}")
        return updated or pr
