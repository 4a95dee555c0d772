"""Git context collection: branch state, history and conflict prediction."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone
from typing import Any, Optional

from codescribe.analysis.models import GitContext
from codescribe.utils.commit_parser import is_breaking, is_conventional, validate_branch_name
from codescribe.vcs.git_operations import Commit, GitError, GitOperations

logger = logging.getLogger(__name__)

SCRATCH_BRANCH_PREFIX = "codescribe-conflict-check-"


def conflict_risk(count: int) -> str:
    """Map a number of conflicting files to a risk level."""
    if count == 0:
        return "low"
    if count <= 2:
        return "medium"
    return "high"


def _parse_date(value: str) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(value.strip())
    except (ValueError, AttributeError):
        return None


class GitContextCollector:
    """Reads branch state through GitOperations and derives analyses from it.

    The primary reads (branch, remote, diff, commits) raise GitError on
    failure. Derived analyses catch GitError and record it under "error"
    so that one unusual repository shape does not abort the invocation.
    """

    def __init__(
        self,
        git: GitOperations,
        integration_branch: str = "main",
        auto_push: bool = True,
        now: Optional[datetime] = None,
    ):
        self.git = git
        self.integration_branch = integration_branch
        self.base_ref = git.integration_ref(integration_branch)
        self.auto_push = auto_push
        self._now = now

    def collect(self) -> GitContext:
        """Collect the git context for the checked-out branch.

        Raises:
            GitError: If a primary read fails
        """
        branch = self.git.current_branch()
        remote_url = self.git.remote_url()

        push = {"pushed": False, "skipped": True}
        if self.auto_push:
            push = self.sync_remote(branch)

        diff = self.git.diff(self.base_ref)
        if diff:
            logger.info(f"Found {len(diff.splitlines())} lines of changes")
        diff_stats = self.git.diff_stat(self.base_ref) if diff else ""
        commits = self.git.log_commits(f"{self.base_ref}..HEAD")

        context = GitContext(
            branch=branch,
            remote_url=remote_url,
            diff=diff,
            diff_stats=diff_stats,
            integration_branch=self.integration_branch,
            commits=commits,
            push=push,
        )
        context.branch_validation = validate_branch_name(branch)
        context.commit_analysis = analyze_commits(commits)
        context.branch_history = self._guard(self.branch_history)
        context.merge_base_analysis = self._guard(self.merge_base_analysis)
        context.conflict_detection = self._guard(self.predict_conflicts)
        return context

    def _guard(self, analysis) -> dict[str, Any]:
        try:
            return analysis()
        except GitError as e:
            logger.warning(f"{analysis.__name__} unavailable: {e}")
            return {"error": str(e)}

    def sync_remote(self, branch: str) -> dict[str, Any]:
        """Push local commits missing from the remote; never raises.

        A branch that does not exist on the remote is created with upstream
        tracking. Failures are downgraded to a warning.
        """
        try:
            unpushed = self.git.unpushed_commits(branch)
        except GitError:
            logger.info(f"Branch {branch} not on remote, pushing for first time")
            try:
                self.git.push_branch(branch, set_upstream=True)
                return {"pushed": True, "set_upstream": True}
            except GitError as e:
                logger.warning("Could not push to remote, continuing anyway")
                return {"pushed": False, "error": str(e)}

        if not unpushed:
            return {"pushed": False, "unpushed": 0}

        logger.info(f"Found {len(unpushed)} unpushed commits, pushing to remote")
        result = self.git.push_with_upstream_fallback(branch)
        if not result["success"]:
            logger.warning("Could not push to remote, continuing anyway")
            return {"pushed": False, "unpushed": len(unpushed), "error": result["error"]}
        return {
            "pushed": True,
            "unpushed": len(unpushed),
            "set_upstream": result.get("set_upstream", False),
        }

    def branch_history(self) -> dict[str, Any]:
        """Creation point, creation date, commit and merge counts, age."""
        merge_base = self.git.merge_base(self.base_ref, "HEAD")
        revision_range = f"{merge_base}..HEAD"
        dates = self.git.commit_dates(revision_range)
        created = dates[0] if dates else self.git.commit_date(merge_base)

        age_days = None
        created_at = _parse_date(created)
        if created_at is not None:
            now = self._now or datetime.now(timezone.utc)
            age_days = max((now - created_at).days, 0)

        return {
            "creation_point": merge_base,
            "creation_date": created,
            "commit_count": self.git.count_commits(revision_range),
            "merge_count": self.git.count_commits(revision_range, merges_only=True),
            "age_days": age_days,
        }

    def merge_base_analysis(self) -> dict[str, Any]:
        merge_base = self.git.merge_base(self.base_ref, "HEAD")
        integration_head = self.git.rev_parse(self.base_ref)
        ahead, behind = self.git.ahead_behind(self.base_ref)
        return {
            "merge_base": merge_base,
            "integration_head": integration_head,
            "ahead": ahead,
            "behind": behind,
            "needs_rebase": behind > 0,
            "is_up_to_date": merge_base == integration_head,
        }

    def predict_conflicts(self) -> dict[str, Any]:
        """Predict merge conflicts with the integration branch.

        Simulates the merge on a scratch branch when the working copy is
        clean; otherwise intersects the files changed on each side since the
        merge-base.
        """
        files: Optional[list[str]] = None
        method = "merge_simulation"

        if not self.git.has_uncommitted_changes():
            try:
                files = self._simulate_merge()
            except GitError as e:
                logger.info(f"Merge simulation failed, using file intersection: {e}")

        if files is None:
            method = "file_intersection"
            files = self._intersect_changed_files()

        return {
            "method": method,
            "conflicts": files,
            "conflict_count": len(files),
            "risk_level": conflict_risk(len(files)),
        }

    def _simulate_merge(self) -> Optional[list[str]]:
        original = self.git.current_branch()
        if original == "HEAD":
            return None

        scratch = f"{SCRATCH_BRANCH_PREFIX}{secrets.token_hex(4)}"
        self.git.create_scratch_branch(scratch)
        try:
            result = self.git.merge_no_commit(self.base_ref)
            if result.returncode == 0:
                return []
            return self.git.conflicted_files()
        finally:
            self._restore(original, scratch)

    def _restore(self, original: str, scratch: str) -> None:
        """Return to the starting branch and remove the scratch branch."""
        try:
            self.git.merge_abort()
        except GitError as e:
            logger.warning(f"Merge abort failed: {e}")
        try:
            self.git.checkout(original)
        except GitError as e:
            logger.error(f"Could not return to {original}: {e}")
            return
        try:
            self.git.delete_branch(scratch)
        except GitError as e:
            logger.warning(f"Could not delete scratch branch {scratch}: {e}")

    def _intersect_changed_files(self) -> list[str]:
        merge_base = self.git.merge_base(self.base_ref, "HEAD")
        branch_files = set(self.git.changed_files_between(merge_base, "HEAD"))
        integration_files = set(self.git.changed_files_between(merge_base, self.base_ref))
        return sorted(branch_files & integration_files)


def analyze_commits(commits: list[Commit]) -> dict[str, Any]:
    """Summarize commit message conventions on the branch."""
    conventional = 0
    too_short = []
    too_long = []
    breaking = []

    for commit in commits:
        if is_conventional(commit.message):
            conventional += 1
        if len(commit.message) < 10:
            too_short.append(commit.hash)
        elif len(commit.message) > 72:
            too_long.append(commit.hash)
        if is_breaking(commit.full_message):
            breaking.append(commit.hash)

    total = len(commits)
    return {
        "total": total,
        "conventional": conventional,
        "conventional_ratio": round(conventional / total, 2) if total else 0.0,
        "too_short": too_short,
        "too_long": too_long,
        "breaking_changes": breaking,
    }
