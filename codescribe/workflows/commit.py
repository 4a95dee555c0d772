"""Commit workflow: stages, commits and pushes working-copy changes.

The commit message comes from, in order of preference: the user's
message (prefixed with the ticket id when missing), the AI engine, or
the template-driven conventional message.
"""

from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath
from typing import Any, Optional

from codescribe.adapters.linear import LINEAR_API_URL, LinearAPIError, LinearClient
from codescribe.analysis.code import CodeAnalyzer, classify_file, parse_name_status
from codescribe.analysis.dependencies import MANIFEST_FILE, parse_manifest_diff
from codescribe.analysis.models import ChangedFile, Context, DependencyDelta, FileStatus
from codescribe.analysis.security import SecurityScanner
from codescribe.core.ai import AIEngine
from codescribe.core.config import Config
from codescribe.tracker.comments import commit_comment
from codescribe.vcs.git_operations import GitOperations
from codescribe.workflows.base import BaseWorkflow
from codescribe.workflows.commit_templates import compose_commit_message
from codescribe.workflows.models import ChangeAnalysis, CommandOptions

logger = logging.getLogger(__name__)

COMMON_SCOPES = ("api", "ui", "auth", "db", "config", "test", "docs")
BREAKING_PATH_PATTERNS = ("package.json", "api/", "schema", "migration")


def categorize(path: str) -> str:
    lowered = path.lower()
    if "test" in lowered or "spec" in lowered:
        return "test"
    if "doc" in lowered or "readme" in lowered:
        return "docs"
    if "config" in lowered or lowered.endswith((".json", ".yml", ".yaml")):
        return "config"
    if lowered.endswith((".css", ".scss", ".less")):
        return "style"
    if lowered.endswith((".js", ".ts", ".jsx", ".tsx")):
        return "code"
    return "other"


def determine_scope(files: list[ChangedFile]) -> Optional[str]:
    """Single top-level directory, else the first common scope mentioned."""
    directories = {PurePosixPath(f.path).parts[0] for f in files if "/" in f.path}
    if len(directories) == 1 and all("/" in f.path for f in files):
        return directories.pop()
    for scope in COMMON_SCOPES:
        if any(scope in f.path.lower() for f in files):
            return scope
    return None


def change_summary(files: list[ChangedFile], categories: list[str]) -> str:
    if len(files) == 1:
        return f"Update {files[0].path}"
    if len(categories) == 1:
        return f"Update {len(files)} {categories[0]} files"
    return f"Update {len(files)} files ({', '.join(categories)})"


class CommitWorkflow(BaseWorkflow):
    """Creates a commit for the current working-copy changes."""

    name = "commit"
    critical = False

    def __init__(
        self,
        config: Config,
        git: Optional[GitOperations] = None,
        ai: Optional[AIEngine] = None,
        linear_client: Optional[LinearClient] = None,
    ):
        super().__init__(config)
        self.git = git or GitOperations(repo_path=str(config.cwd))
        self.ai = ai or AIEngine(config)
        self._linear_client = linear_client

    @property
    def linear_client(self) -> Optional[LinearClient]:
        if self._linear_client is None and self.config.linear_api_key:
            self._linear_client = LinearClient(
                self.config.linear_api_key, api_url=self.config.get("linear.apiUrl", LINEAR_API_URL)
            )
        return self._linear_client

    def has_changes(self) -> bool:
        return bool(self.git.staged_files() or self.git.unstaged_files() or self.git.untracked_files())

    def analyze_changes(self) -> ChangeAnalysis:
        """Describe the uncommitted changes, including untracked files."""
        root = Path(self.git.repo_path or self.config.cwd)
        numstat = {path: (added, removed) for added, removed, path in self.git.working_numstat()}
        files = parse_name_status(self.git.working_name_status(), numstat)
        known = {f.path for f in files}
        files += [classify_file(path, FileStatus.ADDED) for path in self.git.untracked_files() if path not in known]

        categories = sorted({categorize(f.path) for f in files})
        complexity, _ = CodeAnalyzer(root).analyze(files)
        security = SecurityScanner(root).scan(files)
        dependencies = DependencyDelta()
        if any(f.path == MANIFEST_FILE for f in files):
            dependencies = parse_manifest_diff(self.git.working_diff(MANIFEST_FILE), security.vulnerabilities)

        return ChangeAnalysis(
            files=files,
            categories=categories,
            scope=determine_scope(files),
            has_breaking_changes=any(p in f.path.lower() for f in files for p in BREAKING_PATH_PATTERNS),
            summary=change_summary(files, categories),
            additions=sum(f.additions for f in files),
            deletions=sum(f.deletions for f in files),
            complexity=complexity,
            security=security,
            dependencies=dependencies,
        )

    def build_message(self, context: Context, analysis: ChangeAnalysis, options: CommandOptions) -> dict[str, Any]:
        ticket_id = context.ticket_id
        if options.message:
            message = options.message
            if ticket_id and ticket_id not in message:
                message = f"{ticket_id}: {message}"
            return {"message": message, "source": "user"}

        if self.ai.is_available():
            details = self.ai.generate_commit_message(context, analysis, diff=self.git.working_diff())
            details.setdefault("source", "ai")
            return details

        conventional = self.get_config().get("conventionalCommits", True) is not False
        details = compose_commit_message(analysis, ticket_id, conventional=conventional)
        details["source"] = "template"
        return details

    def stage(self, options: CommandOptions) -> None:
        if options.add_all:
            logger.info("Staging all changes")
            self.git.stage_all()
        elif options.add_modified:
            logger.info("Staging modified files")
            self.git.stage_modified()
        elif not self.git.staged_files():
            logger.info("No staged changes found, staging all changes")
            self.git.stage_all()

    def execute(self, context: Context, options: CommandOptions) -> dict[str, Any]:
        if not self.has_changes() and not options.force:
            logger.info("No changes detected to commit")
            return {"skipped": True, "reason": "no_changes"}

        analysis = self.analyze_changes()
        details = self.build_message(context, analysis, options)
        message = details["message"]

        self.stage(options)
        logger.info(f'Creating commit with message: "{message.splitlines()[0]}"')
        sha = self.git.commit(message)
        commit = {
            "sha": sha,
            "short_sha": sha[:7],
            "message": message,
            "author": self.git.last_commit_author(),
            "branch": context.git.branch,
            "files": len(analysis.files),
        }

        push = None
        if options.push:
            logger.info(f"Pushing to remote branch: {context.git.branch}")
            push = self.git.push_with_upstream_fallback(context.git.branch)
            commit["pushed"] = push.get("success", False)

        ticket = self.update_ticket(context, commit)
        logger.info(f"Commit created successfully: {commit['short_sha']}")
        return {"commit": commit, "push": push, "ticket": ticket, "message": message, "details": details}

    def update_ticket(self, context: Context, commit: dict[str, Any]) -> Optional[dict[str, Any]]:
        client = self.linear_client
        if client is None or not context.ticket_id:
            return None
        try:
            issue = client.get_issue(context.ticket_id)
            if issue is None:
                return {"comment_added": False, "error": f"Issue {context.ticket_id} not found"}
            client.create_comment(issue["id"], commit_comment(commit))
            return {"comment_added": True, "issue_id": issue["id"]}
        except LinearAPIError as e:
            logger.warning(f"Failed to update ticket {context.ticket_id}: {e}")
            return {"comment_added": False, "error": str(e)}
