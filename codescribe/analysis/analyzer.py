"""Context analyzer: produces the Context snapshot for one invocation.

gather() runs its stages in a fixed order: git context, code analysis,
project analysis, ticket parsing. Only the version-control probe, the
filesystem and the ecosystem audit tool are consulted.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from codescribe.analysis.code import CodeAnalyzer, change_metrics, parse_name_status
from codescribe.analysis.dependencies import MANIFEST_FILE, parse_manifest_diff
from codescribe.analysis.git_context import GitContextCollector
from codescribe.analysis.models import (
    CodeContext,
    Context,
    DependencyDelta,
    GitContext,
    TicketContext,
)
from codescribe.analysis.project import ProjectAnalyzer
from codescribe.analysis.security import SecurityScanner
from codescribe.core.config import Config
from codescribe.utils.commit_parser import extract_ticket_id
from codescribe.vcs.git_operations import GitError, GitOperations

logger = logging.getLogger(__name__)


class NoChangesError(Exception):
    """Raised when the branch has no diff against the integration branch."""

    pass


class BranchNamingError(Exception):
    """Raised when the branch name carries no ticket identifier."""

    pass


class ContextGatheringError(Exception):
    """Raised when a version-control read fails during gathering."""

    pass


class ContextAnalyzer:
    """Builds a Context from the working copy.

    Attributes:
        config: Resolved configuration
        root: Project root the analysis runs in
        git: Version-control probe
    """

    def __init__(
        self,
        config: Config,
        root: Path,
        git: Optional[GitOperations] = None,
        scanner: Optional[SecurityScanner] = None,
    ):
        self.config = config
        self.root = Path(root)
        self.git = git or GitOperations(repo_path=str(self.root))
        self.integration_branch = config.get("git.defaultBranch", "main")
        self.scanner = scanner or SecurityScanner(
            self.root,
            audit_command=config.get("security.auditCommand"),
            audit_timeout=config.get("security.auditTimeout", 60),
        )

    def gather(self, require_changes: bool = True, push: Optional[bool] = None) -> Context:
        """Collect the complete Context.

        Args:
            require_changes: Raise NoChangesError on an empty diff
            push: Override git.autoPush for the pre-diff push

        Raises:
            NoChangesError: If require_changes and the diff is empty
            BranchNamingError: If the branch has no ticket identifier
            ContextGatheringError: If a version-control read fails
        """
        auto_push = self.config.get("git.autoPush", True) if push is None else push
        logger.info("Gathering git context")
        git_context = self._gather_git(auto_push)

        if require_changes and not git_context.diff:
            raise NoChangesError(
                f'No new commits found on this branch compared to "{self.git.integration_ref(self.integration_branch)}". '
                "Please commit your changes."
            )

        logger.info("Analyzing code changes")
        code = self.analyze_code(git_context)

        logger.info("Analyzing project structure")
        project = ProjectAnalyzer(self.root).analyze()

        logger.info(f'Parsing branch name "{git_context.branch}"')
        ticket = self.parse_ticket(git_context.branch)
        logger.info(f"Found ticket: {ticket.ticket_id}")

        return Context(git=git_context, code=code, project=project, linear=ticket)

    def _gather_git(self, auto_push: bool) -> GitContext:
        collector = GitContextCollector(
            self.git, integration_branch=self.integration_branch, auto_push=auto_push
        )
        try:
            return collector.collect()
        except GitError as e:
            raise ContextGatheringError(f"Git context gathering failed: {e}") from e

    def analyze_code(self, git_context: GitContext) -> CodeContext:
        if not git_context.diff:
            return CodeContext(has_changes=False)

        base_ref = self.git.integration_ref(self.integration_branch)
        try:
            numstat = {path: (added, removed) for added, removed, path in self.git.diff_numstat(base_ref)}
            files = parse_name_status(self.git.diff_name_status(base_ref), numstat)
            manifest_diff = ""
            if any(f.path == MANIFEST_FILE for f in files):
                manifest_diff = self.git.diff_file(base_ref, MANIFEST_FILE)
        except GitError as e:
            raise ContextGatheringError(f"Git context gathering failed: {e}") from e

        complexity, ast = CodeAnalyzer(self.root).analyze(files)
        security = self.scanner.scan(files)
        dependencies = (
            parse_manifest_diff(manifest_diff, security.vulnerabilities)
            if manifest_diff
            else DependencyDelta()
        )

        return CodeContext(
            has_changes=bool(files),
            changed_files=files,
            complexity=complexity,
            security=security,
            dependencies=dependencies,
            ast=ast,
            metrics=change_metrics(files),
        )

    @staticmethod
    def parse_ticket(branch: str) -> TicketContext:
        """Extract the ticket identifier from the branch name.

        Raises:
            BranchNamingError: If the branch has no ticket identifier
        """
        ticket_id = extract_ticket_id(branch)
        if not ticket_id:
            raise BranchNamingError(
                f'Could not find a ticket ID (e.g., TIX-123) in branch "{branch}".'
            )
        return TicketContext(ticket_id)
