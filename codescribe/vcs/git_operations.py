"""Git operations wrapper used as the version-control probe.

This module provides a GitOperations class that wraps every git subprocess
command the context analyzer and the commit workflow need. Read operations
never touch the network; the only remote mutations are the push helpers.
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from typing import List, Optional, Tuple

# Field and record separators for machine-readable git log output
_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"


class GitError(Exception):
    """Exception raised when git operations fail."""

    pass


@dataclass(frozen=True)
class Commit:
    """A single commit on the analyzed branch."""

    hash: str
    message: str
    body: str = ""
    author: str = ""
    date: str = ""

    @property
    def full_message(self) -> str:
        """Subject and body joined the way git stores them."""
        if self.body:
            return f"{self.message}\n\n{self.body}"
        return self.message


class GitOperations:
    """Wrapper for git subprocess commands with proper error handling."""

    def __init__(self, repo_path: Optional[str] = None, remote: str = "origin"):
        """Initialize GitOperations.

        Args:
            repo_path: Path to git repository. If None, uses current directory.
            remote: Name of the remote used for integration refs and pushes.
        """
        self.repo_path = repo_path
        self.remote = remote

    def _run_git_command(
        self, args: List[str], check: bool = True, capture_output: bool = True
    ) -> subprocess.CompletedProcess:
        """Run a git command with proper error handling.

        Args:
            args: Git command arguments (e.g., ["git", "status"])
            check: Whether to raise exception on non-zero exit code
            capture_output: Whether to capture stdout/stderr

        Returns:
            CompletedProcess object with command results

        Raises:
            GitError: If command fails and check=True
        """
        try:
            result = subprocess.run(
                args,
                cwd=self.repo_path,
                capture_output=capture_output,
                text=True,
                check=False,
            )
            if check and result.returncode != 0:
                raise GitError(
                    f"Git command failed: {' '.join(args)}\n"
                    f"Exit code: {result.returncode}\n"
                    f"stdout: {result.stdout}\n"
                    f"stderr: {result.stderr}"
                )
            return result
        except GitError:
            raise
        except FileNotFoundError as e:
            raise GitError(f"Git executable not found: {e}")
        except Exception as e:
            raise GitError(f"Unexpected error running git command: {e}")

    def _output(self, args: List[str]) -> str:
        return self._run_git_command(args).stdout.strip()

    def _lines(self, args: List[str]) -> List[str]:
        output = self._run_git_command(args).stdout
        return [line for line in output.splitlines() if line.strip()]

    def integration_ref(self, branch: str) -> str:
        """Return the remote-tracking ref for an integration branch."""
        return f"{self.remote}/{branch}"

    # Repository state

    def current_branch(self) -> str:
        """Return the name of the checked-out branch."""
        return self._output(["git", "rev-parse", "--abbrev-ref", "HEAD"])

    def remote_url(self) -> str:
        """Return the configured URL of the remote, or an empty string."""
        result = self._run_git_command(
            ["git", "config", "--get", f"remote.{self.remote}.url"], check=False
        )
        return result.stdout.strip()

    def rev_parse(self, ref: str, short: bool = False) -> str:
        """Resolve a ref to a commit SHA."""
        args = ["git", "rev-parse"]
        if short:
            args.append("--short")
        args.append(ref)
        return self._output(args)

    def merge_base(self, ref_a: str, ref_b: str) -> str:
        """Return the most recent common ancestor of two refs."""
        return self._output(["git", "merge-base", ref_a, ref_b])

    def status_porcelain(self) -> List[str]:
        """Return `git status --porcelain` lines for uncommitted state."""
        return self._lines(["git", "status", "--porcelain"])

    def has_uncommitted_changes(self) -> bool:
        return bool(self.status_porcelain())

    # Diffs

    def diff(self, base: str, head: str = "HEAD") -> str:
        """Return the textual diff of head against its merge-base with base."""
        return self._output(["git", "diff", f"{base}...{head}"])

    def diff_stat(self, base: str, head: str = "HEAD") -> str:
        return self._output(["git", "diff", "--stat", f"{base}...{head}"])

    def diff_name_status(self, base: str, head: str = "HEAD") -> List[str]:
        """Return raw `--name-status` lines (tab separated)."""
        return self._lines(["git", "diff", "--name-status", f"{base}...{head}"])

    def diff_numstat(self, base: str, head: str = "HEAD") -> List[Tuple[int, int, str]]:
        """Return (added, removed, path) per changed file.

        Binary files report zero added and removed lines.
        """
        return self._numstat(["git", "diff", "--numstat", f"{base}...{head}"])

    def _numstat(self, args: List[str]) -> List[Tuple[int, int, str]]:
        stats = []
        for line in self._lines(args):
            parts = line.split("\t")
            if len(parts) < 3:
                continue
            added = int(parts[0]) if parts[0].isdigit() else 0
            removed = int(parts[1]) if parts[1].isdigit() else 0
            stats.append((added, removed, parts[-1]))
        return stats

    def working_diff(self, path: Optional[str] = None) -> str:
        """Return the diff of the working copy and index against HEAD."""
        args = ["git", "diff", "HEAD"]
        if path:
            args += ["--", path]
        return self._output(args)

    def working_name_status(self) -> List[str]:
        return self._lines(["git", "diff", "HEAD", "--name-status"])

    def working_numstat(self) -> List[Tuple[int, int, str]]:
        return self._numstat(["git", "diff", "HEAD", "--numstat"])

    def diff_file(self, base: str, path: str, head: str = "HEAD") -> str:
        """Return the diff of a single file against the merge-base with base."""
        return self._run_git_command(
            ["git", "diff", f"{base}...{head}", "--", path]
        ).stdout

    def changed_files_between(self, base: str, head: str) -> List[str]:
        """Return paths changed between two commits (two-dot range)."""
        return self._lines(["git", "diff", "--name-only", base, head])

    # History

    def log_commits(self, revision_range: str, no_merges: bool = True) -> List[Commit]:
        """Return commits in a revision range, newest first."""
        args = [
            "git",
            "log",
            revision_range,
            f"--format=%H{_FIELD_SEP}%an{_FIELD_SEP}%cI{_FIELD_SEP}%s{_FIELD_SEP}%b{_RECORD_SEP}",
        ]
        if no_merges:
            args.append("--no-merges")
        output = self._run_git_command(args).stdout

        commits = []
        for record in output.split(_RECORD_SEP):
            record = record.strip("\n")
            if not record.strip():
                continue
            fields = record.split(_FIELD_SEP)
            if len(fields) < 5:
                continue
            commits.append(
                Commit(
                    hash=fields[0].strip(),
                    author=fields[1],
                    date=fields[2],
                    message=fields[3],
                    body=fields[4].strip(),
                )
            )
        return commits

    def commit_dates(self, revision_range: str) -> List[str]:
        """Return ISO committer dates in a range, oldest first."""
        return self._lines(["git", "log", "--reverse", "--format=%cI", revision_range])

    def commit_date(self, ref: str) -> str:
        return self._output(["git", "log", "-1", "--format=%cI", ref])

    def count_commits(self, revision_range: str, merges_only: bool = False) -> int:
        args = ["git", "rev-list", "--count"]
        if merges_only:
            args.append("--merges")
        args.append(revision_range)
        return int(self._output(args) or 0)

    def ahead_behind(self, base: str, head: str = "HEAD") -> Tuple[int, int]:
        """Return (ahead, behind) of head relative to base."""
        output = self._output(
            ["git", "rev-list", "--left-right", "--count", f"{base}...{head}"]
        )
        behind, ahead = (int(part) for part in output.split())
        return ahead, behind

    def unpushed_commits(self, branch: str) -> List[str]:
        """Return one-line summaries of commits not on the remote branch.

        Raises:
            GitError: If the remote branch does not exist
        """
        return self._lines(
            ["git", "log", f"{self.remote}/{branch}..HEAD", "--oneline"]
        )

    # Remote mutations

    def push_branch(self, branch_name: str, set_upstream: bool = True) -> None:
        """Push branch to remote, optionally with upstream tracking.

        Raises:
            GitError: If push fails
        """
        args = ["git", "push"]
        if set_upstream:
            args.append("-u")
        args.extend([self.remote, branch_name])
        self._run_git_command(args)

    def push_with_upstream_fallback(self, branch_name: str) -> dict:
        """Push a branch, retrying with upstream creation on first failure.

        Returns:
            Dict with success flag, branch, remote, and set_upstream or error
        """
        try:
            self.push_branch(branch_name, set_upstream=False)
            return {"success": True, "branch": branch_name, "remote": self.remote}
        except GitError as first_error:
            try:
                self.push_branch(branch_name, set_upstream=True)
                return {
                    "success": True,
                    "branch": branch_name,
                    "remote": self.remote,
                    "set_upstream": True,
                }
            except GitError:
                return {
                    "success": False,
                    "branch": branch_name,
                    "remote": self.remote,
                    "error": str(first_error),
                }

    # Working copy mutations

    def staged_files(self) -> List[str]:
        return self._lines(["git", "diff", "--cached", "--name-only"])

    def unstaged_files(self) -> List[str]:
        return self._lines(["git", "diff", "--name-only"])

    def untracked_files(self) -> List[str]:
        return self._lines(["git", "ls-files", "--others", "--exclude-standard"])

    def stage_all(self) -> None:
        self._run_git_command(["git", "add", "-A"])

    def stage_modified(self) -> None:
        self._run_git_command(["git", "add", "-u"])

    def commit(self, message: str) -> str:
        """Create a commit from the index and return its SHA."""
        self._run_git_command(["git", "commit", "-m", message])
        return self.rev_parse("HEAD")

    def last_commit_author(self) -> str:
        return self._output(["git", "log", "-1", "--format=%an <%ae>"])

    def checkout(self, ref: str) -> None:
        self._run_git_command(["git", "checkout", ref])

    def create_scratch_branch(self, branch_name: str) -> None:
        """Create and check out a throwaway branch at HEAD."""
        self._run_git_command(["git", "checkout", "-b", branch_name])

    def merge_no_commit(self, ref: str) -> subprocess.CompletedProcess:
        """Attempt a merge without committing; never raises on conflicts."""
        return self._run_git_command(
            ["git", "merge", "--no-commit", "--no-ff", ref], check=False
        )

    def merge_abort(self) -> None:
        result = self._run_git_command(["git", "merge", "--abort"], check=False)
        if result.returncode != 0 and "MERGE_HEAD missing" not in result.stderr:
            raise GitError(f"Failed to abort merge: {result.stderr}")

    def conflicted_files(self) -> List[str]:
        return self._lines(["git", "diff", "--name-only", "--diff-filter=U"])

    def delete_branch(self, branch_name: str) -> None:
        """Delete a local branch; a branch that no longer exists is not an error.

        Raises:
            GitError: If deletion fails for any other reason
        """
        result = self._run_git_command(["git", "branch", "-D", branch_name], check=False)
        if result.returncode != 0 and "not found" not in result.stderr:
            raise GitError(f"Failed to delete local branch '{branch_name}': {result.stderr}")
