"""Unit tests for GitOperations with mocked subprocess calls."""

import subprocess
from unittest.mock import patch

import pytest

from codescribe.vcs.git_operations import Commit, GitError, GitOperations


def _completed(stdout="", returncode=0, stderr=""):
    return subprocess.CompletedProcess(
        args=["git"], returncode=returncode, stdout=stdout, stderr=stderr
    )


class TestGitOperations:
    """Test GitOperations class."""

    def test_initialization_default(self):
        """Test default initialization."""
        ops = GitOperations()
        assert ops.repo_path is None
        assert ops.remote == "origin"

    def test_integration_ref(self):
        """Test remote-tracking ref construction."""
        ops = GitOperations(remote="upstream")
        assert ops.integration_ref("main") == "upstream/main"


class TestRunGitCommand:
    """Test _run_git_command helper method."""

    @patch("subprocess.run")
    def test_successful_command(self, mock_run):
        """Test successful git command execution."""
        mock_run.return_value = _completed("output")

        ops = GitOperations(repo_path="/path/to/repo")
        result = ops._run_git_command(["git", "status"])

        assert result.stdout == "output"
        mock_run.assert_called_once_with(
            ["git", "status"],
            cwd="/path/to/repo",
            capture_output=True,
            text=True,
            check=False,
        )

    @patch("subprocess.run")
    def test_failed_command_with_check(self, mock_run):
        """Test that failed command raises GitError when check=True."""
        mock_run.return_value = _completed(returncode=128, stderr="fatal: bad revision")

        ops = GitOperations()
        with pytest.raises(GitError) as exc_info:
            ops._run_git_command(["git", "diff", "origin/main...HEAD"])

        assert "Git command failed" in str(exc_info.value)
        assert "fatal: bad revision" in str(exc_info.value)

    @patch("subprocess.run")
    def test_git_not_found(self, mock_run):
        """Test error when git executable is not found."""
        mock_run.side_effect = FileNotFoundError("git not found")

        with pytest.raises(GitError) as exc_info:
            GitOperations()._run_git_command(["git", "status"])

        assert "Git executable not found" in str(exc_info.value)

    @patch("subprocess.run")
    def test_unexpected_exception(self, mock_run):
        """Test handling of unexpected exceptions."""
        mock_run.side_effect = RuntimeError("boom")

        with pytest.raises(GitError) as exc_info:
            GitOperations()._run_git_command(["git", "status"])

        assert "Unexpected error running git command" in str(exc_info.value)


class TestReadOperations:
    """Test branch, remote, and diff reads."""

    @patch("subprocess.run")
    def test_current_branch(self, mock_run):
        mock_run.return_value = _completed("feature/ABC-12-add-login\n")

        assert GitOperations().current_branch() == "feature/ABC-12-add-login"
        assert mock_run.call_args[0][0] == ["git", "rev-parse", "--abbrev-ref", "HEAD"]

    @patch("subprocess.run")
    def test_remote_url_missing_returns_empty(self, mock_run):
        """Test that a missing remote yields an empty string instead of raising."""
        mock_run.return_value = _completed("", returncode=1)

        assert GitOperations().remote_url() == ""

    @patch("subprocess.run")
    def test_diff_uses_three_dot_range(self, mock_run):
        mock_run.return_value = _completed("diff --git a/x b/x\n")

        GitOperations().diff("origin/main")

        assert mock_run.call_args[0][0] == ["git", "diff", "origin/main...HEAD"]

    @patch("subprocess.run")
    def test_diff_numstat_handles_binary(self, mock_run):
        """Test that binary entries report zero counts."""
        mock_run.return_value = _completed("40\t5\tsrc/login.js\n-\t-\tlogo.png\n")

        stats = GitOperations().diff_numstat("origin/main")

        assert stats == [(40, 5, "src/login.js"), (0, 0, "logo.png")]

    @patch("subprocess.run")
    def test_ahead_behind(self, mock_run):
        """Test that left/right counts map to (ahead, behind)."""
        mock_run.return_value = _completed("2\t7\n")

        ahead, behind = GitOperations().ahead_behind("origin/main")

        assert ahead == 7
        assert behind == 2

    @patch("subprocess.run")
    def test_count_commits_merges_only(self, mock_run):
        mock_run.return_value = _completed("3\n")

        assert GitOperations().count_commits("abc..HEAD", merges_only=True) == 3
        assert mock_run.call_args[0][0] == [
            "git",
            "rev-list",
            "--count",
            "--merges",
            "abc..HEAD",
        ]


class TestLogCommits:
    """Test commit log parsing."""

    @patch("subprocess.run")
    def test_parses_records(self, mock_run):
        """Test that subject and body are split per record."""
        output = (
            "aaa\x1fAda\x1f2024-01-02T10:00:00+00:00\x1ffeat: add login\x1fBody line\n\x1e\n"
            "bbb\x1fAda\x1f2024-01-01T10:00:00+00:00\x1fwip\x1f\x1e\n"
        )
        mock_run.return_value = _completed(output)

        commits = GitOperations().log_commits("abc..HEAD")

        assert commits == [
            Commit(
                hash="aaa",
                message="feat: add login",
                body="Body line",
                author="Ada",
                date="2024-01-02T10:00:00+00:00",
            ),
            Commit(
                hash="bbb",
                message="wip",
                body="",
                author="Ada",
                date="2024-01-01T10:00:00+00:00",
            ),
        ]
        assert "--no-merges" in mock_run.call_args[0][0]

    def test_full_message_joins_body(self):
        commit = Commit(hash="a", message="feat!: drop api", body="BREAKING CHANGE: gone")
        assert commit.full_message == "feat!: drop api\n\nBREAKING CHANGE: gone"

    @patch("subprocess.run")
    def test_empty_log(self, mock_run):
        mock_run.return_value = _completed("")
        assert GitOperations().log_commits("abc..HEAD") == []


class TestPush:
    """Test push helpers."""

    @patch("subprocess.run")
    def test_push_branch_with_upstream(self, mock_run):
        mock_run.return_value = _completed()

        GitOperations().push_branch("feature/ABC-1-x")

        assert mock_run.call_args[0][0] == ["git", "push", "-u", "origin", "feature/ABC-1-x"]

    @patch("subprocess.run")
    def test_push_fallback_sets_upstream(self, mock_run):
        """Test that the second attempt creates the upstream branch."""
        mock_run.side_effect = [
            _completed(returncode=1, stderr="no upstream"),
            _completed(),
        ]

        result = GitOperations().push_with_upstream_fallback("feature/ABC-1-x")

        assert result["success"] is True
        assert result["set_upstream"] is True
        assert mock_run.call_args_list[1][0][0] == [
            "git",
            "push",
            "-u",
            "origin",
            "feature/ABC-1-x",
        ]

    @patch("subprocess.run")
    def test_push_fallback_reports_failure(self, mock_run):
        """Test that two failures are reported rather than raised."""
        mock_run.return_value = _completed(returncode=1, stderr="rejected")

        result = GitOperations().push_with_upstream_fallback("feature/ABC-1-x")

        assert result["success"] is False
        assert "rejected" in result["error"]


class TestWorkingCopy:
    """Test staging, committing, and scratch merge helpers."""

    @patch("subprocess.run")
    def test_commit_returns_sha(self, mock_run):
        mock_run.side_effect = [_completed("[main abc] msg\n"), _completed("abc123\n")]

        assert GitOperations().commit("feat: x") == "abc123"
        assert mock_run.call_args_list[0][0][0] == ["git", "commit", "-m", "feat: x"]

    @patch("subprocess.run")
    def test_merge_no_commit_never_raises(self, mock_run):
        """Test that a conflicting merge returns the failed process."""
        mock_run.return_value = _completed(returncode=1, stdout="CONFLICT (content)")

        result = GitOperations().merge_no_commit("origin/main")

        assert result.returncode == 1

    @patch("subprocess.run")
    def test_merge_abort_without_merge_is_ignored(self, mock_run):
        mock_run.return_value = _completed(
            returncode=128, stderr="fatal: There is no merge to abort (MERGE_HEAD missing)."
        )

        GitOperations().merge_abort()

    @patch("subprocess.run")
    def test_delete_missing_branch_is_idempotent(self, mock_run):
        mock_run.return_value = _completed(
            returncode=1, stderr="error: branch 'x' not found."
        )

        GitOperations().delete_branch("x")

    @patch("subprocess.run")
    def test_delete_branch_other_failure_raises(self, mock_run):
        mock_run.return_value = _completed(returncode=1, stderr="error: permission denied")

        with pytest.raises(GitError):
            GitOperations().delete_branch("x")
