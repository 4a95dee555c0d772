"""Tests for the commit workflow."""

from unittest.mock import MagicMock

import pytest

from codescribe.adapters.linear import LinearAPIError
from codescribe.analysis.code import classify_file
from codescribe.analysis.models import FileStatus
from codescribe.workflows.commit import (
    CommitWorkflow,
    categorize,
    change_summary,
    determine_scope,
)
from codescribe.workflows.models import CommandOptions

SHA = "0123456789abcdef0123456789abcdef01234567"


@pytest.fixture
def repo_dir(tmp_path):
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "login.js").write_text("export function login(user) {\n  if (!user) { return null; }\n  return user;\n}\n")
    (tmp_path / "src" / "styles.css").write_text("body { margin: 0; }\n")
    return tmp_path


@pytest.fixture
def git(repo_dir):
    git = MagicMock()
    git.repo_path = str(repo_dir)
    git.staged_files.return_value = []
    git.unstaged_files.return_value = ["src/login.js"]
    git.untracked_files.return_value = ["src/styles.css"]
    git.working_numstat.return_value = [(12, 3, "src/login.js")]
    git.working_name_status.return_value = ["M\tsrc/login.js"]
    git.working_diff.return_value = "diff --git a/src/login.js b/src/login.js\n"
    git.commit.return_value = SHA
    git.last_commit_author.return_value = "Test User <test@example.com>"
    git.push_with_upstream_fallback.return_value = {"success": True, "used_fallback": False}
    return git


@pytest.fixture
def ai():
    ai = MagicMock()
    ai.is_available.return_value = False
    return ai


@pytest.fixture
def workflow(isolated_config, repo_dir, git, ai):
    return CommitWorkflow(isolated_config(), git=git, ai=ai)


class TestHelpers:
    """Test path categorization and scope."""

    @pytest.mark.parametrize(
        "path,category",
        [
            ("src/login.test.js", "test"),
            ("README.md", "docs"),
            ("config/app.yml", "config"),
            ("src/styles.scss", "style"),
            ("src/login.tsx", "code"),
            ("Makefile", "other"),
        ],
    )
    def test_categorize(self, path, category):
        """Test category per path."""
        assert categorize(path) == category

    def test_scope_single_directory(self):
        """Test one shared top-level directory becomes the scope."""
        files = [classify_file("web/a.js", FileStatus.MODIFIED), classify_file("web/b/c.js", FileStatus.ADDED)]
        assert determine_scope(files) == "web"

    def test_scope_from_common_names(self):
        """Test a common scope is used across directories."""
        files = [classify_file("src/auth/login.js", FileStatus.MODIFIED), classify_file("index.js", FileStatus.MODIFIED)]
        assert determine_scope(files) == "auth"

    def test_no_scope(self):
        """Test no scope when nothing matches."""
        assert determine_scope([classify_file("index.js", FileStatus.MODIFIED)]) is None

    def test_change_summary(self):
        """Test summaries for one and many files."""
        one = [classify_file("src/a.js", FileStatus.MODIFIED)]
        many = one + [classify_file("src/b.css", FileStatus.MODIFIED)]
        assert change_summary(one, ["code"]) == "Update src/a.js"
        assert change_summary(many, ["code", "style"]) == "Update 2 files (code, style)"


class TestAnalyzeChanges:
    """Test CommitWorkflow.analyze_changes."""

    def test_includes_untracked_files(self, workflow):
        """Test modified and untracked files are both analyzed."""
        analysis = workflow.analyze_changes()

        assert [(f.path, f.status) for f in analysis.files] == [
            ("src/login.js", FileStatus.MODIFIED),
            ("src/styles.css", FileStatus.ADDED),
        ]
        assert analysis.additions == 12
        assert analysis.deletions == 3
        assert analysis.categories == ["code", "style"]
        assert analysis.scope == "src"
        assert analysis.complexity.files[0].path == "src/login.js"
        assert analysis.complexity.files[0].functions == 1

    def test_manifest_changes_are_parsed(self, workflow, git, repo_dir):
        """Test a changed package.json yields a dependency delta."""
        (repo_dir / "package.json").write_text('{"dependencies": {"react": "^18.2.0"}}\n')
        git.working_name_status.return_value = ["M\tpackage.json"]
        git.untracked_files.return_value = []
        git.working_diff.return_value = (
            "diff --git a/package.json b/package.json\n"
            "--- a/package.json\n"
            "+++ b/package.json\n"
            "@@ -1,3 +1,3 @@\n"
            '   "dependencies": {\n'
            '-    "react": "^17.0.2"\n'
            '+    "react": "^18.2.0"\n'
            "   }\n"
        )

        analysis = workflow.analyze_changes()

        git.working_diff.assert_called_with("package.json")
        assert [d.name for d in analysis.dependencies.breaking_changes] == ["react"]


class TestBuildMessage:
    """Test commit message selection."""

    def test_user_message_gets_ticket_prefix(self, workflow, make_context):
        """Test the ticket id is prefixed to a user message."""
        details = workflow.build_message(make_context(), workflow.analyze_changes(), CommandOptions(message="fix login"))
        assert details == {"message": "ABC-12: fix login", "source": "user"}

    def test_user_message_with_ticket_is_kept(self, workflow, make_context):
        """Test a message already naming the ticket is unchanged."""
        options = CommandOptions(message="feat: ABC-12 add login")
        details = workflow.build_message(make_context(), workflow.analyze_changes(), options)
        assert details["message"] == "feat: ABC-12 add login"

    def test_ai_message(self, workflow, ai, git, make_context):
        """Test the AI engine is used when available."""
        ai.is_available.return_value = True
        ai.generate_commit_message.return_value = {"message": "feat(auth): ABC-12 add login"}

        details = workflow.build_message(make_context(), workflow.analyze_changes(), CommandOptions())

        assert details == {"message": "feat(auth): ABC-12 add login", "source": "ai"}
        assert ai.generate_commit_message.call_args.kwargs["diff"] == git.working_diff.return_value

    def test_template_message(self, workflow, make_context):
        """Test the conventional template without AI."""
        details = workflow.build_message(make_context(), workflow.analyze_changes(), CommandOptions())

        assert details["source"] == "template"
        assert details["message"].startswith("feat(src): ABC-12 - ")
        assert "Changes: +12/-3 lines across 2 files" in details["message"]

    def test_plain_message_when_not_conventional(self, isolated_config, git, ai, make_context):
        """Test conventionalCommits false drops the type prefix."""
        config = isolated_config({"workflows": {"commit": {"conventionalCommits": False}}})
        workflow = CommitWorkflow(config, git=git, ai=ai)

        details = workflow.build_message(make_context(), workflow.analyze_changes(), CommandOptions())

        assert details["message"].startswith("ABC-12 - ")
        assert "\n" not in details["message"]


class TestExecute:
    """Test CommitWorkflow.execute."""

    def test_no_changes_is_skipped(self, workflow, git, make_context):
        """Test a clean working copy is skipped."""
        git.unstaged_files.return_value = []
        git.untracked_files.return_value = []

        result = workflow.execute(make_context(), CommandOptions())

        assert result == {"skipped": True, "reason": "no_changes"}
        git.commit.assert_not_called()

    def test_commit_and_push(self, workflow, git, make_context):
        """Test staging, committing and pushing."""
        result = workflow.execute(make_context(), CommandOptions(message="add login"))

        git.stage_all.assert_called_once()
        git.commit.assert_called_once_with("ABC-12: add login")
        git.push_with_upstream_fallback.assert_called_once_with("feature/ABC-12-add-login")
        assert result["commit"]["short_sha"] == "0123456"
        assert result["commit"]["pushed"] is True
        assert result["commit"]["files"] == 2
        assert result["ticket"] is None

    def test_no_push(self, workflow, git, make_context):
        """Test push false skips pushing."""
        result = workflow.execute(make_context(), CommandOptions(message="add login", push=False))

        git.push_with_upstream_fallback.assert_not_called()
        assert result["push"] is None

    def test_add_modified_stages_tracked_only(self, workflow, git, make_context):
        """Test --add-modified stages tracked files."""
        workflow.execute(make_context(), CommandOptions(message="x", add_modified=True, push=False))

        git.stage_modified.assert_called_once()
        git.stage_all.assert_not_called()

    def test_existing_staged_changes_are_kept(self, workflow, git, make_context):
        """Test nothing extra is staged when the index already has changes."""
        git.staged_files.return_value = ["src/login.js"]

        workflow.execute(make_context(), CommandOptions(message="x", push=False))

        git.stage_all.assert_not_called()
        git.stage_modified.assert_not_called()

    def test_ticket_comment(self, isolated_config, git, ai, make_context):
        """Test the ticket gets a commit comment when Linear is configured."""
        linear = MagicMock()
        linear.get_issue.return_value = {"id": "issue-uuid"}
        workflow = CommitWorkflow(isolated_config(), git=git, ai=ai, linear_client=linear)

        result = workflow.execute(make_context(), CommandOptions(message="add login", push=False))

        assert result["ticket"] == {"comment_added": True, "issue_id": "issue-uuid"}
        body = linear.create_comment.call_args[0][1]
        assert "💾 **New Commit**" in body
        assert "`0123456`" in body

    def test_ticket_failure_is_contained(self, isolated_config, git, ai, make_context):
        """Test a tracker failure does not fail the commit."""
        linear = MagicMock()
        linear.get_issue.side_effect = LinearAPIError("unauthorized", status=401)
        workflow = CommitWorkflow(isolated_config(), git=git, ai=ai, linear_client=linear)

        result = workflow.execute(make_context(), CommandOptions(message="add login", push=False))

        assert result["commit"]["sha"] == SHA
        assert result["ticket"] == {"comment_added": False, "error": "unauthorized"}
