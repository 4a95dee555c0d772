"""Tests for the Typer command layer."""

from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from codescribe.analysis.analyzer import NoChangesError
from codescribe.app import app
from codescribe.commands.init import PROJECT_CONFIG_FILE
from codescribe.workflows.models import CommandOptions

runner = CliRunner()

PR_OUTCOME = {
    "results": {
        "code-review": {"pr": {"number": 7, "html_url": "https://github.com/acme/webapp/pull/7"}, "is_update": False},
        "issue-tracker": {
            "ticket_id": "ABC-12",
            "status_transition": {"success": True, "from_state": "Todo", "to_state": "In Review"},
        },
    },
    "skipped": {},
}


@pytest.fixture
def project(tmp_path, isolated_config):
    """A project root marked by a .git directory."""
    root = tmp_path / "webapp"
    (root / ".git").mkdir(parents=True)
    return root


@pytest.fixture
def engine_cls():
    with patch("codescribe.commands.run.CodeScribe") as mock_cls:
        yield mock_cls


class TestInitCommand:
    """Test the init command."""

    def test_creates_config(self, project):
        """Test a default config file is written at the project root."""
        result = runner.invoke(app, ["init", "--project-dir", str(project)])

        assert result.exit_code == 0
        assert (project / PROJECT_CONFIG_FILE).read_text().startswith("# CodeScribe Configuration")
        assert "CodeScribe Initialized" in result.output

    def test_existing_config_exits_1(self, project):
        """Test an existing config is not overwritten."""
        (project / PROJECT_CONFIG_FILE).write_text("[git]\n")

        result = runner.invoke(app, ["init", "-p", str(project)])

        assert result.exit_code == 1
        assert "Configuration already exists" in result.output
        assert (project / PROJECT_CONFIG_FILE).read_text() == "[git]\n"

    def test_force_overwrites(self, project):
        """Test --force replaces an existing config."""
        (project / PROJECT_CONFIG_FILE).write_text("[git]\n")

        result = runner.invoke(app, ["init", "--force", "-p", str(project)])

        assert result.exit_code == 0
        assert "defaultBranch" in (project / PROJECT_CONFIG_FILE).read_text()

    def test_show_does_not_write(self, project):
        """Test --show prints the template only."""
        result = runner.invoke(app, ["init", "--show", "-p", str(project)])

        assert result.exit_code == 0
        assert "Default configuration" in result.output
        assert not (project / PROJECT_CONFIG_FILE).exists()


class TestRunCommands:
    """Test the pull request and ticket commands."""

    def test_default_reports_results(self, project, engine_cls):
        """Test results are printed and options are forwarded."""
        engine_cls.return_value.execute.return_value = PR_OUTCOME

        result = runner.invoke(app, ["default", "--no-push", "-p", str(project)])

        assert result.exit_code == 0
        engine_cls.return_value.execute.assert_called_once_with("default", CommandOptions(push=False))
        assert "Pull request #7 created" in result.output
        assert "Ticket ABC-12 updated" in result.output

    @pytest.mark.parametrize("command", ["pr", "code-review-only", "issue-tracker-only"])
    def test_command_names(self, project, engine_cls, command):
        """Test each command runs under its own name."""
        engine_cls.return_value.execute.return_value = {"results": {}, "skipped": {}}

        result = runner.invoke(app, [command, "-p", str(project)])

        assert result.exit_code == 0
        assert engine_cls.return_value.execute.call_args.args[0] == command

    def test_no_command_runs_default(self, project, engine_cls, monkeypatch):
        """Test invoking without a command runs the default pair."""
        monkeypatch.chdir(project)
        engine_cls.return_value.execute.return_value = {"results": {}, "skipped": {}}

        result = runner.invoke(app, [])

        assert result.exit_code == 0
        engine_cls.return_value.execute.assert_called_once_with("default", CommandOptions())

    def test_commit_flags(self, project, engine_cls):
        """Test commit flags map onto options."""
        engine_cls.return_value.execute.return_value = {
            "results": {"commit": {"skipped": True, "reason": "no_changes"}},
            "skipped": {},
        }

        result = runner.invoke(app, ["commit", "-m", "fix login", "--all", "--no-push", "-p", str(project)])

        assert result.exit_code == 0
        engine_cls.return_value.execute.assert_called_once_with(
            "commit", CommandOptions(message="fix login", add_all=True, push=False)
        )
        assert "Nothing to commit" in result.output

    def test_failure_exits_1_with_hint(self, project, engine_cls):
        """Test a failure prints an error and a remediation hint."""
        engine_cls.return_value.execute.side_effect = NoChangesError("No new commits found")

        result = runner.invoke(app, ["default", "-p", str(project)])

        assert result.exit_code == 1
        assert "ERROR: No new commits found" in result.output
        assert "Commit your work on this branch" in result.output

    def test_contained_failure_is_reported(self, project, engine_cls):
        """Test a non-critical workflow error is shown without failing."""
        engine_cls.return_value.execute.return_value = {
            "results": {"issue-tracker": {"error": "Linear unavailable"}},
            "skipped": {"code-review": {"skipped": True, "reason": "disabled"}},
        }

        result = runner.invoke(app, ["default", "-p", str(project)])

        assert result.exit_code == 0
        assert "issue-tracker failed" in result.output
        assert "code-review skipped: disabled" in result.output

    def test_interrupt_exits_0(self, project, engine_cls):
        """Test a keyboard interrupt exits cleanly."""
        engine_cls.return_value.execute.side_effect = KeyboardInterrupt()

        result = runner.invoke(app, ["default", "-p", str(project)])

        assert result.exit_code == 0
        assert "Interrupted" in result.output
