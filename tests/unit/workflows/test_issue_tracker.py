"""Tests for the issue-tracker workflow."""

from unittest.mock import MagicMock

from codescribe.tracker.time_tracking import InMemoryTimeStore, JsonTimeStore
from codescribe.workflows.issue_tracker import IssueTrackerWorkflow
from codescribe.workflows.models import CommandOptions


class TestIssueTrackerWorkflow:
    """Test IssueTrackerWorkflow."""

    def test_depends_on_code_review(self):
        """Test the workflow is scheduled after code-review."""
        assert IssueTrackerWorkflow.dependencies == ("code-review",)
        assert IssueTrackerWorkflow.critical is True

    def test_skipped_without_api_key(self, isolated_config, make_context):
        """Test a missing LINEAR_API_KEY skips the workflow."""
        workflow = IssueTrackerWorkflow(isolated_config())
        assert workflow.skip_reason(make_context()) == "LINEAR_API_KEY is not set"

    def test_skipped_without_ticket(self, isolated_config, make_context):
        """Test a context without ticket identifier is skipped."""
        workflow = IssueTrackerWorkflow(isolated_config(), client=MagicMock())
        assert workflow.skip_reason(make_context(ticket_id="")) == "no ticket identifier"

    def test_time_store_selection(self, isolated_config):
        """Test the in-memory store is the default and timeStore selects a file."""
        assert isinstance(IssueTrackerWorkflow(isolated_config()).time_store, InMemoryTimeStore)

        config = isolated_config({"workflows": {"issue-tracker": {"timeStore": ".codescribe/time.json"}}})
        store = IssueTrackerWorkflow(config).time_store
        assert isinstance(store, JsonTimeStore)
        assert store.path == config.cwd / ".codescribe" / "time.json"

    def test_execute_runs_state_machine(self, isolated_config, make_context):
        """Test execute drives the ticket through the state machine."""
        client = MagicMock()
        client.get_issue.return_value = {
            "id": "issue-uuid",
            "identifier": "ABC-12",
            "state": {"name": "Todo"},
            "team": {"id": "team-uuid"},
        }
        client.get_team_states.return_value = [{"id": "state-progress", "name": "In Progress"}]
        workflow = IssueTrackerWorkflow(isolated_config(), client=client)

        result = workflow.execute(make_context(), CommandOptions())

        assert result["ticket_id"] == "ABC-12"
        assert result["status_transition"]["to_state"] == "In Progress"
        client.update_issue_state.assert_called_once_with("issue-uuid", "state-progress")
        client.create_comment.assert_called_once()
