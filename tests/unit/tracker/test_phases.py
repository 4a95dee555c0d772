"""Tests for phase inference and the transition table."""

import pytest

from codescribe.tracker.models import Phase, TransitionEvent
from codescribe.tracker.phases import (
    DEFAULT_TRANSITIONS,
    infer_phase,
    merge_transitions,
    phase_event,
    resolve_target,
)


def with_review(context, **pr):
    """Record a code-review result holding the given PR fields."""
    fields = {"number": 7, "state": "open", "merged": False, "review_comments": 0}
    fields.update(pr)
    context.record("code-review", {"pr": fields, "owner": "acme", "repo": "webapp", "is_update": True})
    return context


class TestInferPhase:
    """Test infer_phase ordering."""

    def test_merged_pr_is_completed(self, make_context):
        """Test that a merged change-request wins over everything else."""
        context = with_review(make_context(), merged=True, state="closed", review_comments=3)
        assert infer_phase(context) == Phase.COMPLETED

    def test_open_pr_with_comments_is_changes_requested(self, make_context):
        """Test that review comments on an open PR mean changes requested."""
        context = with_review(make_context(), review_comments=2)
        assert infer_phase(context) == Phase.CHANGES_REQUESTED

    def test_open_pr_with_requested_changes_flag(self, make_context):
        """Test that a CHANGES_REQUESTED review marks changes requested."""
        context = with_review(make_context(), changes_requested=True)
        assert infer_phase(context) == Phase.CHANGES_REQUESTED

    def test_open_pr_without_feedback_is_in_review(self, make_context):
        """Test that a clean open PR is in review."""
        context = with_review(make_context())
        assert infer_phase(context) == Phase.IN_REVIEW

    def test_commits_without_pr_is_development(self, make_context):
        """Test that branch commits with no PR mean development."""
        assert infer_phase(make_context()) == Phase.DEVELOPMENT

    def test_feature_branch_without_commits_is_started(self, make_context):
        """Test that an empty feature branch is started."""
        assert infer_phase(make_context(commits=[])) == Phase.STARTED

    def test_integration_branch_without_commits_is_unknown(self, make_context):
        """Test that nothing matches on the integration branch itself."""
        assert infer_phase(make_context(branch="main", commits=[])) == Phase.UNKNOWN

    def test_closed_unmerged_pr_falls_through(self, make_context):
        """Test that a closed unmerged PR is ignored in favor of commit state."""
        context = with_review(make_context(), state="closed")
        assert infer_phase(context) == Phase.DEVELOPMENT

    def test_error_result_is_ignored(self, make_context):
        """Test that a non-critical error slot does not count as a PR."""
        context = make_context()
        context.record("code-review", {"error": "boom"})
        assert infer_phase(context) == Phase.DEVELOPMENT


class TestPhaseEvent:
    """Test phase to event mapping."""

    @pytest.mark.parametrize(
        "phase,event",
        [
            (Phase.STARTED, TransitionEvent.BRANCH_CREATED),
            (Phase.DEVELOPMENT, TransitionEvent.FIRST_COMMIT),
            (Phase.IN_REVIEW, TransitionEvent.PR_CREATED),
            (Phase.CHANGES_REQUESTED, TransitionEvent.PR_CHANGES_REQUESTED),
            (Phase.COMPLETED, TransitionEvent.PR_MERGED),
            (Phase.UNKNOWN, None),
        ],
    )
    def test_mapping(self, phase, event):
        """Test each phase raises its event."""
        assert phase_event(phase) == event

    def test_approved_review_raises_approved(self, make_context):
        """Test that an approved open PR raises onPRApproved."""
        context = with_review(make_context(), approved=True)
        assert phase_event(Phase.IN_REVIEW, context) == TransitionEvent.PR_APPROVED


class TestTransitionTable:
    """Test merge_transitions and resolve_target."""

    def test_default_rows(self):
        """Test the default table's key transitions."""
        assert DEFAULT_TRANSITIONS["Todo"]["onBranchCreated"] == "In Progress"
        assert DEFAULT_TRANSITIONS["In Progress"]["onPRCreated"] == "In Review"
        assert DEFAULT_TRANSITIONS["In Review"]["onPRChangesRequested"] == "In Progress"
        assert DEFAULT_TRANSITIONS["Ready for Deploy"]["onPRMerged"] == "Done"

    def test_override_updates_single_event(self):
        """Test that an override row merges into the default row."""
        table = merge_transitions({"In Progress": {"onPRCreated": "Code Review"}})

        assert table["In Progress"]["onPRCreated"] == "Code Review"
        assert table["In Progress"]["onPRMerged"] == "Done"

    def test_override_none_removes_event(self):
        """Test that a null target drops the event."""
        table = merge_transitions({"In Review": {"onPRApproved": None}})
        assert "onPRApproved" not in table["In Review"]

    def test_override_adds_new_state(self):
        """Test that an unknown state adds a new row."""
        table = merge_transitions({"QA": {"onPRMerged": "Done"}})
        assert table["QA"] == {"onPRMerged": "Done"}

    def test_merge_does_not_mutate_defaults(self):
        """Test that merging leaves DEFAULT_TRANSITIONS untouched."""
        merge_transitions({"Todo": {"onBranchCreated": "Started"}})
        assert DEFAULT_TRANSITIONS["Todo"]["onBranchCreated"] == "In Progress"

    def test_resolve_matches_state_case_insensitively(self):
        """Test that state names match regardless of case."""
        target = resolve_target(DEFAULT_TRANSITIONS, "in progress", TransitionEvent.PR_CREATED)
        assert target == "In Review"

    def test_resolve_unknown_state_or_event(self):
        """Test that missing rows, events or None events resolve to None."""
        assert resolve_target(DEFAULT_TRANSITIONS, "Canceled", TransitionEvent.PR_MERGED) is None
        assert resolve_target(DEFAULT_TRANSITIONS, "In Review", TransitionEvent.BRANCH_CREATED) is None
        assert resolve_target(DEFAULT_TRANSITIONS, "Todo", None) is None
