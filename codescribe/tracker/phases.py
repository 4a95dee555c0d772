"""Phase inference and the ticket transition table."""

from __future__ import annotations

import copy
from typing import Any, Optional

from codescribe.analysis.models import Context
from codescribe.tracker.models import Phase, TransitionEvent

E = TransitionEvent

_BACKLOG_ROW = {
    E.BRANCH_CREATED.value: "In Progress",
    E.FIRST_COMMIT.value: "In Progress",
    E.PR_CREATED.value: "In Review",
    E.PR_APPROVED.value: "Ready for Deploy",
    E.PR_MERGED.value: "Done",
}

DEFAULT_TRANSITIONS: dict[str, dict[str, str]] = {
    "Todo": dict(_BACKLOG_ROW),
    "Backlog": dict(_BACKLOG_ROW),
    "In Progress": {
        E.PR_CREATED.value: "In Review",
        E.PR_APPROVED.value: "Ready for Deploy",
        E.PR_MERGED.value: "Done",
    },
    "In Review": {
        E.PR_APPROVED.value: "Ready for Deploy",
        E.PR_MERGED.value: "Done",
        E.PR_CHANGES_REQUESTED.value: "In Progress",
    },
    "Ready for Deploy": {
        E.PR_MERGED.value: "Done",
    },
}


def review_request(context: Context) -> Optional[dict[str, Any]]:
    """The change-request recorded by the code-review workflow, if any."""
    result = context.get_result("code-review")
    if not isinstance(result, dict):
        return None
    pr = result.get("pr")
    return pr if isinstance(pr, dict) else None


def infer_phase(context: Context) -> Phase:
    """Derive the development phase from the Context.

    Checked in order: merged review, open review with requested changes or
    comments, any other open review, branch commits, non-integration branch.
    """
    pr = review_request(context)
    if pr:
        if pr.get("merged"):
            return Phase.COMPLETED
        if pr.get("state", "open") == "open":
            if pr.get("changes_requested") or pr.get("review_comments", 0) > 0:
                return Phase.CHANGES_REQUESTED
            return Phase.IN_REVIEW

    if context.git.commits:
        return Phase.DEVELOPMENT
    if context.git.branch and context.git.branch != context.git.integration_branch:
        return Phase.STARTED
    return Phase.UNKNOWN


def phase_event(phase: Phase, context: Optional[Context] = None) -> Optional[TransitionEvent]:
    """Map a phase to the transition event it raises."""
    if phase == Phase.IN_REVIEW:
        pr = review_request(context) if context is not None else None
        if pr and pr.get("approved"):
            return TransitionEvent.PR_APPROVED
        return TransitionEvent.PR_CREATED
    return {
        Phase.STARTED: TransitionEvent.BRANCH_CREATED,
        Phase.DEVELOPMENT: TransitionEvent.FIRST_COMMIT,
        Phase.CHANGES_REQUESTED: TransitionEvent.PR_CHANGES_REQUESTED,
        Phase.COMPLETED: TransitionEvent.PR_MERGED,
    }.get(phase)


def merge_transitions(overrides: Optional[dict] = None) -> dict[str, dict[str, str]]:
    """Merge per-project rows over the defaults.

    Each override row updates the default row of the same state; a null
    target removes that event from the row.
    """
    table = copy.deepcopy(DEFAULT_TRANSITIONS)
    for state, row in (overrides or {}).items():
        merged = table.setdefault(state, {})
        for event, target in (row or {}).items():
            if target is None:
                merged.pop(event, None)
            else:
                merged[event] = target
    return table


def resolve_target(
    table: dict[str, dict[str, str]], current_state: str, event: Optional[TransitionEvent]
) -> Optional[str]:
    """Look up the target state; state names match case-insensitively."""
    if event is None:
        return None
    row = table.get(current_state)
    if row is None:
        lowered = current_state.lower()
        row = next((r for name, r in table.items() if name.lower() == lowered), None)
    if not row:
        return None
    return row.get(event.value)
