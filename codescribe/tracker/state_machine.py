"""Ticket state machine: drives issue-tracker side effects from the Context.

One run performs, in order:
- Locate the issue for the branch's ticket identifier (fatal if missing)
- Infer the development phase and analyze progress
- Transition the ticket state through the transition table
- Advance time tracking and log finished sessions
- Detect scope drift and notify on high risk
- Suggest (and optionally create) sub-tickets
- Post one aggregate comment (fatal if it fails)

Every step between locating the issue and posting the summary is isolated:
its failure is recorded in its own result and the run continues.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from codescribe.adapters.linear import LinearAPIError, LinearClient
from codescribe.analysis.models import Context, RiskLevel
from codescribe.tracker import comments
from codescribe.tracker.models import Phase, ScopeChange, TransitionResult
from codescribe.tracker.phases import infer_phase, merge_transitions, phase_event, resolve_target
from codescribe.tracker.scope import detect_scope_change
from codescribe.tracker.sub_tickets import SubTicketPlanner
from codescribe.tracker.time_tracking import TimeTracker

logger = logging.getLogger(__name__)


class TicketNotFoundError(Exception):
    """Raised when the tracker has no issue for the ticket identifier."""

    pass


def progress_analysis(context: Context, phase: Phase) -> dict[str, Any]:
    """Summarize where the branch stands for the ticket comment."""
    code = context.code
    git = context.git
    blockers = []

    conflicts = git.conflict_detection
    if conflicts.get("risk_level") == "high":
        blockers.append(f"Merge conflicts predicted in {conflicts.get('conflict_count', 0)} files")
    behind = git.merge_base_analysis.get("behind", 0)
    if git.merge_base_analysis.get("needs_rebase"):
        blockers.append(f"Branch is {behind} commits behind {git.integration_branch}")
    if code.security.risk_level == RiskLevel.HIGH:
        blockers.append(f"{len(code.security.high_severity())} high-severity security findings")
    if code.dependencies.breaking_changes:
        blockers.append("Breaking dependency updates need migration")

    return {
        "phase": phase.value,
        "commits": len(git.commits),
        "files_changed": len(code.changed_files),
        "complexity_level": code.complexity.level.value,
        "average_complexity": code.complexity.average_score,
        "risk_level": code.security.risk_level.value,
        "blockers": blockers,
    }


class TicketStateMachine:
    """Maps the inferred phase onto issue-tracker state and side effects.

    Attributes:
        client: Issue-tracker adapter
        settings: The workflows.issue-tracker configuration table
        time_tracker: Per-ticket time accounting
        planner: Sub-ticket planner
    """

    def __init__(
        self,
        client: LinearClient,
        settings: dict[str, Any],
        time_tracker: Optional[TimeTracker] = None,
        planner: Optional[SubTicketPlanner] = None,
    ):
        self.client = client
        self.settings = settings
        self.transitions = merge_transitions(settings.get("transitions"))
        self.time_tracker = time_tracker or TimeTracker(track_efficiency=bool(settings.get("trackEfficiency")))
        self.planner = planner or SubTicketPlanner(
            complexity_threshold=settings.get("subTicketComplexityThreshold", 15),
            file_count_threshold=settings.get("subTicketFileCountThreshold", 8),
        )

    def run(self, context: Context) -> dict[str, Any]:
        """Synchronize the ticket with the Context.

        Raises:
            TicketNotFoundError: If the issue cannot be found
            LinearAPIError: If the issue lookup or the summary comment fails
        """
        ticket_id = context.ticket_id
        logger.info(f"Looking up ticket {ticket_id}")
        issue = self.client.get_issue(ticket_id)
        if issue is None:
            raise TicketNotFoundError(f"Could not find issue with identifier {ticket_id}")

        if context.linear.ticket_data is None:
            context.linear.set_ticket_data(issue)
        if context.linear.project_data is None and issue.get("project"):
            context.linear.set_project_data(issue["project"])

        phase = infer_phase(context)
        logger.info(f"Ticket {ticket_id} inferred phase: {phase.value}")
        progress = progress_analysis(context, phase)

        transition = self.transition(issue, phase, context)
        time_tracking = self.track_time(ticket_id, issue, phase)
        scope = self.check_scope(context, issue)
        sub_tickets = self.plan_sub_tickets(context, issue)

        comment_added = False
        if self.settings.get("addComments", True):
            body = comments.aggregate_comment(
                ticket_id,
                context.get_result("code-review"),
                context.ai,
                progress,
                transition=transition,
                time_tracking=time_tracking,
                scope=scope,
                sub_tickets=sub_tickets,
            )
            self.client.create_comment(issue["id"], body)
            comment_added = True
            logger.info(f"Ticket {ticket_id} updated with summary comment")

        return {
            "ticket_id": ticket_id,
            "issue_id": issue["id"],
            "comment_added": comment_added,
            "progress_analysis": progress,
            "status_transition": transition.to_dict(),
            "time_tracking": time_tracking,
            "scope_change": scope.to_dict() if scope else None,
            "sub_tickets": sub_tickets,
        }

    def transition(self, issue: dict[str, Any], phase: Phase, context: Context) -> TransitionResult:
        """Move the ticket to the state the table maps the phase to."""
        current = (issue.get("state") or {}).get("name", "")
        event = phase_event(phase, context)
        result = TransitionResult(from_state=current, event=event.value if event else None)

        if not self.settings.get("autoTransition", True):
            result.skipped, result.reason = True, "disabled"
            return result

        target = resolve_target(self.transitions, current, event)
        if target is None:
            result.skipped, result.reason = True, "no transition"
            return result
        result.to_state = target
        if target.lower() == current.lower():
            result.skipped, result.reason = True, "no change"
            return result

        try:
            team_id = (issue.get("team") or {}).get("id")
            states = self.client.get_team_states(team_id) if team_id else []
            state = next((s for s in states if s.get("name", "").lower() == target.lower()), None)
            if state is None:
                result.reason = "state not found"
                logger.warning(f"Workflow state '{target}' not found for team {team_id}")
                return result
            self.client.update_issue_state(issue["id"], state["id"])
        except LinearAPIError as e:
            result.reason = str(e)
            logger.warning(f"Ticket transition to '{target}' failed: {e}")
            return result

        result.success = True
        logger.info(f"Ticket moved from '{current}' to '{target}'")
        return result

    def track_time(self, ticket_id: str, issue: dict[str, Any], phase: Phase) -> dict[str, Any]:
        if not self.settings.get("trackTime", False):
            return {"action": "none", "skipped": True}

        try:
            result = self.time_tracker.update(ticket_id, phase, issue.get("estimate"))
        except (OSError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"Time tracking failed for {ticket_id}: {e}")
            return {"action": "none", "error": str(e)}

        if result.pop("should_log", False):
            try:
                self.client.create_comment(issue["id"], comments.time_log_comment(ticket_id, result))
                result["logged"] = True
            except LinearAPIError as e:
                logger.warning(f"Failed to log time on {ticket_id}: {e}")
                result["logged"] = False
                result["error"] = str(e)
        return result

    def check_scope(self, context: Context, issue: dict[str, Any]) -> Optional[ScopeChange]:
        if not self.settings.get("detectScopeChanges", True):
            return None

        scope = detect_scope_change(context, issue.get("estimate"))
        if scope.changed:
            logger.info(f"Scope change detected ({scope.risk_level.value} risk)")
        if scope.risk_level == RiskLevel.HIGH and self.settings.get("notifyOnScopeChange", True):
            try:
                self.client.create_comment(issue["id"], comments.scope_comment(context.ticket_id, scope))
                scope.notified = True
            except LinearAPIError as e:
                logger.warning(f"Scope change notification failed: {e}")
                scope.error = str(e)
        return scope

    def plan_sub_tickets(self, context: Context, issue: dict[str, Any]) -> dict[str, Any]:
        reasons = self.planner.trigger_reasons(context)
        if not reasons:
            return {"triggered": False, "suggestions": [], "created": []}

        suggestions = self.planner.suggest(context, issue)
        result: dict[str, Any] = {
            "triggered": True,
            "reasons": reasons,
            "suggestions": [s.to_dict() for s in suggestions],
            "created": [],
        }
        if self.settings.get("autoCreateSubTickets", False) and suggestions:
            result["created"] = self.planner.create(self.client, suggestions)
        return result
