"""Markdown comment bodies posted to the issue tracker."""

from __future__ import annotations

from typing import Any, Optional

from codescribe.tracker.models import ScopeChange, TransitionResult
from codescribe.tracker.time_tracking import format_minutes


def review_comment(code_review: Optional[dict[str, Any]], ai: Optional[dict[str, Any]] = None) -> str:
    """Header block describing the linked change-request."""
    if not code_review or not code_review.get("pr"):
        return "🚀 **CodeScribe Agent Executed**\n\nAgent completed successfully but no pull request information available."

    is_update = code_review.get("is_update", False)
    pr = code_review["pr"]
    verb = "Updated" if is_update else "Created"

    lines = [f"🚀 **Pull Request {verb}**", ""]
    if ai and ai.get("summary"):
        lines += [ai["summary"], ""]

    lines.append("**PR Details:**")
    lines.append(f"- Status: {'Updated' if is_update else 'Draft' if pr.get('draft', True) else 'Open'} PR #{pr.get('number')}")
    if pr.get("html_url"):
        lines.append(f"- URL: {pr['html_url']}")
    if pr.get("title"):
        lines.append(f"- Title: {pr['title']}")
    if is_update:
        lines.append("- ✨ Updated with latest code changes and AI analysis")
    return "\n".join(lines)


def time_log_comment(ticket_id: str, time_tracking: dict[str, Any]) -> str:
    lines = [
        "⏱️ **Time Logged**",
        "",
        f"- Session: {format_minutes(time_tracking.get('session_minutes', 0))}",
        f"- Total on {ticket_id}: {format_minutes(time_tracking.get('total_minutes', 0))}",
    ]
    if "efficiency" in time_tracking:
        lines.append(f"- Efficiency: {time_tracking['efficiency']} ({time_tracking['efficiency_category']})")
    return "\n".join(lines)


def scope_comment(ticket_id: str, scope: ScopeChange) -> str:
    lines = [f"⚠️ **Scope Change Detected** ({scope.risk_level.value} risk)", "", f"The changes on {ticket_id} go beyond the original estimate.", ""]
    lines.append("**Changes:**")
    lines += [f"- {change['message']}" for change in scope.changes]
    if scope.impact:
        lines += ["", "**Impact:**"] + [f"- {item}" for item in scope.impact]
    if scope.recommendations:
        lines += ["", "**Recommendations:**"] + [f"- {item}" for item in scope.recommendations]
    return "\n".join(lines)


def commit_comment(commit: dict[str, Any]) -> str:
    lines = ["💾 **New Commit**", "", f"- Commit: `{commit.get('sha', '')[:7]}`", f"- Message: {commit.get('message', '').splitlines()[0] if commit.get('message') else ''}"]
    if commit.get("branch"):
        lines.append(f"- Branch: {commit['branch']}")
    if commit.get("files"):
        lines.append(f"- Files: {commit['files']}")
    if commit.get("pushed"):
        lines.append("- Pushed to remote")
    return "\n".join(lines)


def aggregate_comment(
    ticket_id: str,
    code_review: Optional[dict[str, Any]],
    ai: Optional[dict[str, Any]],
    progress: dict[str, Any],
    transition: Optional[TransitionResult] = None,
    time_tracking: Optional[dict[str, Any]] = None,
    scope: Optional[ScopeChange] = None,
    sub_tickets: Optional[dict[str, Any]] = None,
) -> str:
    """One summary comment covering every step that ran."""
    sections = [review_comment(code_review, ai)]

    progress_lines = [
        "**Progress Analysis:**",
        f"- Phase: {progress['phase']}",
        f"- Complexity: {progress['complexity_level']} (average {progress['average_complexity']})",
        f"- Files changed: {progress['files_changed']}",
        f"- Risk: {progress['risk_level']}",
    ]
    sections.append("\n".join(progress_lines))

    if time_tracking and time_tracking.get("action") not in (None, "none"):
        lines = ["**Time Tracking:**", f"- Action: {time_tracking['action']}"]
        if "session_minutes" in time_tracking:
            lines.append(f"- Session: {format_minutes(time_tracking['session_minutes'])}")
        lines.append(f"- Total: {format_minutes(time_tracking.get('total_minutes', 0))}")
        sections.append("\n".join(lines))

    if transition and not transition.skipped:
        if transition.success:
            line = f"- {transition.from_state} → {transition.to_state}"
        else:
            line = f"- Failed to move to {transition.to_state}: {transition.reason}"
        sections.append("\n".join(["**Status Transition:**", line]))

    if scope and scope.changed:
        lines = [f"**Scope Analysis:** {scope.risk_level.value} risk"]
        lines += [f"- {change['message']}" for change in scope.changes]
        sections.append("\n".join(lines))

    blockers = progress.get("blockers") or []
    if blockers:
        sections.append("\n".join(["**Blockers:**"] + [f"- {b}" for b in blockers]))

    if sub_tickets and sub_tickets.get("suggestions"):
        lines = ["**Sub-tickets:**"]
        created = {o["title"]: o for o in sub_tickets.get("created", [])}
        for suggestion in sub_tickets["suggestions"]:
            outcome = created.get(suggestion["title"])
            if outcome and outcome.get("created"):
                lines.append(f"- {outcome.get('identifier')}: {suggestion['title']}")
            else:
                lines.append(f"- Suggested: {suggestion['title']} ({suggestion['estimate_hours']}h)")
        sections.append("\n".join(lines))

    return "\n\n".join(sections)
