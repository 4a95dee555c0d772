"""Sub-ticket suggestions for complex change sets."""

from __future__ import annotations

import logging
import math
from typing import Any, Optional

from codescribe.adapters.linear import LinearAPIError, LinearClient
from codescribe.analysis.models import ChangedFile, Context, FileStatus, RiskLevel
from codescribe.tracker.models import PRIORITY_VALUES, SubTicketSuggestion, SubTicketType

logger = logging.getLogger(__name__)

BASE_ESTIMATES = {
    SubTicketType.FUNCTIONALITY_GROUP: 4,
    SubTicketType.COMPLEXITY_REFACTOR: 6,
    SubTicketType.SECURITY_FIXES: 3,
    SubTicketType.DEPENDENCY_MIGRATION: 8,
}

COMPLEXITY_MULTIPLIERS = {"low": 0.5, "medium": 1.0, "high": 1.5}

REFACTOR_SCORE_THRESHOLD = 10
MIN_GROUP_SIZE = 3

# Path markers per functionality bucket, checked in order
BUCKET_MARKERS = [
    ("api", ("api/", "routes/", "controllers/", "endpoints/", "handlers/")),
    ("ui-components", ("components/", "ui/", "views/", "pages/", "widgets/")),
    ("services", ("services/", "service/")),
    ("utilities", ("utils/", "util/", "helpers/", "lib/")),
    ("data-models", ("models/", "schemas/", "entities/", "types/")),
]

BUCKET_LABELS = {
    "api": "API",
    "ui-components": "UI components",
    "services": "services",
    "utilities": "utilities",
    "data-models": "data models",
    "testing": "tests",
    "configuration": "configuration",
    "documentation": "documentation",
    "general": "general",
}


def functionality_bucket(changed: ChangedFile) -> str:
    """Assign a changed file to a path-based functionality bucket."""
    if changed.is_test:
        return "testing"
    path = "/" + changed.path.lower()
    for bucket, markers in BUCKET_MARKERS:
        if any(f"/{marker}" in path for marker in markers):
            return bucket
    if changed.is_config:
        return "configuration"
    if changed.extension in (".md", ".rst", ".txt") or "/docs/" in path:
        return "documentation"
    return "general"


def group_files(files: list[ChangedFile]) -> dict[str, list[ChangedFile]]:
    groups: dict[str, list[ChangedFile]] = {}
    for changed in files:
        groups.setdefault(functionality_bucket(changed), []).append(changed)
    return groups


def estimate_hours(kind: SubTicketType, complexity: str, file_count: int) -> int:
    """Base estimate scaled by complexity and file count, rounded up."""
    hours = BASE_ESTIMATES[kind] * COMPLEXITY_MULTIPLIERS.get(complexity, 1.0)
    if file_count > 3:
        hours *= 1.2
    return math.ceil(round(hours, 6))


def _bucket_complexity(context: Context, files: list[ChangedFile]) -> str:
    scores = [context.code.complexity.file_score(f.path) or 0 for f in files]
    average = sum(scores) / len(scores) if scores else 0
    if average > 10:
        return "high"
    if average > 5:
        return "medium"
    return "low"


class SubTicketPlanner:
    """Decides when a change set warrants sub-tickets and proposes them.

    Attributes:
        complexity_threshold: Average complexity above which to split
        file_count_threshold: Changed-file count above which to split
    """

    def __init__(self, complexity_threshold: float = 15, file_count_threshold: int = 8):
        self.complexity_threshold = complexity_threshold
        self.file_count_threshold = file_count_threshold

    def trigger_reasons(self, context: Context) -> list[str]:
        code = context.code
        reasons = []
        if code.complexity.average_score > self.complexity_threshold:
            reasons.append("complexity")
        if len(code.changed_files) > self.file_count_threshold:
            reasons.append("file_count")
        if code.dependencies.breaking_changes:
            reasons.append("breaking_dependencies")
        if code.security.risk_level == RiskLevel.HIGH:
            reasons.append("security")
        return reasons

    def should_create(self, context: Context) -> bool:
        return bool(self.trigger_reasons(context))

    def suggest(self, context: Context, issue: Optional[dict[str, Any]] = None) -> list[SubTicketSuggestion]:
        """Build suggestions; output depends only on the Context and issue."""
        issue = issue or {}
        ticket_id = context.ticket_id
        common = {
            "parent_issue_id": issue.get("id"),
            "team_id": (issue.get("team") or {}).get("id"),
            "project_id": (issue.get("project") or {}).get("id"),
            "assignee_id": (issue.get("assignee") or {}).get("id"),
            "parent_ticket": ticket_id,
        }
        code = context.code
        suggestions = []

        live_files = [f for f in code.changed_files if f.status != FileStatus.DELETED]
        for bucket, files in sorted(group_files(live_files).items()):
            if len(files) < MIN_GROUP_SIZE:
                continue
            complexity = _bucket_complexity(context, files)
            label = BUCKET_LABELS[bucket]
            suggestions.append(
                self._suggestion(
                    SubTicketType.FUNCTIONALITY_GROUP,
                    title=f"{ticket_id}: Complete {label} changes",
                    description=f"Review and complete the {len(files)} {label} files changed in {ticket_id}:\n"
                    + "\n".join(f"- {f.path}" for f in files),
                    priority="medium",
                    complexity=complexity,
                    files=[f.path for f in files],
                    **common,
                )
            )

        for item in sorted(code.complexity.files, key=lambda fc: fc.path):
            if item.score <= REFACTOR_SCORE_THRESHOLD:
                continue
            name = item.path.rsplit("/", 1)[-1]
            suggestions.append(
                self._suggestion(
                    SubTicketType.COMPLEXITY_REFACTOR,
                    title=f"{ticket_id}: Reduce complexity in {name}",
                    description=(
                        f"{item.path} scored {item.score} complexity points "
                        f"({item.functions} functions, {item.conditionals} conditionals, "
                        f"{item.loops} loops, max depth {item.max_depth})."
                    ),
                    priority="high" if item.score > 20 else "medium",
                    complexity="high",
                    files=[item.path],
                    **common,
                )
            )

        high = code.security.high_severity()
        if high:
            files = sorted({v.file or v.package or "" for v in high} - {""})
            suggestions.append(
                self._suggestion(
                    SubTicketType.SECURITY_FIXES,
                    title=f"{ticket_id}: Fix {len(high)} high-severity security findings",
                    description="\n".join(
                        f"- {v.type}: {v.message}" + (f" ({v.file}:{v.line})" if v.file else "") for v in high
                    ),
                    priority="urgent",
                    complexity="medium",
                    files=files,
                    **common,
                )
            )

        breaking = code.dependencies.breaking_changes
        if breaking:
            names = ", ".join(d.name for d in breaking)
            suggestions.append(
                self._suggestion(
                    SubTicketType.DEPENDENCY_MIGRATION,
                    title=f"{ticket_id}: Migrate breaking dependency updates ({names})",
                    description="\n".join(
                        f"- {d.name}: {d.old_version} → {d.new_version}" for d in breaking
                    ),
                    priority="high",
                    complexity="high",
                    files=["package.json"],
                    **common,
                )
            )

        return suggestions

    @staticmethod
    def _suggestion(
        kind: SubTicketType,
        title: str,
        description: str,
        priority: str,
        complexity: str,
        files: list[str],
        **common: Any,
    ) -> SubTicketSuggestion:
        return SubTicketSuggestion(
            title=title,
            description=description,
            priority=PRIORITY_VALUES[priority],
            estimate_hours=estimate_hours(kind, complexity, len(files)),
            labels=["sub-ticket", kind.value],
            type=kind,
            files=files,
            complexity=complexity,
            **common,
        )

    def create(self, client: LinearClient, suggestions: list[SubTicketSuggestion]) -> list[dict[str, Any]]:
        """Create each suggestion and link it with a blocks relation.

        Failures are recorded per suggestion and do not stop the rest.
        """
        outcomes = []
        for suggestion in suggestions:
            try:
                created = client.create_issue(suggestion.to_issue_input())
                if suggestion.parent_issue_id and created.get("id"):
                    client.create_issue_relation(created["id"], suggestion.parent_issue_id, "blocks")
                outcomes.append(
                    {"title": suggestion.title, "created": True, "identifier": created.get("identifier"), "url": created.get("url")}
                )
                logger.info(f"Created sub-ticket {created.get('identifier')}: {suggestion.title}")
            except LinearAPIError as e:
                logger.warning(f"Failed to create sub-ticket '{suggestion.title}': {e}")
                outcomes.append({"title": suggestion.title, "created": False, "error": str(e)})
        return outcomes
