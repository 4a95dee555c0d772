"""Data models and enums for the ticket state machine."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from codescribe.analysis.models import RiskLevel


class Phase(str, Enum):
    """Development phase inferred from the Context."""

    STARTED = "started"
    DEVELOPMENT = "development"
    IN_REVIEW = "in_review"
    CHANGES_REQUESTED = "changes_requested"
    COMPLETED = "completed"
    UNKNOWN = "unknown"


class TransitionEvent(str, Enum):
    """Events that drive ticket state transitions."""

    BRANCH_CREATED = "onBranchCreated"
    FIRST_COMMIT = "onFirstCommit"
    PR_CREATED = "onPRCreated"
    PR_APPROVED = "onPRApproved"
    PR_MERGED = "onPRMerged"
    PR_CHANGES_REQUESTED = "onPRChangesRequested"


class SubTicketType(str, Enum):
    FUNCTIONALITY_GROUP = "functionality_group"
    COMPLEXITY_REFACTOR = "complexity_refactor"
    SECURITY_FIXES = "security_fixes"
    DEPENDENCY_MIGRATION = "dependency_migration"


# Tracker priority values
PRIORITY_VALUES = {"urgent": 1, "high": 2, "medium": 3, "low": 4}


@dataclass
class TimeSession:
    """A closed working session."""

    start: datetime
    end: datetime
    minutes: float

    def to_dict(self) -> dict[str, Any]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat(), "minutes": self.minutes}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TimeSession":
        return cls(
            start=datetime.fromisoformat(data["start"]),
            end=datetime.fromisoformat(data["end"]),
            minutes=float(data["minutes"]),
        )


@dataclass
class TimeTrackingState:
    """Per-ticket time accounting; total_time is in minutes."""

    start_time: Optional[datetime] = None
    total_time: float = 0.0
    sessions: list[TimeSession] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "total_time": self.total_time,
            "sessions": [s.to_dict() for s in self.sessions],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TimeTrackingState":
        start = data.get("start_time")
        return cls(
            start_time=datetime.fromisoformat(start) if start else None,
            total_time=float(data.get("total_time", 0.0)),
            sessions=[TimeSession.from_dict(s) for s in data.get("sessions", [])],
        )


@dataclass
class TransitionResult:
    """Outcome of one attempted ticket state transition."""

    skipped: bool = False
    success: bool = False
    reason: Optional[str] = None
    event: Optional[str] = None
    from_state: Optional[str] = None
    to_state: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ScopeChange:
    """Drift between the ticket's expected scope and the actual change set."""

    changed: bool = False
    risk_level: RiskLevel = RiskLevel.NONE
    changes: list[dict[str, Any]] = field(default_factory=list)
    impact: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    notified: bool = False
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["risk_level"] = self.risk_level.value
        return data


@dataclass
class SubTicketSuggestion:
    """A proposed child issue decomposing a complex change."""

    title: str
    description: str
    priority: int
    estimate_hours: int
    labels: list[str]
    parent_issue_id: Optional[str]
    team_id: Optional[str]
    type: SubTicketType
    files: list[str] = field(default_factory=list)
    complexity: str = "medium"
    parent_ticket: Optional[str] = None
    project_id: Optional[str] = None
    assignee_id: Optional[str] = None

    @property
    def metadata(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "files": list(self.files),
            "complexity": self.complexity,
            "parent_ticket": self.parent_ticket,
        }

    def to_issue_input(self) -> dict[str, Any]:
        """GraphQL IssueCreateInput for this suggestion."""
        issue_input: dict[str, Any] = {
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "estimate": self.estimate_hours,
            "teamId": self.team_id,
        }
        if self.parent_issue_id:
            issue_input["parentId"] = self.parent_issue_id
        if self.project_id:
            issue_input["projectId"] = self.project_id
        if self.assignee_id:
            issue_input["assigneeId"] = self.assignee_id
        return issue_input

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "estimate_hours": self.estimate_hours,
            "labels": list(self.labels),
            "parent_issue_id": self.parent_issue_id,
            "team_id": self.team_id,
            "project_id": self.project_id,
            "assignee_id": self.assignee_id,
            "metadata": self.metadata,
        }
