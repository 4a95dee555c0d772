"""Data models for the analyzed working-copy snapshot.

The Context produced by the analyzer is append-only: analyzer fields are set
once during gather(), and workflows add their outputs through
Context.record(), which refuses to overwrite an existing slot.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Optional

from codescribe.vcs.git_operations import Commit


class ContextWriteError(Exception):
    """Raised when a workflow tries to overwrite an existing Context slot."""

    pass


class FileStatus(str, Enum):
    """Change status of a file in the diff against the integration branch."""

    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"
    COPIED = "copied"
    UNMERGED = "unmerged"


class ComplexityLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very_high"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RiskLevel(str, Enum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class ChangedFile:
    """A file touched by the change set."""

    path: str
    status: FileStatus
    extension: str
    is_javascript: bool
    is_config: bool
    is_test: bool
    additions: int = 0
    deletions: int = 0


@dataclass
class FileComplexity:
    """Complexity facts collected from one parsed source file."""

    path: str
    score: int = 0
    functions: int = 0
    classes: int = 0
    conditionals: int = 0
    loops: int = 0
    max_depth: int = 0
    lines: int = 0
    issues: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class ComplexityReport:
    total_score: int = 0
    average_score: float = 0.0
    level: ComplexityLevel = ComplexityLevel.LOW
    files: list[FileComplexity] = field(default_factory=list)

    def file_score(self, path: str) -> Optional[int]:
        for item in self.files:
            if item.path == path:
                return item.score
        return None


@dataclass(frozen=True)
class Vulnerability:
    type: str
    severity: Severity
    message: str
    file: Optional[str] = None
    line: Optional[int] = None
    code: Optional[str] = None
    package: Optional[str] = None
    via: Optional[list[str]] = None


@dataclass
class SecurityReport:
    vulnerabilities: list[Vulnerability] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    risk_level: RiskLevel = RiskLevel.NONE
    issues: list[str] = field(default_factory=list)

    def high_severity(self) -> list[Vulnerability]:
        return [v for v in self.vulnerabilities if v.severity == Severity.HIGH]


@dataclass(frozen=True)
class DependencyChange:
    """One manifest entry that was added, removed or updated."""

    name: str
    old_version: Optional[str] = None
    new_version: Optional[str] = None
    dev: bool = False


@dataclass
class DependencyDelta:
    added: list[DependencyChange] = field(default_factory=list)
    updated: list[DependencyChange] = field(default_factory=list)
    removed: list[DependencyChange] = field(default_factory=list)
    dev_dependencies: list[DependencyChange] = field(default_factory=list)
    security_updates: list[DependencyChange] = field(default_factory=list)
    breaking_changes: list[DependencyChange] = field(default_factory=list)
    issues: list[str] = field(default_factory=list)


@dataclass
class GitContext:
    """Branch state and history derived from the version-control probe."""

    branch: str
    remote_url: str
    diff: str
    diff_stats: str
    integration_branch: str = "main"
    commits: list[Commit] = field(default_factory=list)
    branch_history: dict[str, Any] = field(default_factory=dict)
    merge_base_analysis: dict[str, Any] = field(default_factory=dict)
    conflict_detection: dict[str, Any] = field(default_factory=dict)
    commit_analysis: dict[str, Any] = field(default_factory=dict)
    branch_validation: dict[str, Any] = field(default_factory=dict)
    push: dict[str, Any] = field(default_factory=dict)


@dataclass
class CodeContext:
    """Source-level analysis of the changed files."""

    has_changes: bool = False
    changed_files: list[ChangedFile] = field(default_factory=list)
    complexity: ComplexityReport = field(default_factory=ComplexityReport)
    security: SecurityReport = field(default_factory=SecurityReport)
    dependencies: DependencyDelta = field(default_factory=DependencyDelta)
    ast: dict[str, Any] = field(default_factory=dict)
    metrics: dict[str, Any] = field(default_factory=dict)

    @property
    def source_files(self) -> list[ChangedFile]:
        """Changed files that are neither tests nor configuration."""
        return [f for f in self.changed_files if not f.is_test and not f.is_config]


@dataclass
class ProjectInfo:
    """Facts about the repository as a whole."""

    structure: dict[str, Any] = field(default_factory=dict)
    configuration: dict[str, Any] = field(default_factory=dict)
    project_type: str = "unknown"
    framework: Optional[str] = None
    test_coverage: dict[str, Any] = field(default_factory=dict)
    build_system: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)


class TicketContext:
    """Ticket identifier parsed from the branch, plus write-once tracker data."""

    def __init__(self, ticket_id: str):
        self.ticket_id = ticket_id
        self._ticket_data: Optional[dict] = None
        self._project_data: Optional[dict] = None

    @property
    def ticket_data(self) -> Optional[dict]:
        return self._ticket_data

    @property
    def project_data(self) -> Optional[dict]:
        return self._project_data

    def set_ticket_data(self, data: dict) -> None:
        if self._ticket_data is not None:
            raise ContextWriteError(f"Ticket data for {self.ticket_id} already set")
        self._ticket_data = data

    def set_project_data(self, data: dict) -> None:
        if self._project_data is not None:
            raise ContextWriteError(f"Project data for {self.ticket_id} already set")
        self._project_data = data

    def to_dict(self) -> dict:
        return {
            "ticket_id": self.ticket_id,
            "ticket_data": self._ticket_data,
            "project_data": self._project_data,
        }


@dataclass
class Context:
    """Snapshot threaded through every workflow of one invocation."""

    git: GitContext
    code: CodeContext
    project: ProjectInfo
    linear: TicketContext
    _results: dict[str, Any] = field(default_factory=dict, repr=False)

    def record(self, name: str, value: Any) -> None:
        """Store a workflow output under its name.

        Raises:
            ContextWriteError: If the slot was already written
        """
        if name in self._results:
            raise ContextWriteError(f"Context slot '{name}' is already set")
        self._results[name] = value

    def get_result(self, name: str, default: Any = None) -> Any:
        return self._results.get(name, default)

    def has_result(self, name: str) -> bool:
        return name in self._results

    @property
    def results(self) -> dict[str, Any]:
        """Read-only view of workflow outputs (a shallow copy)."""
        return dict(self._results)

    @property
    def ai(self) -> Optional[dict]:
        return self._results.get("ai")

    @property
    def ticket_id(self) -> str:
        return self.linear.ticket_id

    def to_dict(self) -> dict:
        """Plain-data view used for persistence."""
        results = {}
        for name, value in self._results.items():
            if hasattr(value, "__dataclass_fields__"):
                results[name] = asdict(value)
            else:
                results[name] = value
        return {
            "git": asdict(self.git),
            "code": asdict(self.code),
            "project": asdict(self.project),
            "linear": self.linear.to_dict(),
            "results": results,
        }
