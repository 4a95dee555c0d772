"""Data models shared by the orchestrator and the built-in workflows."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from codescribe.analysis.models import (
    ChangedFile,
    ComplexityReport,
    DependencyDelta,
    FileStatus,
    SecurityReport,
)


@dataclass
class CommandOptions:
    """Options supplied by the host for one invocation."""

    message: Optional[str] = None
    add_all: bool = False
    add_modified: bool = False
    push: bool = True
    force: bool = False
    verbose: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "add_all": self.add_all,
            "add_modified": self.add_modified,
            "push": self.push,
            "force": self.force,
        }


@dataclass(frozen=True)
class WorkflowDescriptor:
    """Static scheduling facts about a registered workflow."""

    name: str
    critical: bool = True
    dependencies: tuple[str, ...] = ()
    parallel: bool = False
    enabled: bool = True


@dataclass
class PullRequestContent:
    title: str
    body: str
    summary: str
    generated: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any], generated: bool = False) -> "PullRequestContent":
        return cls(
            title=str(data.get("title", "")).strip(),
            body=str(data.get("body", "")),
            summary=str(data.get("summary", "")).strip(),
            generated=generated,
        )

    def to_dict(self) -> dict[str, Any]:
        return {"title": self.title, "body": self.body, "summary": self.summary, "generated": self.generated}


@dataclass
class ChangeAnalysis:
    """Working-copy changes about to be committed, with branch analysis attached."""

    files: list[ChangedFile] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)
    scope: Optional[str] = None
    has_breaking_changes: bool = False
    summary: str = ""
    additions: int = 0
    deletions: int = 0
    complexity: ComplexityReport = field(default_factory=ComplexityReport)
    security: SecurityReport = field(default_factory=SecurityReport)
    dependencies: DependencyDelta = field(default_factory=DependencyDelta)

    @property
    def new_files(self) -> list[ChangedFile]:
        return [f for f in self.files if f.status == FileStatus.ADDED]

    @property
    def modified_files(self) -> list[ChangedFile]:
        return [f for f in self.files if f.status == FileStatus.MODIFIED]
