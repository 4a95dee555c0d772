"""Scope-change detection against the ticket estimate."""

from __future__ import annotations

from typing import Optional

from codescribe.analysis.models import Context, RiskLevel
from codescribe.tracker.models import ScopeChange

# Expected complexity points per estimated hour
COMPLEXITY_PER_HOUR = 5
COMPLEXITY_TOLERANCE = 1.5
MAX_CHANGED_FILES = 10
MAX_SOURCE_FILES = 5

_RISK_ORDER = [RiskLevel.NONE, RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH]


def _raise_risk(current: RiskLevel, level: RiskLevel) -> RiskLevel:
    return max(current, level, key=_RISK_ORDER.index)


def detect_scope_change(context: Context, estimate_hours: Optional[float] = None) -> ScopeChange:
    """Compare the change set with what the ticket estimate implies."""
    code = context.code
    scope = ScopeChange()

    average = code.complexity.average_score
    if estimate_hours:
        expected = estimate_hours * COMPLEXITY_PER_HOUR
        if average > COMPLEXITY_TOLERANCE * expected:
            scope.changes.append(
                {
                    "type": "complexity_increase",
                    "message": f"Average complexity {average} exceeds the {expected:g} expected for a {estimate_hours:g}h estimate",
                }
            )
            scope.impact.append("Implementation is more complex than estimated")
            scope.recommendations.append("Re-estimate the ticket or split the work")
            scope.risk_level = _raise_risk(scope.risk_level, RiskLevel.MEDIUM)

    if len(code.changed_files) > MAX_CHANGED_FILES:
        scope.changes.append(
            {"type": "file_count", "message": f"{len(code.changed_files)} files changed (more than {MAX_CHANGED_FILES})"}
        )
        scope.impact.append("Change touches a wide area of the codebase")
        scope.recommendations.append("Consider breaking the change into smaller pull requests")
        scope.risk_level = _raise_risk(scope.risk_level, RiskLevel.LOW)

    source_files = code.source_files
    if len(source_files) > MAX_SOURCE_FILES:
        scope.changes.append(
            {"type": "source_files", "message": f"{len(source_files)} source files changed (more than {MAX_SOURCE_FILES})"}
        )
        scope.risk_level = _raise_risk(scope.risk_level, RiskLevel.LOW)

    deps = code.dependencies
    if deps.added:
        names = ", ".join(d.name for d in deps.added)
        scope.changes.append({"type": "new_dependencies", "message": f"New dependencies added: {names}"})
        scope.impact.append("New third-party code enters the build")
        scope.recommendations.append("Review licenses and maintenance status of new dependencies")
        scope.risk_level = _raise_risk(scope.risk_level, RiskLevel.LOW)

    if deps.breaking_changes:
        names = ", ".join(
            f"{d.name} ({d.old_version} → {d.new_version})" for d in deps.breaking_changes
        )
        scope.changes.append({"type": "breaking_dependencies", "message": f"Breaking dependency updates: {names}"})
        scope.impact.append("Major version upgrades may break existing functionality")
        scope.recommendations.append("Plan a migration and run the full test suite")
        scope.risk_level = RiskLevel.HIGH

    scope.changed = bool(scope.changes)
    return scope
