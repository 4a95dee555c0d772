"""Conventional commit message templates and template selection."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from codescribe.analysis.models import ComplexityLevel, FileStatus, RiskLevel
from codescribe.workflows.models import ChangeAnalysis


@dataclass(frozen=True)
class CommitTemplate:
    type: str
    format: str
    description: str


TEMPLATES = {
    "feature": CommitTemplate("feature", "feat({scope}): {summary}", "A new feature or functionality"),
    "bugfix": CommitTemplate("bugfix", "fix({scope}): {summary}", "A bug fix or error correction"),
    "refactor": CommitTemplate(
        "refactor", "refactor({scope}): {summary}", "Code restructuring without changing functionality"
    ),
    "performance": CommitTemplate("performance", "perf({scope}): {summary}", "Performance improvements"),
    "test": CommitTemplate("test", "test({scope}): {summary}", "Adding or updating tests"),
    "documentation": CommitTemplate("documentation", "docs({scope}): {summary}", "Documentation updates"),
    "maintenance": CommitTemplate(
        "maintenance", "chore({scope}): {summary}", "Maintenance tasks and configuration"
    ),
    "security": CommitTemplate("security", "security({scope}): {summary}", "Security-related changes"),
    "breaking": CommitTemplate(
        "breaking", "feat({scope})!: {summary}", "Breaking changes that affect existing functionality"
    ),
}

API_PATH_MARKERS = ("api", "schema", "migration", "interface")
PERFORMANCE_PATH_MARKERS = ("cache", "optimize", "performance", "lazy", "async", "worker")


class UnknownTemplateError(ValueError):
    pass


class CommitMessageTemplates:
    """Selects and fills a commit template for a ChangeAnalysis."""

    def get_template(self, template_type: str) -> Optional[CommitTemplate]:
        return TEMPLATES.get(template_type)

    def generate_message(
        self,
        template_type: str,
        scope: Optional[str],
        summary: str,
        body: Optional[str] = None,
        footer: Optional[str] = None,
    ) -> str:
        """Fill a template; an empty scope drops the parentheses.

        Raises:
            UnknownTemplateError: If the template type is not in the table
        """
        template = self.get_template(template_type)
        if template is None:
            raise UnknownTemplateError(f"Unknown template type: {template_type}")

        message = template.format.replace("{scope}", scope or "").replace("{summary}", summary)
        message = re.sub(r"\(\)", "", message, count=1)
        if body:
            message += f"\n\n{body}"
        if footer:
            message += f"\n\n{footer}"
        return message

    def suggest_template(self, analysis: ChangeAnalysis) -> str:
        """Pick the template type that best describes the changes."""
        files = analysis.files

        if analysis.security.risk_level == RiskLevel.HIGH or analysis.security.vulnerabilities:
            return "security"
        if analysis.dependencies.breaking_changes or self.touches_api(analysis):
            return "breaking"
        if analysis.complexity.level == ComplexityLevel.HIGH or self.has_performance_changes(analysis):
            return "performance"
        if files and all(f.is_test for f in files):
            return "test"
        if files and all(_is_documentation(f.path) for f in files):
            return "documentation"
        if (files and all(f.is_config for f in files)) or analysis.dependencies.added or analysis.dependencies.updated:
            return "maintenance"
        if self.is_refactoring(analysis):
            return "refactor"
        if files and all(f.status == FileStatus.MODIFIED for f in files) and not self.has_new_features(analysis):
            return "bugfix"
        return "feature"

    @staticmethod
    def touches_api(analysis: ChangeAnalysis) -> bool:
        return any(marker in f.path.lower() for f in analysis.files for marker in API_PATH_MARKERS)

    @staticmethod
    def has_performance_changes(analysis: ChangeAnalysis) -> bool:
        if analysis.complexity.level in (ComplexityLevel.HIGH, ComplexityLevel.VERY_HIGH):
            return True
        return any(
            marker in f.path.lower() for f in analysis.files for marker in PERFORMANCE_PATH_MARKERS
        )

    @staticmethod
    def is_refactoring(analysis: ChangeAnalysis) -> bool:
        """Similar amounts of added and removed lines suggest restructuring."""
        if not analysis.files or analysis.additions <= 10:
            return False
        ratio = analysis.deletions / analysis.additions
        return 0.7 < ratio < 1.3

    @staticmethod
    def has_new_features(analysis: ChangeAnalysis) -> bool:
        return bool(analysis.new_files) or analysis.additions > 50

    def template_reason(self, template_type: str, analysis: ChangeAnalysis) -> str:
        reasons = {
            "security": f"Security-related changes detected (risk level: {analysis.security.risk_level.value})",
            "breaking": "Breaking changes detected in API or dependencies",
            "performance": f"Performance-related changes (complexity: {analysis.complexity.level.value})",
            "test": "Only test files were modified",
            "documentation": "Only documentation files were modified",
            "maintenance": (
                "Configuration or dependency changes "
                f"({len(analysis.dependencies.added) + len(analysis.dependencies.updated)} deps affected)"
            ),
            "refactor": "Code restructuring without new functionality",
            "bugfix": "Modifications to existing code without new files",
            "feature": f"New functionality added ({len(analysis.new_files)} new files)",
        }
        return reasons.get(template_type, "Based on change analysis patterns")

    def get_template_suggestions(self, analysis: ChangeAnalysis) -> dict:
        """Return the primary suggestion and up to two alternatives with reasons."""
        primary = self.suggest_template(analysis)

        alternatives = []
        if primary != "feature" and self.has_new_features(analysis):
            alternatives.append("feature")
        if primary != "bugfix" and analysis.modified_files:
            alternatives.append("bugfix")
        if primary != "refactor" and self.is_refactoring(analysis):
            alternatives.append("refactor")

        def entry(template_type: str) -> dict:
            return {
                "type": template_type,
                "reason": self.template_reason(template_type, analysis),
                "template": TEMPLATES[template_type],
            }

        return {
            "primary": entry(primary),
            "alternatives": [entry(alt) for alt in alternatives[:2]],
        }


def _is_documentation(path: str) -> bool:
    lowered = path.lower()
    return "doc" in lowered or "readme" in lowered


_SUMMARIES = {
    "performance": "optimize performance and reduce complexity",
    "security": "enhance security and fix vulnerabilities",
    "test": "improve test coverage and reliability",
    "documentation": "update documentation and examples",
    "maintenance": "update dependencies and configuration",
    "breaking": "introduce breaking changes for improved API",
}

_SINGLE_FILE_SUMMARIES = {
    "feature": ("implement new functionality in {name}", "implement new features across {count} components"),
    "bugfix": ("resolve issue in {name}", "fix multiple issues across {count} files"),
    "refactor": ("restructure {name}", "refactor and optimize {count} components"),
}


def template_summary(template_type: str, analysis: ChangeAnalysis, ticket_id: Optional[str] = None) -> str:
    """Describe the change set in the words of the chosen template."""
    count = len(analysis.files)
    prefix = f"{ticket_id} - " if ticket_id else ""

    if template_type in _SINGLE_FILE_SUMMARIES:
        single, multiple = _SINGLE_FILE_SUMMARIES[template_type]
        if count == 1:
            name = analysis.files[0].path.rsplit("/", 1)[-1]
            return prefix + single.format(name=name)
        return prefix + multiple.format(count=count)
    return prefix + _SUMMARIES.get(template_type, f"update {count} files")


def commit_body(analysis: ChangeAnalysis) -> str:
    lines = [f"Changes: +{analysis.additions}/-{analysis.deletions} lines across {len(analysis.files)} files"]
    if analysis.complexity.level != ComplexityLevel.LOW:
        lines.append(f"Complexity: {analysis.complexity.level.value} ({analysis.complexity.total_score} points)")
    if analysis.security.risk_level != RiskLevel.NONE:
        lines.append(f"Security: {analysis.security.risk_level.value} risk level")
    deps = analysis.dependencies
    if deps.added or deps.updated:
        lines.append(f"Dependencies: {len(deps.added)} added, {len(deps.updated)} updated")
    return "\n".join(lines)


def compose_commit_message(
    analysis: ChangeAnalysis,
    ticket_id: Optional[str] = None,
    conventional: bool = True,
    templates: Optional[CommitMessageTemplates] = None,
) -> dict:
    """Build a commit message without AI from the suggested template.

    Returns:
        Dict with message, type, scope, description, impact, rationale, template
    """
    templates = templates or CommitMessageTemplates()
    suggestions = templates.get_template_suggestions(analysis)
    primary = suggestions["primary"]
    template_type = primary["type"]
    breaking = analysis.has_breaking_changes or bool(analysis.dependencies.breaking_changes)

    summary = template_summary(template_type, analysis, ticket_id)
    if conventional:
        message = templates.generate_message(
            template_type,
            analysis.scope,
            summary,
            body=commit_body(analysis),
            footer="BREAKING CHANGE: API changes may affect existing functionality" if breaking else None,
        )
    else:
        message = summary[0].upper() + summary[1:] if summary else summary

    level = analysis.complexity.level
    return {
        "message": message,
        "type": primary["template"].format.split("(", 1)[0],
        "scope": analysis.scope,
        "description": analysis.summary,
        "impact": {
            "performance": "high_impact"
            if level == ComplexityLevel.VERY_HIGH
            else "medium_impact"
            if level == ComplexityLevel.HIGH
            else "low_impact",
            "security": analysis.security.risk_level.value,
            "maintainability": "degraded"
            if level in (ComplexityLevel.HIGH, ComplexityLevel.VERY_HIGH)
            else "unchanged",
            "breaking": breaking,
        },
        "rationale": f"Changes classified as {template_type} based on {primary['reason'][0].lower()}{primary['reason'][1:]}.",
        "template": template_type,
    }
