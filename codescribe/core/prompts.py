"""Prompt construction for AI generation."""

import json
from dataclasses import asdict
from typing import Optional

from codescribe.analysis.models import Context
from codescribe.workflows.models import ChangeAnalysis

# Diffs beyond this many characters are truncated before prompting
MAX_DIFF_CHARS = 60000

COMMIT_RESPONSE_SHAPE = """{
  "message": "conventional commit format message following suggested template",
  "type": "commit type (feat/fix/refactor/perf/security/etc)",
  "scope": "affected scope/module",
  "description": "detailed description explaining the 'why' behind changes",
  "impact": {
    "performance": "low_impact/medium_impact/high_impact",
    "security": "none/low/medium/high",
    "maintainability": "improved/unchanged/degraded",
    "breaking": boolean
  },
  "rationale": "design decisions and reasoning behind the changes",
  "template": "template type used (feature/bugfix/refactor/performance/security/etc)"
}"""


def truncate_diff(diff: str, limit: int = MAX_DIFF_CHARS) -> str:
    if len(diff) <= limit:
        return diff
    return diff[:limit] + f"\n\n[diff truncated: {len(diff) - limit} more characters]"


class PromptBuilder:
    """Builds AI prompts from the analyzed Context.

    Prompts ask for a bare JSON object so the response can be decoded
    directly once any Markdown fences are stripped.
    """

    def build_pr_analysis(self, context: Context) -> str:
        """Construct the pull request title/body/summary prompt.

        Args:
            context: Analyzed Context for the current branch

        Returns:
            Complete prompt string
        """
        code = context.code
        security = code.security
        return f"""Analyze the following git diff and generate a clean JSON object with three keys: "title" (a conventional commit-style PR title), "body" (a detailed PR description in Markdown format), and "summary" (a one-sentence summary for a project manager). Do not add any text before or after the JSON object.

Ticket: {context.ticket_id}
Branch: {context.git.branch}
Files changed: {len(code.changed_files)}
Complexity: {code.complexity.level.value} (average {code.complexity.average_score})
Security risk: {security.risk_level.value}
Breaking dependency changes: {", ".join(c.name for c in code.dependencies.breaking_changes) or "none"}

Diff:

{truncate_diff(context.git.diff)}"""

    def build_commit_message(
        self,
        context: Context,
        analysis: ChangeAnalysis,
        suggestions: dict,
        diff: Optional[str] = None,
    ) -> str:
        """Construct the commit message prompt with template guidance.

        Args:
            context: Analyzed Context
            analysis: Working-copy change analysis
            suggestions: Output of CommitMessageTemplates.get_template_suggestions
            diff: Diff of the changes being committed (defaults to the branch diff)

        Returns:
            Complete prompt string
        """
        primary = suggestions["primary"]
        alternatives = ", ".join(f"{alt['type']} ({alt['reason']})" for alt in suggestions["alternatives"])
        deps = analysis.dependencies

        return f"""Analyze the following code changes and generate a comprehensive commit message with impact analysis. Use the suggested templates as guidance for the commit format.

Return a clean JSON object with the following structure:
{COMMIT_RESPONSE_SHAPE}

Context:
- Ticket: {context.ticket_id}
- Branch: {context.git.branch}
- Files changed: {len(analysis.files)}
- Lines added: {analysis.additions}
- Lines removed: {analysis.deletions}
- Complexity level: {analysis.complexity.level.value}
- Security risk: {analysis.security.risk_level.value}
- Dependencies changed: {len(deps.added) + len(deps.updated) + len(deps.removed)}

Suggested Template: {primary['type']} ({primary['reason']})
Template Format: {primary['template'].format}
Alternative Templates: {alternatives or "none"}

Changed files:
{json.dumps([asdict(f) for f in analysis.files], indent=2, default=str)}

Code Changes:
{truncate_diff(diff if diff is not None else context.git.diff)}

Generate a commit message that explains not just WHAT changed, but WHY it changed. Include the ticket identifier {context.ticket_id} in the subject."""
