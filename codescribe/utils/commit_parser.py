"""Utility functions for parsing ticket identifiers and commit messages."""

import re
from typing import Optional

TICKET_ID_PATTERN = re.compile(r"[A-Z]+-\d+")

CONVENTIONAL_COMMIT_PATTERN = re.compile(
    r"^(feat|fix|docs|style|refactor|perf|test|chore|ci|build|revert)(\(.+\))?: .+"
)

# Type with a trailing "!" marks a breaking change, e.g. "feat(api)!: drop v1"
BREAKING_TYPE_PATTERN = re.compile(r"^[a-z]+(\([^)]*\))?!:")

BRANCH_TYPE_PREFIXES = (
    "feature",
    "feat",
    "fix",
    "hotfix",
    "bugfix",
    "chore",
    "docs",
    "refactor",
    "test",
)


def extract_ticket_id(text: str) -> Optional[str]:
    """Return the first ticket identifier in text, or None.

    Examples:
        >>> extract_ticket_id("feature/ABC-12-add-login")
        'ABC-12'

        >>> extract_ticket_id("main") is None
        True
    """
    if not text:
        return None
    match = TICKET_ID_PATTERN.search(text)
    return match.group(0) if match else None


def is_conventional(message: str) -> bool:
    """Check whether a commit subject follows the conventional format."""
    return bool(CONVENTIONAL_COMMIT_PATTERN.match(message or ""))


def is_breaking(message: str) -> bool:
    """Check whether a commit message announces a breaking change."""
    if not message:
        return False
    return "BREAKING CHANGE:" in message or bool(BREAKING_TYPE_PATTERN.match(message))


def validate_branch_name(branch: str) -> dict:
    """Validate a branch name against the naming convention.

    A valid name contains a ticket identifier, starts with a type prefix,
    has a descriptive part longer than three characters beyond the
    identifier, is kebab-case only, and is at most 50 characters long.

    Returns:
        Dict with valid flag, list of issues, ticket_id, and type prefix
    """
    issues = []
    ticket_id = extract_ticket_id(branch)
    if not ticket_id:
        issues.append("Branch name does not contain a ticket identifier (e.g. ABC-123)")

    prefix = branch.split("/", 1)[0] if "/" in branch else None
    if prefix not in BRANCH_TYPE_PREFIXES:
        issues.append(
            "Branch name should start with a type prefix "
            f"({', '.join(BRANCH_TYPE_PREFIXES)})"
        )
        prefix = None

    name = branch.split("/", 1)[1] if "/" in branch else branch
    description = name.replace(ticket_id, "", 1) if ticket_id else name
    description = description.strip("-/")
    if len(description) <= 3:
        issues.append("Branch name should include a descriptive part")

    if description and not re.fullmatch(r"[a-z0-9]+(-[a-z0-9]+)*", description):
        issues.append("Descriptive part should be kebab-case")

    if len(branch) > 50:
        issues.append("Branch name should be at most 50 characters")

    return {
        "valid": not issues,
        "issues": issues,
        "ticket_id": ticket_id,
        "type": prefix,
    }
