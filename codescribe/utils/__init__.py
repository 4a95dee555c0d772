"""Utility modules for codescribe."""

from codescribe.utils.commit_parser import (
    extract_ticket_id,
    is_breaking,
    is_conventional,
    validate_branch_name,
)
from codescribe.utils.storage import write_json_atomic

__all__ = [
    "extract_ticket_id",
    "is_breaking",
    "is_conventional",
    "validate_branch_name",
    "write_json_atomic",
]
