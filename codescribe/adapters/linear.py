"""Linear GraphQL adapter for issues, workflow states, comments and relations."""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

import requests

logger = logging.getLogger(__name__)

LINEAR_API_URL = "https://api.linear.app/graphql"
REQUEST_TIMEOUT = 30

ISSUE_FIELDS = """
    id
    identifier
    title
    description
    priority
    estimate
    url
    state { id name type }
    team { id key name }
    project { id name }
    assignee { id name }
    labels { nodes { id name } }
"""

ISSUE_QUERY = f"""
query IssueByIdentifier($teamKey: String!, $number: Float!) {{
    issues(first: 50, filter: {{ team: {{ key: {{ eq: $teamKey }} }}, number: {{ eq: $number }} }}) {{
        nodes {{ {ISSUE_FIELDS} }}
    }}
}}
"""

TEAM_STATES_QUERY = """
query TeamStates($teamId: String!) {
    team(id: $teamId) {
        states { nodes { id name type position } }
    }
}
"""

ISSUE_UPDATE_MUTATION = """
mutation IssueUpdate($id: String!, $input: IssueUpdateInput!) {
    issueUpdate(id: $id, input: $input) {
        success
        issue { id state { id name } }
    }
}
"""

COMMENT_CREATE_MUTATION = """
mutation CommentCreate($input: CommentCreateInput!) {
    commentCreate(input: $input) {
        success
        comment { id }
    }
}
"""

ISSUE_CREATE_MUTATION = """
mutation IssueCreate($input: IssueCreateInput!) {
    issueCreate(input: $input) {
        success
        issue { id identifier title url }
    }
}
"""

ISSUE_RELATION_CREATE_MUTATION = """
mutation IssueRelationCreate($input: IssueRelationCreateInput!) {
    issueRelationCreate(input: $input) {
        success
        issueRelation { id type }
    }
}
"""

_IDENTIFIER_PATTERN = re.compile(r"^([A-Z]+)-(\d+)$")


class LinearAPIError(Exception):
    """Raised on HTTP failures or a GraphQL errors array."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class LinearClient:
    """Executes the Linear GraphQL operations the ticket workflow needs."""

    def __init__(self, api_key: str, api_url: str = LINEAR_API_URL, timeout: int = REQUEST_TIMEOUT):
        self.api_url = api_url
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update(
            {
                "Authorization": api_key,
                "Content-Type": "application/json",
            }
        )

    def execute(self, query: str, variables: Optional[dict] = None) -> dict[str, Any]:
        """Run a GraphQL document and return its data object.

        Raises:
            LinearAPIError: On transport failure, HTTP error or GraphQL errors
        """
        try:
            response = self.session.post(
                self.api_url,
                json={"query": query, "variables": variables or {}},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise LinearAPIError(f"Linear API request failed: {e}") from e

        if response.status_code >= 400:
            raise LinearAPIError(
                f"Linear API request failed: {response.status_code} - {response.text}",
                status=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise LinearAPIError(
                f"Linear API returned a non-JSON response: {response.status_code}",
                status=response.status_code,
            ) from e
        if payload.get("errors"):
            messages = "; ".join(e.get("message", str(e)) for e in payload["errors"])
            raise LinearAPIError(f"Linear API error: {messages}", status=response.status_code)
        return payload.get("data") or {}

    def get_issue(self, identifier: str) -> Optional[dict]:
        """Return the issue with the given identifier (e.g. ABC-12), or None."""
        match = _IDENTIFIER_PATTERN.match(identifier)
        if not match:
            return None
        data = self.execute(
            ISSUE_QUERY, {"teamKey": match.group(1), "number": float(match.group(2))}
        )
        for issue in data.get("issues", {}).get("nodes", []):
            if issue.get("identifier") == identifier:
                return issue
        return None

    def get_team_states(self, team_id: str) -> list[dict]:
        data = self.execute(TEAM_STATES_QUERY, {"teamId": team_id})
        team = data.get("team") or {}
        return (team.get("states") or {}).get("nodes", [])

    def update_issue_state(self, issue_id: str, state_id: str) -> dict:
        data = self.execute(ISSUE_UPDATE_MUTATION, {"id": issue_id, "input": {"stateId": state_id}})
        result = data.get("issueUpdate") or {}
        if not result.get("success"):
            raise LinearAPIError(f"Failed to update state of issue {issue_id}")
        return result.get("issue") or {}

    def create_comment(self, issue_id: str, body: str) -> dict:
        data = self.execute(COMMENT_CREATE_MUTATION, {"input": {"issueId": issue_id, "body": body}})
        result = data.get("commentCreate") or {}
        if not result.get("success"):
            raise LinearAPIError("Failed to create comment in Linear")
        return result.get("comment") or {}

    def create_issue(self, issue_input: dict) -> dict:
        data = self.execute(ISSUE_CREATE_MUTATION, {"input": issue_input})
        result = data.get("issueCreate") or {}
        if not result.get("success"):
            raise LinearAPIError(f"Failed to create issue: {issue_input.get('title')}")
        return result.get("issue") or {}

    def create_issue_relation(self, issue_id: str, related_issue_id: str, relation_type: str = "blocks") -> dict:
        data = self.execute(
            ISSUE_RELATION_CREATE_MUTATION,
            {"input": {"issueId": issue_id, "relatedIssueId": related_issue_id, "type": relation_type}},
        )
        result = data.get("issueRelationCreate") or {}
        if not result.get("success"):
            raise LinearAPIError(f"Failed to link issue {issue_id} to {related_issue_id}")
        return result.get("issueRelation") or {}
