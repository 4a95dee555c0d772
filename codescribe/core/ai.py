"""AI generation engine with bounded retries and deterministic fallbacks."""

from __future__ import annotations

import json
import logging
import re
import time
from typing import Any, Callable, Optional

import anthropic

from codescribe.analysis.models import Context
from codescribe.core.config import Config
from codescribe.core.prompts import PromptBuilder
from codescribe.workflows.commit_templates import CommitMessageTemplates, compose_commit_message
from codescribe.workflows.models import ChangeAnalysis, PullRequestContent

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-haiku-4-5-20251001"
MAX_TOKENS = 4096

# Provider overload responses
RETRIABLE_STATUS = {503, 529}

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*\n?|```")


class AIUnavailableError(Exception):
    """Raised when generation fails and fallback content is disabled."""

    pass


def strip_code_fences(text: str) -> str:
    return _FENCE_PATTERN.sub("", text).strip()


def is_retriable(error: Exception) -> bool:
    return isinstance(error, anthropic.APIStatusError) and error.status_code in RETRIABLE_STATUS


class AIEngine:
    """Text-in, JSON-out generation against the configured provider.

    Attributes:
        config: Resolved configuration (reads the ai table)
        max_retries: Attempts made before surrendering to fallback content
    """

    def __init__(
        self,
        config: Config,
        client: Optional[anthropic.Anthropic] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.model = config.get("ai.model") or DEFAULT_MODEL
        if self.model == "<default>":
            self.model = DEFAULT_MODEL
        self.max_retries = max(int(config.get("ai.maxRetries", 3)), 1)
        self.fallback_enabled = bool(config.get("ai.fallback", True))
        self.prompts = PromptBuilder()
        self.templates = CommitMessageTemplates()
        self._client = client
        self._sleep = sleep

    def is_available(self) -> bool:
        """Check if AI generation is configured."""
        return self.config.get("ai.provider") != "none" and bool(self.config.ai_api_key)

    @property
    def client(self) -> anthropic.Anthropic:
        if self._client is None:
            # Retries are driven by generate_json
            self._client = anthropic.Anthropic(api_key=self.config.ai_api_key, max_retries=0)
        return self._client

    def generate_json(self, prompt: str) -> dict[str, Any]:
        """Generate a JSON object, retrying on provider overload.

        Overload responses are retried with linear backoff (2s, 4s, 6s...);
        every other failure is raised immediately.

        Raises:
            anthropic.APIError: If the provider keeps failing
            ValueError: If the response is not a JSON object
        """
        attempt = 0
        while True:
            try:
                response = self.client.messages.create(
                    model=self.model,
                    max_tokens=MAX_TOKENS,
                    messages=[{"role": "user", "content": prompt}],
                )
                break
            except anthropic.APIError as e:
                attempt += 1
                if not is_retriable(e) or attempt >= self.max_retries:
                    raise
                wait = attempt * 2
                logger.warning(
                    f"AI service overloaded, retrying in {wait}s ({attempt}/{self.max_retries})"
                )
                self._sleep(wait)

        text = "".join(
            block.text for block in response.content if getattr(block, "type", "text") == "text"
        )
        data = json.loads(strip_code_fences(text))
        if not isinstance(data, dict):
            raise ValueError("AI response is not a JSON object")
        return data

    def _surrender(self, error: Exception, what: str) -> None:
        if not self.fallback_enabled:
            raise AIUnavailableError(f"AI {what} failed: {error}") from error
        logger.warning(f"AI service unavailable, using fallback {what}: {error}")

    def analyze_pr_content(self, context: Context) -> PullRequestContent:
        """Generate pull request title, body and summary for the branch."""
        if not self.is_available():
            self._surrender(AIUnavailableError("AI provider not configured"), "analysis")
            return self.fallback_pr_content(context)

        logger.info("Sending code changes to AI for analysis")
        try:
            data = self.generate_json(self.prompts.build_pr_analysis(context))
            content = PullRequestContent.from_dict(data, generated=True)
            if not content.title or not content.body:
                raise ValueError("AI response is missing title or body")
            logger.info("AI analysis complete")
            return content
        except (anthropic.APIError, ValueError) as e:
            self._surrender(e, "analysis")
            return self.fallback_pr_content(context)

    def generate_commit_message(
        self, context: Context, analysis: ChangeAnalysis, diff: Optional[str] = None
    ) -> dict[str, Any]:
        """Generate a commit message with impact analysis for the working-copy changes."""
        ticket_id = context.ticket_id
        if not self.is_available():
            self._surrender(AIUnavailableError("AI provider not configured"), "commit message")
            return compose_commit_message(analysis, ticket_id, templates=self.templates)

        suggestions = self.templates.get_template_suggestions(analysis)
        try:
            data = self.generate_json(
                self.prompts.build_commit_message(context, analysis, suggestions, diff=diff)
            )
            if not str(data.get("message", "")).strip():
                raise ValueError("AI response is missing a commit message")
            data["message"] = str(data["message"]).strip()
            return data
        except (anthropic.APIError, ValueError) as e:
            self._surrender(e, "commit message")
            return compose_commit_message(analysis, ticket_id, templates=self.templates)

    @staticmethod
    def fallback_pr_content(context: Context) -> PullRequestContent:
        """Deterministic pull request content built from the diff."""
        ticket_id = context.ticket_id or "UNKNOWN"
        files_changed = "\n".join(
            line.replace("diff --git a/", "- ", 1)
            for line in context.git.diff.splitlines()
            if line.startswith("diff --git")
        )
        body = (
            f"## Changes\n\nThis PR addresses ticket {ticket_id}.\n\n"
            f"### Diff Summary\n```\n{context.git.diff_stats}\n```\n\n"
            f"### Files Changed\n{files_changed}"
        )
        return PullRequestContent(
            title=f"feat: {ticket_id} - Update implementation",
            body=body,
            summary=f"Updated implementation for {ticket_id} with code changes across multiple files.",
        )
