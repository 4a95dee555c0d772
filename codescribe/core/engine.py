"""CodeScribe execution engine.

execute() is the single entry point the command layer calls: gather the
Context, generate AI content, run the command's workflows and record the
execution in history.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Optional

from codescribe.analysis.analyzer import ContextAnalyzer
from codescribe.core.ai import AIEngine
from codescribe.core.config import Config
from codescribe.core.context import ProjectContext
from codescribe.core.history import WorkflowHistory
from codescribe.workflows.base import BaseWorkflow
from codescribe.workflows.models import CommandOptions
from codescribe.workflows.orchestrator import WorkflowOrchestrator

logger = logging.getLogger(__name__)

# Commands that run on uncommitted work and tolerate an empty branch diff
WORKING_COPY_COMMANDS = {"commit"}

# Workflows that consume the generated pull request content
AI_CONSUMERS = {"code-review", "issue-tracker"}


class CodeScribe:
    """Runs commands against the working copy.

    Attributes:
        config: Resolved configuration
        project: Project root detection
        analyzer: Context analyzer
        ai: AI generation engine
        orchestrator: Workflow registry and executor
        history: Execution history store
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        cwd: Optional[Path] = None,
        analyzer: Optional[ContextAnalyzer] = None,
        ai: Optional[AIEngine] = None,
        orchestrator: Optional[WorkflowOrchestrator] = None,
        history: Optional[WorkflowHistory] = None,
    ):
        self.project = ProjectContext(cwd)
        self.config = config or Config(cwd=self.project.cwd)
        self.analyzer = analyzer or ContextAnalyzer(self.config, self.project.project_root)
        self.ai = ai or AIEngine(self.config)
        self.orchestrator = orchestrator or WorkflowOrchestrator(self.config)
        self.history = history or WorkflowHistory(
            self.project.history_dir(self.config),
            max_entries=self.config.get("history.maxEntries", 100),
            enabled=self.config.get("history.enabled", True),
        )

    def register_workflow(self, workflow: BaseWorkflow) -> None:
        self.orchestrator.register_workflow(workflow)

    def get_config(self) -> dict[str, Any]:
        return self.config.all()

    def update_config(self, values: dict[str, Any]) -> None:
        self.config.update(values)

    def execute(self, command: str = "default", options: Optional[CommandOptions] = None) -> dict[str, Any]:
        """Run a command end to end.

        Returns:
            Dict with command, results, skipped workflows, the Context and
            the history execution id

        Raises:
            Exception: Whatever gathering or a critical workflow raised
        """
        options = options or CommandOptions()
        started = time.monotonic()
        context = None
        workflows: list[BaseWorkflow] = []
        results: dict[str, Any] = {}
        error: Optional[str] = None

        try:
            workflows = self.orchestrator.select_workflows(command)
            context = self.analyzer.gather(
                require_changes=command not in WORKING_COPY_COMMANDS,
                push=None if options.push else False,
            )

            wants_ai = any(w.name in AI_CONSUMERS and w.is_enabled() for w in workflows)
            if wants_ai and self.ai.is_available():
                content = self.ai.analyze_pr_content(context)
                context.record("ai", content.to_dict())

            results = self.orchestrator.execute(workflows, context, options)
            return {
                "command": command,
                "results": results,
                "skipped": dict(self.orchestrator.skipped),
                "context": context,
                "execution_id": self._record(command, options, context, workflows, results, started, None),
            }
        except Exception as e:
            error = str(e)
            self._record(command, options, context, workflows, results, started, error)
            raise

    def _record(self, command, options, context, workflows, results, started, error) -> Optional[str]:
        duration_ms = int((time.monotonic() - started) * 1000)
        return self.history.record_execution(
            command=command,
            options=options.to_dict(),
            context=context.to_dict() if context is not None else None,
            workflows=[w.name for w in workflows],
            results=results,
            duration_ms=duration_ms,
            success=error is None,
            error=error,
            secrets_to_hide=self.config.credentials(),
        )
