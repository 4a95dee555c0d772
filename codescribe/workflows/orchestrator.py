"""Workflow registry, command selection and sequential execution."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from codescribe.analysis.models import Context
from codescribe.core.config import Config
from codescribe.workflows.base import BaseWorkflow
from codescribe.workflows.models import CommandOptions

logger = logging.getLogger(__name__)

DEFAULT_COMMAND = "default"

COMMAND_WORKFLOWS: dict[str, tuple[str, ...]] = {
    "default": ("code-review", "issue-tracker"),
    "pr": ("code-review", "issue-tracker"),
    "commit": ("commit",),
    "code-review-only": ("code-review",),
    "issue-tracker-only": ("issue-tracker",),
}

# Upper bound on attempts when a workflow's handle_error asks for a retry
MAX_ATTEMPTS = 3


class WorkflowCycleError(Exception):
    """Raised when selected workflows depend on each other in a cycle."""

    pass


def sort_workflows(workflows: list[BaseWorkflow]) -> list[BaseWorkflow]:
    """Order workflows so each runs after its dependencies.

    Dependencies outside the given list are ignored. Workflows with no
    ordering constraint between them keep their listed order.

    Raises:
        WorkflowCycleError: If the dependencies form a cycle
    """
    names = [w.name for w in workflows]
    by_name = {w.name: w for w in workflows}
    pending = {name: {d for d in by_name[name].dependencies if d in by_name and d != name} for name in names}

    ordered: list[BaseWorkflow] = []
    while pending:
        ready = next((name for name in names if name in pending and not pending[name]), None)
        if ready is None:
            raise WorkflowCycleError(f"Workflow dependency cycle among: {', '.join(sorted(pending))}")
        ordered.append(by_name[ready])
        del pending[ready]
        for deps in pending.values():
            deps.discard(ready)
    return ordered


class WorkflowOrchestrator:
    """Holds the workflow registry and runs workflows for a command.

    Attributes:
        workflows: Registered workflows by name
        commands: Command name to workflow names
        skipped: Workflows skipped during the last execute(), with reasons
    """

    def __init__(self, config: Config, register_defaults: bool = True):
        self.config = config
        self.workflows: dict[str, BaseWorkflow] = {}
        self.commands: dict[str, tuple[str, ...]] = dict(COMMAND_WORKFLOWS)
        self.skipped: dict[str, dict[str, Any]] = {}
        if register_defaults:
            self.register_default_workflows()

    def register_default_workflows(self) -> None:
        from codescribe.workflows.code_review import CodeReviewWorkflow
        from codescribe.workflows.commit import CommitWorkflow
        from codescribe.workflows.issue_tracker import IssueTrackerWorkflow

        for workflow in (
            CodeReviewWorkflow(self.config),
            IssueTrackerWorkflow(self.config),
            CommitWorkflow(self.config),
        ):
            self.register_workflow(workflow)

    def register_workflow(self, workflow: BaseWorkflow) -> None:
        """Register a workflow, replacing any with the same name."""
        self.workflows[workflow.name] = workflow
        logger.debug(f"Registered workflow: {workflow.name}")

    def register_command(self, command: str, workflow_names: Iterable[str]) -> None:
        self.commands[command] = tuple(workflow_names)

    def get_workflow(self, name: str) -> Optional[BaseWorkflow]:
        return self.workflows.get(name)

    def get_registered_workflows(self) -> list[str]:
        return list(self.workflows)

    def select_workflows(self, command: str) -> list[BaseWorkflow]:
        """Resolve a command to its workflows in execution order.

        Unknown commands fall back to the default set.
        """
        names = self.commands.get(command)
        if names is None:
            logger.debug(f"Unknown command '{command}', using default workflows")
            names = self.commands[DEFAULT_COMMAND]
        selected = [self.workflows[name] for name in names if name in self.workflows]
        return sort_workflows(selected)

    def execute(
        self,
        workflows: list[BaseWorkflow],
        context: Context,
        options: Optional[CommandOptions] = None,
    ) -> dict[str, Any]:
        """Run workflows in order, threading results through the Context.

        Returns:
            Results by workflow name; non-critical failures appear as
            {"error": message}

        Raises:
            Exception: Whatever a critical workflow raised
        """
        options = options or CommandOptions()
        results: dict[str, Any] = {}
        self.skipped = {}
        executed: list[BaseWorkflow] = []

        try:
            for workflow in workflows:
                if not workflow.is_enabled():
                    logger.info(f"{workflow.name} workflow is disabled, skipping")
                    self.skipped[workflow.name] = {"skipped": True, "reason": "disabled"}
                    continue
                if not workflow.can_execute(context):
                    reason = workflow.skip_reason(context) or "cannot execute"
                    logger.info(f"Skipping {workflow.name} workflow: {reason}")
                    self.skipped[workflow.name] = {"skipped": True, "reason": reason}
                    continue

                executed.append(workflow)
                logger.info(f"Executing {workflow.name} workflow")
                attempt = 0
                while True:
                    try:
                        result = workflow.execute(context, options)
                    except Exception as e:
                        if workflow.handle_error(e, context, attempt) and attempt + 1 < MAX_ATTEMPTS:
                            attempt += 1
                            logger.info(f"Retrying {workflow.name} workflow (attempt {attempt + 1})")
                            continue
                        logger.error(f"{workflow.name} workflow failed: {e}")
                        if workflow.critical:
                            raise
                        results[workflow.name] = {"error": str(e)}
                        break
                    results[workflow.name] = result
                    context.record(workflow.name, result)
                    break
        finally:
            for workflow in executed:
                try:
                    workflow.cleanup(context, results)
                except Exception as e:
                    logger.warning(f"Cleanup of {workflow.name} workflow failed: {e}")

        return results
