"""Workflow base contract.

Every workflow registered with the orchestrator subclasses BaseWorkflow.

How to implement a new workflow:
--------------------------------
1. Subclass BaseWorkflow and set a unique ``name``
2. Set ``critical``, ``dependencies`` and ``parallel`` as class attributes
3. Override ``can_execute(context)`` to check credentials or inputs
4. Implement ``execute(context, options)`` and return the result
5. Optionally override ``handle_error`` to request a retry, and
   ``cleanup`` to release resources after the run

Example:
--------
    class NotifyWorkflow(BaseWorkflow):
        name = "notify"
        critical = False
        dependencies = ("code-review",)

        def can_execute(self, context):
            return context.has_result("code-review")

        def execute(self, context, options):
            pr = context.get_result("code-review")["pr"]
            return {"notified": pr["number"]}

The result returned by execute() is stored under ``name`` in the results
and recorded in the Context for workflows scheduled after it.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from codescribe.analysis.models import Context
from codescribe.core.config import Config
from codescribe.workflows.models import CommandOptions, WorkflowDescriptor

logger = logging.getLogger(__name__)


class BaseWorkflow:
    """Base class for orchestrated workflows."""

    name: str = "base"
    critical: bool = True
    dependencies: tuple[str, ...] = ()
    parallel: bool = False

    def __init__(self, config: Config):
        self.config = config

    def get_config(self) -> dict[str, Any]:
        """The workflows.<name> configuration table."""
        return self.config.workflow(self.name)

    def is_enabled(self) -> bool:
        return self.get_config().get("enabled", True) is not False

    def can_execute(self, context: Context) -> bool:
        return True

    def skip_reason(self, context: Context) -> Optional[str]:
        """Why can_execute() is false, for reporting."""
        return None

    def execute(self, context: Context, options: CommandOptions) -> Any:
        raise NotImplementedError(f"execute() must be implemented by {type(self).__name__}")

    def handle_error(self, error: Exception, context: Context, attempt: int = 0) -> bool:
        """Decide whether a failed execute() should be retried.

        Returns:
            True to retry; the default never retries
        """
        logger.error(f"[{self.name}] Error occurred: {error}")
        return False

    def cleanup(self, context: Context, results: dict[str, Any]) -> None:
        pass

    def descriptor(self) -> WorkflowDescriptor:
        return WorkflowDescriptor(
            name=self.name,
            critical=self.critical,
            dependencies=tuple(self.dependencies),
            parallel=self.parallel,
            enabled=self.is_enabled(),
        )
