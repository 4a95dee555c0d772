"""Issue-tracker workflow: runs the ticket state machine for the branch's ticket."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from codescribe.adapters.linear import LINEAR_API_URL, LinearClient
from codescribe.analysis.models import Context
from codescribe.core.config import Config
from codescribe.tracker.state_machine import TicketStateMachine
from codescribe.tracker.time_tracking import InMemoryTimeStore, JsonTimeStore, TimeStore, TimeTracker
from codescribe.workflows.base import BaseWorkflow
from codescribe.workflows.models import CommandOptions


class IssueTrackerWorkflow(BaseWorkflow):
    """Synchronizes the Linear ticket with the analyzed change set."""

    name = "issue-tracker"
    critical = True
    dependencies = ("code-review",)

    def __init__(
        self,
        config: Config,
        client: Optional[LinearClient] = None,
        time_store: Optional[TimeStore] = None,
    ):
        super().__init__(config)
        self._client = client
        self._time_store = time_store

    @property
    def client(self) -> LinearClient:
        if self._client is None:
            self._client = LinearClient(
                self.config.linear_api_key, api_url=self.config.get("linear.apiUrl", LINEAR_API_URL)
            )
        return self._client

    @property
    def time_store(self) -> TimeStore:
        if self._time_store is None:
            path = self.get_config().get("timeStore")
            self._time_store = JsonTimeStore(Path(self.config.cwd) / path) if path else InMemoryTimeStore()
        return self._time_store

    def can_execute(self, context: Context) -> bool:
        return self.skip_reason(context) is None

    def skip_reason(self, context: Context) -> Optional[str]:
        if not self._client and not self.config.linear_api_key:
            return "LINEAR_API_KEY is not set"
        if not context.ticket_id:
            return "no ticket identifier"
        return None

    def execute(self, context: Context, options: CommandOptions) -> dict[str, Any]:
        settings = self.get_config()
        tracker = TimeTracker(self.time_store, track_efficiency=bool(settings.get("trackEfficiency")))
        machine = TicketStateMachine(self.client, settings, time_tracker=tracker)
        return machine.run(context)
