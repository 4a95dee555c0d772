"""Tests for the workflow orchestrator."""

import pytest

from codescribe.analysis.models import ContextWriteError
from codescribe.workflows.base import BaseWorkflow
from codescribe.workflows.models import CommandOptions
from codescribe.workflows.orchestrator import (
    MAX_ATTEMPTS,
    WorkflowCycleError,
    WorkflowOrchestrator,
    sort_workflows,
)


class RecordingWorkflow(BaseWorkflow):
    """Workflow that records its calls and returns a fixed result."""

    def __init__(self, config, name, dependencies=(), critical=True, result=None, error=None, runnable=True, log=None):
        super().__init__(config)
        self.name = name
        self.dependencies = tuple(dependencies)
        self.critical = critical
        self.result = result if result is not None else {"ran": name}
        self.error = error
        self.runnable = runnable
        self.log = log if log is not None else []
        self.cleaned_up = False

    def can_execute(self, context):
        return self.runnable

    def skip_reason(self, context):
        return None if self.runnable else f"{self.name} has nothing to do"

    def execute(self, context, options):
        self.log.append(self.name)
        if self.error is not None:
            raise self.error
        return self.result

    def cleanup(self, context, results):
        self.cleaned_up = True


class FlakyWorkflow(RecordingWorkflow):
    """Fails until the given attempt, asking for retries."""

    def __init__(self, config, name, succeed_on, **kwargs):
        super().__init__(config, name, **kwargs)
        self.succeed_on = succeed_on
        self.attempts = []

    def execute(self, context, options):
        self.attempts.append(len(self.attempts))
        if len(self.attempts) < self.succeed_on:
            raise ConnectionError("temporary outage")
        return {"attempts": len(self.attempts)}

    def handle_error(self, error, context, attempt=0):
        return isinstance(error, ConnectionError)


@pytest.fixture
def config(isolated_config):
    return isolated_config()


@pytest.fixture
def orchestrator(config):
    return WorkflowOrchestrator(config, register_defaults=False)


class TestSortWorkflows:
    """Test dependency ordering."""

    def test_dependencies_run_first(self, config):
        """Test a dependent is placed after its dependency."""
        tracker = RecordingWorkflow(config, "issue-tracker", dependencies=["code-review"])
        review = RecordingWorkflow(config, "code-review")

        assert [w.name for w in sort_workflows([tracker, review])] == ["code-review", "issue-tracker"]

    def test_independent_keep_listed_order(self, config):
        """Test unconstrained workflows keep their order."""
        names = ["c", "a", "b"]
        workflows = [RecordingWorkflow(config, n) for n in names]
        assert [w.name for w in sort_workflows(workflows)] == names

    def test_missing_dependency_is_ignored(self, config):
        """Test dependencies outside the selection do not block."""
        tracker = RecordingWorkflow(config, "issue-tracker", dependencies=["code-review"])
        assert sort_workflows([tracker]) == [tracker]

    def test_cycle_raises(self, config):
        """Test a dependency cycle is rejected."""
        a = RecordingWorkflow(config, "a", dependencies=["b"])
        b = RecordingWorkflow(config, "b", dependencies=["a"])

        with pytest.raises(WorkflowCycleError, match="a, b"):
            sort_workflows([a, b])


class TestRegistry:
    """Test registration and command selection."""

    def test_default_workflows_registered(self, config):
        """Test the built-in workflows are registered by default."""
        orchestrator = WorkflowOrchestrator(config)
        assert orchestrator.get_registered_workflows() == ["code-review", "issue-tracker", "commit"]

    def test_select_for_known_commands(self, config):
        """Test command to workflow resolution."""
        orchestrator = WorkflowOrchestrator(config)

        assert [w.name for w in orchestrator.select_workflows("pr")] == ["code-review", "issue-tracker"]
        assert [w.name for w in orchestrator.select_workflows("commit")] == ["commit"]
        assert [w.name for w in orchestrator.select_workflows("issue-tracker-only")] == ["issue-tracker"]

    def test_unknown_command_uses_default(self, config):
        """Test unknown commands fall back to the default set."""
        orchestrator = WorkflowOrchestrator(config)
        assert [w.name for w in orchestrator.select_workflows("deploy")] == ["code-review", "issue-tracker"]

    def test_register_replaces_by_name(self, orchestrator, config):
        """Test re-registering a name replaces the workflow."""
        first = RecordingWorkflow(config, "notify")
        second = RecordingWorkflow(config, "notify")
        orchestrator.register_workflow(first)
        orchestrator.register_workflow(second)

        assert orchestrator.get_workflow("notify") is second

    def test_custom_command(self, orchestrator, config):
        """Test a custom workflow reachable through a registered command."""
        orchestrator.register_workflow(RecordingWorkflow(config, "notify"))
        orchestrator.register_command("notify", ["notify"])

        assert [w.name for w in orchestrator.select_workflows("notify")] == ["notify"]


class TestExecute:
    """Test WorkflowOrchestrator.execute."""

    def test_results_are_threaded_through_context(self, orchestrator, config, make_context):
        """Test each result is stored and visible to later workflows."""
        context = make_context()
        review = RecordingWorkflow(config, "code-review", result={"pr": {"number": 1}})
        tracker = RecordingWorkflow(config, "issue-tracker", dependencies=["code-review"])

        results = orchestrator.execute([review, tracker], context, CommandOptions())

        assert results == {"code-review": {"pr": {"number": 1}}, "issue-tracker": {"ran": "issue-tracker"}}
        assert context.get_result("code-review") == {"pr": {"number": 1}}
        assert review.cleaned_up and tracker.cleaned_up

    def test_all_disabled_leaves_context_unchanged(self, isolated_config, make_context):
        """Test disabling every workflow yields empty results and an untouched Context."""
        config = isolated_config(
            {"workflows": {name: {"enabled": False} for name in ("code-review", "issue-tracker", "commit")}}
        )
        orchestrator = WorkflowOrchestrator(config)
        context = make_context()
        before = context.to_dict()

        results = orchestrator.execute(orchestrator.select_workflows("default"), context, CommandOptions(push=False))

        assert results == {}
        assert context.to_dict() == before
        assert orchestrator.skipped == {
            "code-review": {"skipped": True, "reason": "disabled"},
            "issue-tracker": {"skipped": True, "reason": "disabled"},
        }

    def test_cannot_execute_is_skipped_with_reason(self, orchestrator, config, make_context):
        """Test can_execute false skips without running."""
        workflow = RecordingWorkflow(config, "notify", runnable=False)

        results = orchestrator.execute([workflow], make_context())

        assert results == {}
        assert workflow.log == []
        assert orchestrator.skipped["notify"]["reason"] == "notify has nothing to do"
        assert workflow.cleaned_up is False

    def test_critical_failure_aborts(self, orchestrator, config, make_context):
        """Test a critical failure propagates and stops later workflows."""
        log = []
        failing = RecordingWorkflow(config, "code-review", error=RuntimeError("remote down"), log=log)
        later = RecordingWorkflow(config, "issue-tracker", log=log)

        with pytest.raises(RuntimeError, match="remote down"):
            orchestrator.execute([failing, later], make_context())

        assert log == ["code-review"]
        assert failing.cleaned_up is True

    def test_non_critical_failure_continues(self, orchestrator, config, make_context):
        """Test a non-critical failure is recorded and execution continues."""
        context = make_context()
        failing = RecordingWorkflow(config, "commit", critical=False, error=RuntimeError("nothing staged"))
        later = RecordingWorkflow(config, "notify")

        results = orchestrator.execute([failing, later], context)

        assert results["commit"] == {"error": "nothing staged"}
        assert results["notify"] == {"ran": "notify"}
        assert context.has_result("commit") is False

    def test_retry_until_success(self, orchestrator, config, make_context):
        """Test handle_error can request retries."""
        workflow = FlakyWorkflow(config, "code-review", succeed_on=2)

        results = orchestrator.execute([workflow], make_context())

        assert results["code-review"] == {"attempts": 2}

    def test_retries_are_bounded(self, orchestrator, config, make_context):
        """Test retries stop after MAX_ATTEMPTS."""
        workflow = FlakyWorkflow(config, "code-review", succeed_on=MAX_ATTEMPTS + 5)

        with pytest.raises(ConnectionError):
            orchestrator.execute([workflow], make_context())

        assert len(workflow.attempts) == MAX_ATTEMPTS

    def test_workflow_cannot_overwrite_slot(self, orchestrator, config, make_context):
        """Test a second workflow writing the same slot fails."""
        context = make_context()
        context.record("notify", {"already": True})

        with pytest.raises(ContextWriteError):
            orchestrator.execute([RecordingWorkflow(config, "notify")], context)
