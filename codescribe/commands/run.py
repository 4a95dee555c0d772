"""Pull request and ticket sync command implementations."""

from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console

from codescribe.adapters.github import GitHubAPIError
from codescribe.adapters.linear import LinearAPIError
from codescribe.analysis.analyzer import BranchNamingError, ContextGatheringError, NoChangesError
from codescribe.core.ai import AIUnavailableError
from codescribe.core.config import Config, ConfigurationError
from codescribe.core.context import ProjectContext
from codescribe.core.engine import CodeScribe
from codescribe.core.logs import configure_logging
from codescribe.tracker.state_machine import TicketNotFoundError
from codescribe.vcs.git_operations import GitError
from codescribe.workflows.models import CommandOptions
from codescribe.workflows.orchestrator import WorkflowCycleError

console = Console()

ERROR_HINTS = [
    (ConfigurationError, "Check the syntax of your .codescribe config file"),
    (NoChangesError, "Commit your work on this branch, then run codescribe again"),
    (BranchNamingError, "Name your branch like feature/ABC-123-short-description"),
    (ContextGatheringError, "Check git repository state and that the integration branch exists on origin"),
    (GitError, "Check git repository state and ensure no conflicts exist"),
    (GitHubAPIError, "Check that GITHUB_TOKEN is set and can write pull requests"),
    (TicketNotFoundError, "Check that the ticket in the branch name exists in Linear"),
    (LinearAPIError, "Check that LINEAR_API_KEY is set and valid"),
    (AIUnavailableError, "Set ANTHROPIC_API_KEY or enable ai.fallback"),
    (WorkflowCycleError, "Remove the circular dependency between custom workflows"),
]


def report_error(error: Exception) -> None:
    """Print an error with a remediation hint and exit 1."""
    console.print(f"[red]ERROR:[/red] {error}")
    for kind, hint in ERROR_HINTS:
        if isinstance(error, kind):
            console.print(f"[yellow]Hint:[/yellow] {hint}")
            break
    else:
        console.print("[yellow]Hint:[/yellow] This may be a bug. Run with --verbose for details.")
    raise typer.Exit(code=1)


def print_results(outcome: dict[str, Any]) -> None:
    for name, info in outcome["skipped"].items():
        console.print(f"[dim]- {name} skipped: {info.get('reason')}[/dim]")

    for name, result in outcome["results"].items():
        if isinstance(result, dict) and "error" in result and len(result) == 1:
            console.print(f"[yellow]⚠ {name} failed:[/yellow] {result['error']}")
        elif name == "code-review":
            pr = result["pr"]
            verb = "updated" if result["is_update"] else "created"
            console.print(f"[green]✓[/green] Pull request #{pr['number']} {verb}: {pr['html_url']}")
        elif name == "issue-tracker":
            transition = result["status_transition"]
            console.print(f"[green]✓[/green] Ticket {result['ticket_id']} updated")
            if transition.get("success"):
                console.print(f"  [dim]{transition['from_state']} → {transition['to_state']}[/dim]")
        elif name == "commit":
            if result.get("skipped"):
                console.print(f"[dim]- Nothing to commit ({result.get('reason')})[/dim]")
            else:
                commit = result["commit"]
                console.print(f"[green]✓[/green] Committed {commit['short_sha']}: {commit['message'].splitlines()[0]}")
                push = result.get("push")
                if push and not push.get("success"):
                    console.print(f"[yellow]⚠ Push failed:[/yellow] {push.get('error')}")
        else:
            console.print(f"[green]✓[/green] {name} completed")


def run_command(
    command_name: str,
    options: CommandOptions,
    project_dir: Optional[Path] = None,
) -> dict[str, Any]:
    """Configure, execute a command and report its outcome."""
    try:
        context = ProjectContext(cwd=project_dir)
        config = Config(cwd=context.project_root)
        configure_logging(config, verbose=options.verbose)
        for warning in config.validate():
            console.print(f"[dim]{warning}[/dim]")

        engine = CodeScribe(config=config, cwd=context.project_root)
        with console.status(f"[bold]Running {command_name}...[/bold]"):
            outcome = engine.execute(command_name, options)
        print_results(outcome)
        return outcome

    except typer.Exit:
        raise
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        raise typer.Exit(code=0)
    except Exception as e:
        report_error(e)


def _options(no_push: bool, verbose: bool) -> CommandOptions:
    return CommandOptions(push=not no_push, verbose=verbose)


NO_PUSH_OPTION = typer.Option(False, "--no-push", help="Do not push unpushed commits before analysis")
VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Enable debug logging")
PROJECT_DIR_OPTION = typer.Option(None, "--project-dir", "-p", help="Project directory (default: auto-detect)")


def default(
    no_push: bool = NO_PUSH_OPTION,
    verbose: bool = VERBOSE_OPTION,
    project_dir: Optional[Path] = PROJECT_DIR_OPTION,
):
    """Create or update the pull request and sync the ticket."""
    run_command("default", _options(no_push, verbose), project_dir)


def pr(
    no_push: bool = NO_PUSH_OPTION,
    verbose: bool = VERBOSE_OPTION,
    project_dir: Optional[Path] = PROJECT_DIR_OPTION,
):
    """Create or update the pull request and sync the ticket."""
    run_command("pr", _options(no_push, verbose), project_dir)


def code_review_only(
    no_push: bool = NO_PUSH_OPTION,
    verbose: bool = VERBOSE_OPTION,
    project_dir: Optional[Path] = PROJECT_DIR_OPTION,
):
    """Create or update the pull request only."""
    run_command("code-review-only", _options(no_push, verbose), project_dir)


def issue_tracker_only(
    no_push: bool = NO_PUSH_OPTION,
    verbose: bool = VERBOSE_OPTION,
    project_dir: Optional[Path] = PROJECT_DIR_OPTION,
):
    """Sync the ticket only."""
    run_command("issue-tracker-only", _options(no_push, verbose), project_dir)
