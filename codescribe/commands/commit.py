"""Commit command implementation."""

from pathlib import Path
from typing import Optional

import typer

from codescribe.commands.run import PROJECT_DIR_OPTION, VERBOSE_OPTION, run_command
from codescribe.workflows.models import CommandOptions


def command(
    message: Optional[str] = typer.Option(
        None, "--message", "-m", help="Commit message (ticket id is prefixed when missing)"
    ),
    add_all: bool = typer.Option(False, "--all", "-a", help="Stage all changes including new files"),
    add_modified: bool = typer.Option(False, "--add-modified", help="Stage modified tracked files only"),
    no_push: bool = typer.Option(False, "--no-push", help="Do not push after committing"),
    force: bool = typer.Option(False, "--force", help="Commit even when no changes are detected"),
    verbose: bool = VERBOSE_OPTION,
    project_dir: Optional[Path] = PROJECT_DIR_OPTION,
):
    """Commit working-copy changes with a generated message."""
    options = CommandOptions(
        message=message,
        add_all=add_all,
        add_modified=add_modified,
        push=not no_push,
        force=force,
        verbose=verbose,
    )
    run_command("commit", options, project_dir)
