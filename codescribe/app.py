"""Main Typer application instance."""

import typer

from codescribe.commands import commit, init, run
from codescribe.workflows.models import CommandOptions

app = typer.Typer(
    name="codescribe",
    help="Create or update pull requests and keep Linear tickets in sync with your branch",
    add_completion=False,
)


@app.callback(invoke_without_command=True)
def callback(ctx: typer.Context):
    """Run the default command when none is given."""
    if ctx.invoked_subcommand is None:
        run.run_command("default", CommandOptions())


# Register commands
app.command(name="init")(init.command)
app.command(name="default")(run.default)
app.command(name="pr")(run.pr)
app.command(name="commit")(commit.command)
app.command(name="code-review-only")(run.code_review_only)
app.command(name="issue-tracker-only")(run.issue_tracker_only)


def main():
    """Entry point for pip-installed command."""
    app()


if __name__ == "__main__":
    main()
