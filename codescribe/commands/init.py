"""Init command implementation."""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax

from codescribe.core.config import Config
from codescribe.core.context import ProjectContext

console = Console()

PROJECT_CONFIG_FILE = ".codescribe.toml"


def command(
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite existing configuration"
    ),
    show_config: bool = typer.Option(
        False, "--show", help="Show default configuration without creating"
    ),
    project_dir: Optional[Path] = typer.Option(
        None, "--project-dir", "-p", help="Project directory (default: auto-detect)"
    ),
):
    """Initialize codescribe project configuration.

    Creates .codescribe.toml in the project root with default settings.
    """
    context = ProjectContext(cwd=project_dir)
    config_path = context.project_root / PROJECT_CONFIG_FILE

    # Show config and exit
    if show_config:
        console.print("\n[bold]Default configuration:[/bold]\n")
        syntax = Syntax(
            Config.get_default_config(), "toml", theme="monokai", line_numbers=True
        )
        console.print(syntax)
        console.print(f"\n[dim]Would be created at: {config_path}[/dim]")
        if context.config_file:
            console.print(f"[dim]Currently in effect: {context.config_file}[/dim]")
        return

    # Check if config exists
    if config_path.exists() and not force:
        console.print(
            Panel(
                f"[yellow]Configuration already exists:[/yellow]\n"
                f"{config_path}\n\n"
                f"Use [bold]--force[/bold] to overwrite or [bold]--show[/bold] to view default config",
                title="⚠️  Config Exists",
                border_style="yellow",
            )
        )
        raise typer.Exit(code=1)

    try:
        created = Config(cwd=context.project_root, load_global=False).create_default(
            config_path, force=force
        )

        console.print(
            Panel(
                f"[green]✓[/green] Configuration created: [bold]{created}[/bold]\n\n"
                f"[dim]Credentials are read from GITHUB_TOKEN, LINEAR_API_KEY and ANTHROPIC_API_KEY.[/dim]\n"
                f"[dim]Edit the config file to customize codescribe behavior.[/dim]",
                title="✅ CodeScribe Initialized",
                border_style="green",
            )
        )

    except FileExistsError as e:
        console.print(f"[red]ERROR:[/red] {e}")
        raise typer.Exit(code=1)
    except Exception as e:
        console.print(f"[red]ERROR:[/red] Failed to create configuration: {e}")
        raise typer.Exit(code=1)
