# src/flakegate/cli/commands/init.py
# Implementation of `flakegate init` command.
"""
Creates a local configuration file (.flakegate.yaml) with default thresholds.

The config file stores:
- Gate thresholds (coverage, per-stage duration, flake rate)
- Flake window settings
- State and report locations
"""

from pathlib import Path

import typer
from rich.panel import Panel

from flakegate.cli.state import EXIT_FAILED, console
from flakegate.core.config import CONFIG_FILENAME, FlakegateConfig, dump_config


def init_command(
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite existing config"),
    path: Path = typer.Option(
        Path(CONFIG_FILENAME), "--path", "-p", help="Config file path"
    ),
) -> None:
    """Initialize flakegate configuration with default thresholds."""
    if path.exists() and not force:
        console.print(f"[yellow]Config already exists at {path}[/yellow]")
        console.print("Use --force to overwrite")
        raise typer.Exit(EXIT_FAILED)

    config = FlakegateConfig()
    dump_config(config, path)

    gate = config.gate
    ceilings = ", ".join(
        f"{stage.value} {seconds:.0f}s" for stage, seconds in gate.max_duration.items()
    )
    console.print(Panel(
        f"[bold]Minimum coverage:[/bold] {gate.min_coverage:.0f}%\n"
        f"[bold]Duration ceilings:[/bold] {ceilings}\n"
        f"[bold]Max weekly flake rate:[/bold] {gate.max_flake_rate:.0%}\n"
        f"[bold]Flake window:[/bold] last {config.window_size} runs / {config.window_days} days\n"
        f"[bold]State file:[/bold] {config.state_path}",
        title="Gate Configuration",
    ))
    console.print(f"\n[green]✓ Created config at {path}[/green]")

    console.print("\n[bold]Next steps:[/bold]")
    console.print("  1. Run [cyan]flakegate gate evaluate report.json[/cyan] after each CI stage")
    console.print("  2. Run [cyan]flakegate flakes status[/cyan] to review flaky tests")
