# src/flakegate/cli/commands/flakes.py
"""
Read-only flake metrics export.

Usage:
    flakegate flakes status            # Weekly flake rate + unstable tests
    flakegate flakes status --all      # Include stable tests
    flakegate flakes status --json     # Dashboard export
    flakegate flakes show <test-id>    # Outcome window for one test
"""

import json
from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from flakegate.cli.state import (
    EXIT_FAILED,
    console,
    escalation_dicts,
    get_config,
    open_tracker,
    persist,
    print_escalations,
)
from flakegate.flakes.models import Classification

app = typer.Typer(help="Inspect flake history and classifications")

CONFIG_OPTION = typer.Option(None, "--config", "-c", help="Path to .flakegate.yaml")

CLASSIFICATION_STYLES = {
    Classification.STABLE: "green",
    Classification.FLAKY: "yellow",
    Classification.QUARANTINED: "magenta",
}


@app.command("status")
def status(
    config_path: Optional[Path] = CONFIG_OPTION,
    show_all: bool = typer.Option(False, "--all", "-a", help="Include stable tests"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show the weekly flake rate and per-test classification."""
    config = get_config(config_path)
    tracker, notifier = open_tracker(config)
    snapshot = tracker.snapshot()
    if notifier.events:
        # Expired quarantines were cleared while classifying
        persist(tracker, config)

    if json_output:
        typer.echo(json.dumps(
            {**snapshot.to_dict(), "escalations": escalation_dicts(notifier)}, indent=2
        ))
        return

    print_escalations(notifier)
    counts = snapshot.counts()
    rate_style = "red" if snapshot.flake_rate > config.gate.max_flake_rate else "green"
    console.print(Panel(
        f"Weekly flake rate: [{rate_style}]{snapshot.flake_rate:.2%}[/{rate_style}] "
        f"(ceiling {config.gate.max_flake_rate:.2%})\n"
        f"Tests tracked: {len(snapshot.classifications)} - "
        f"{counts['stable']} stable, {counts['flaky']} flaky, {counts['quarantined']} quarantined\n"
        f"Regressions: {len(snapshot.regressions)}",
        title="Flake Status",
    ))

    table = Table()
    table.add_column("Test", style="cyan")
    table.add_column("Classification")
    table.add_column("Regression", justify="center")

    rows = 0
    for test_id, classification in sorted(snapshot.classifications.items()):
        regression = test_id in snapshot.regressions
        if classification == Classification.STABLE and not regression and not show_all:
            continue
        style = CLASSIFICATION_STYLES[classification]
        table.add_row(
            escape(test_id),
            f"[{style}]{classification.value}[/{style}]",
            "[red]✗[/red]" if regression else "",
        )
        rows += 1

    if rows:
        console.print(table)
    else:
        console.print("[dim]No flaky, quarantined or regressed tests[/dim]")


@app.command("show")
def show(
    test_id: str = typer.Argument(..., help="Test identifier"),
    config_path: Optional[Path] = CONFIG_OPTION,
) -> None:
    """Show the outcome window of one test."""
    config = get_config(config_path)
    tracker, notifier = open_tracker(config)

    if test_id not in tracker:
        console.print(f"[yellow]No history for {escape(test_id)}[/yellow]")
        raise typer.Exit(EXIT_FAILED)

    classification = tracker.classify(test_id)
    if notifier.events:
        persist(tracker, config)
    print_escalations(notifier)

    state = tracker.state(test_id)
    style = CLASSIFICATION_STYLES[classification]
    console.print(f"[bold]{escape(test_id)}[/bold]: [{style}]{classification.value}[/{style}]")
    if tracker.is_regression(test_id):
        console.print("[red]All recent runs failed (regression)[/red]")
    if state.quarantine is not None:
        q = state.quarantine
        console.print(
            f"Quarantined by {escape(q.owner)} ({escape(q.ticket)}) until {q.expires_at:%Y-%m-%d %H:%M}"
        )

    table = Table(title=f"Last {len(state.window)} outcomes")
    table.add_column("Timestamp")
    table.add_column("Status")
    table.add_column("Duration", justify="right")
    for outcome in reversed(state.window):
        table.add_row(
            f"{outcome.timestamp:%Y-%m-%d %H:%M:%S}",
            outcome.status.value,
            f"{outcome.duration:.2f}s",
        )
    console.print(table)
