# src/flakegate/cli/commands/quarantine.py
"""
Quarantine administration.

Usage:
    flakegate quarantine add <test-id> --owner alice --ticket QA-12 --days 14
    flakegate quarantine add <test-id> --owner alice --ticket QA-12 --expires 2025-01-31
    flakegate quarantine release <test-id>
    flakegate quarantine list
"""

import json
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape
from rich.table import Table

from flakegate.cli.state import (
    EXIT_FAILED,
    console,
    fail,
    get_config,
    open_tracker,
    persist,
    print_escalations,
)
from flakegate.errors import FlakegateError

app = typer.Typer(help="Quarantine known-flaky tests")

CONFIG_OPTION = typer.Option(None, "--config", "-c", help="Path to .flakegate.yaml")


@app.command("add")
def add(
    test_id: str = typer.Argument(..., help="Test identifier"),
    owner: Optional[str] = typer.Option(None, "--owner", help="Person responsible for the fix"),
    ticket: Optional[str] = typer.Option(None, "--ticket", help="Tracking ticket reference"),
    expires: Optional[datetime] = typer.Option(
        None,
        "--expires",
        formats=["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%dT%H:%M:%S%z"],
        help="Expiry date (UTC when no offset is given)",
    ),
    days: Optional[int] = typer.Option(None, "--days", min=1, help="Expire after this many days"),
    config_path: Optional[Path] = CONFIG_OPTION,
) -> None:
    """Quarantine a test. Owner, ticket and an expiry are all required."""
    config = get_config(config_path)
    tracker, _ = open_tracker(config)

    expires_at = expires
    if expires_at is None and days is not None:
        expires_at = tracker.now() + timedelta(days=days)

    try:
        entry = tracker.quarantine(test_id, owner=owner, ticket=ticket, expires_at=expires_at)
    except FlakegateError as e:
        fail(e)

    persist(tracker, config)
    console.print(
        f"[green]✓ Quarantined[/green] {escape(entry.test_id)} "
        f"(owner {escape(entry.owner)}, ticket {escape(entry.ticket)}) "
        f"until {entry.expires_at:%Y-%m-%d %H:%M} UTC"
    )


@app.command("release")
def release(
    test_id: str = typer.Argument(..., help="Test identifier"),
    config_path: Optional[Path] = CONFIG_OPTION,
) -> None:
    """Resolve a quarantine."""
    config = get_config(config_path)
    tracker, notifier = open_tracker(config)

    if not tracker.release(test_id):
        console.print(f"[yellow]{escape(test_id)} is not quarantined[/yellow]")
        raise typer.Exit(EXIT_FAILED)

    persist(tracker, config)
    console.print(f"[green]✓ Released[/green] {escape(test_id)}")
    print_escalations(notifier)


@app.command("list")
def list_quarantined(
    config_path: Optional[Path] = CONFIG_OPTION,
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """List quarantined tests, flagging those past expiry."""
    config = get_config(config_path)
    tracker, _ = open_tracker(config)
    entries = tracker.quarantined()
    now = tracker.now()

    if json_output:
        typer.echo(json.dumps(
            [{**e.model_dump(mode="json"), "expired": e.is_expired(now)} for e in entries],
            indent=2,
        ))
        return

    if not entries:
        console.print("[dim]No quarantined tests[/dim]")
        return

    table = Table(title="Quarantined Tests")
    table.add_column("Test", style="cyan")
    table.add_column("Owner")
    table.add_column("Ticket")
    table.add_column("Expires")

    for entry in entries:
        expiry = f"{entry.expires_at:%Y-%m-%d %H:%M}"
        if entry.is_expired(now):
            expiry = f"[red]{expiry} (expired)[/red]"
        table.add_row(escape(entry.test_id), escape(entry.owner), escape(entry.ticket), expiry)

    console.print(table)
