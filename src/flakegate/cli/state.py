# src/flakegate/cli/state.py
# Shared helpers for CLI commands: config, tracker and error reporting.

from pathlib import Path
from typing import NoReturn, Optional

import typer
from rich.console import Console
from rich.markup import escape

from flakegate.core.config import FlakegateConfig, load_config
from flakegate.errors import FlakegateError
from flakegate.flakes import CollectingNotifier, FlakeTracker, load_tracker, save_tracker

console = Console()

EXIT_PASSED = 0
EXIT_FAILED = 1
EXIT_ERROR = 2


def fail(error: FlakegateError) -> NoReturn:
    """Print a library error and exit with the error status."""
    console.print(f"[red]Error ({type(error).__name__}):[/red] {escape(str(error))}")
    raise typer.Exit(EXIT_ERROR)


def get_config(config_path: Optional[Path]) -> FlakegateConfig:
    try:
        return load_config(config_path)
    except FlakegateError as e:
        fail(e)


def open_tracker(config: FlakegateConfig) -> tuple[FlakeTracker, CollectingNotifier]:
    """Load persisted flake state with a collecting notifier attached."""
    notifier = CollectingNotifier()
    try:
        tracker = load_tracker(
            config.state_path,
            notifier=notifier,
            window_size=config.window_size,
            window_days=config.window_days,
        )
    except FlakegateError as e:
        fail(e)
    return tracker, notifier


def persist(tracker: FlakeTracker, config: FlakegateConfig) -> Path:
    return save_tracker(tracker, config.state_path)


def escalation_dicts(notifier: CollectingNotifier) -> list[dict]:
    return [event.model_dump(mode="json") for event in notifier.events]


def print_escalations(notifier: CollectingNotifier) -> None:
    for event in notifier.events:
        console.print(f"[bold red]⚠ ESCALATION[/bold red] {escape(event.message)}")
