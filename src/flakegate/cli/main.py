# src/flakegate/cli/main.py
# Main CLI entrypoint for flakegate.
"""
Main Typer application with all sub-commands.

Usage:
    flakegate init                               # Write default .flakegate.yaml
    flakegate gate evaluate <report>             # Gate one stage report
    flakegate gate pipeline --unit u.json ...    # Gate stages in order
    flakegate quarantine add <test-id> ...       # Quarantine a flaky test
    flakegate flakes status                      # Flake metrics
"""

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from flakegate import __version__
from flakegate.cli.commands import flakes, gate, init, quarantine
from flakegate.cli.state import console

app = typer.Typer(
    name="flakegate",
    help="flakegate - CI test-quality gate with flaky-test tracking",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.add_typer(gate.app, name="gate", help="Evaluate stage reports against the quality gate")
app.add_typer(quarantine.app, name="quarantine", help="Quarantine known-flaky tests")
app.add_typer(flakes.app, name="flakes", help="Inspect flake history and classifications")
app.command("init")(init.init_command)


def configure_logging(verbose: bool) -> None:
    """Route library logging through rich on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", "-V", help="Show version and exit"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """flakegate - CI test-quality gate."""
    if version:
        console.print(f"[bold]flakegate[/bold] version {__version__}")
        raise typer.Exit()
    configure_logging(verbose)
    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


if __name__ == "__main__":
    app()
