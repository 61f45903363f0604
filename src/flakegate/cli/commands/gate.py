"""
Commands for evaluating stage reports against the quality gate.

Usage:
    flakegate gate rules                          # List gate rules
    flakegate gate evaluate unit.json             # Evaluate one stage report
    flakegate gate evaluate junit.xml -s unit     # JUnit XML needs a stage
    flakegate gate pipeline --unit u.json --e2e e.json
    flakegate gate report                         # Show latest report

Exit status: 0 when the gate passes, 1 when it fails, 2 when a report or
config file is unusable.
"""

import json
from pathlib import Path
from typing import Optional

import typer
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from flakegate.cli.state import (
    EXIT_ERROR,
    EXIT_FAILED,
    EXIT_PASSED,
    console,
    escalation_dicts,
    fail,
    get_config,
    open_tracker,
    persist,
    print_escalations,
)
from flakegate.errors import FlakegateError
from flakegate.gates.evaluator import GateEvaluator
from flakegate.gates.models import GateStatus, PipelineReport, Verdict
from flakegate.gates.reporter import ReportGenerator, as_report
from flakegate.ingest.loaders import load_report, read_report
from flakegate.models import Stage
from flakegate.pipeline import QualityPipeline

app = typer.Typer(help="Evaluate stage reports against the quality gate")

CONFIG_OPTION = typer.Option(None, "--config", "-c", help="Path to .flakegate.yaml")


def _status_style(status: GateStatus) -> str:
    return {
        GateStatus.PASSED: "green",
        GateStatus.FAILED: "red",
        GateStatus.SKIPPED: "yellow",
        GateStatus.ERROR: "red bold",
    }.get(status, "white")


def _status_icon(status: GateStatus) -> str:
    return {
        GateStatus.PASSED: "✓",
        GateStatus.FAILED: "✗",
        GateStatus.SKIPPED: "−",
        GateStatus.ERROR: "⚠",
    }.get(status, "?")


def _verdict_tree(verdict: Verdict) -> Tree:
    style = _status_style(verdict.status)
    run = verdict.run
    coverage = "n/a" if run.coverage is None else f"{run.coverage:g}%"
    tree = Tree(
        f"[{style}]{_status_icon(verdict.status)} {verdict.stage.value}[/{style}] "
        f"({run.passed_count} passed, {run.failed_count} failed, {run.skipped_count} skipped, "
        f"coverage {coverage}, {run.total_duration:g}s)"
    )
    for reason in verdict.reasons:
        marker = "[red]BLOCKING[/red]" if reason.blocking else "[yellow]advisory[/yellow]"
        tree.add(f"{marker} {escape(str(reason))}")
    return tree


def _exit_code(report: PipelineReport) -> int:
    status = report.overall_status
    if status == GateStatus.ERROR:
        return EXIT_ERROR
    if status == GateStatus.FAILED:
        return EXIT_FAILED
    return EXIT_PASSED


@app.command("rules")
def list_rules() -> None:
    """List gate rules in evaluation order."""
    rules = GateEvaluator().available_rules()

    table = Table(title="Gate Rules")
    table.add_column("#", justify="right")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name", style="green")
    table.add_column("Description")

    for position, rule in enumerate(rules, start=1):
        table.add_row(str(position), rule["id"], rule["name"], rule["description"])

    console.print(table)


@app.command("evaluate")
def evaluate_report(
    report: Path = typer.Argument(..., help="Stage report (JSON, YAML or JUnit XML)"),
    stage: Optional[Stage] = typer.Option(None, "--stage", "-s", help="Stage (required for JUnit XML)"),
    coverage: Optional[float] = typer.Option(None, "--coverage", help="Aggregate coverage percent"),
    config_path: Optional[Path] = CONFIG_OPTION,
    output_dir: Optional[Path] = typer.Option(None, "--output", "-o", help="Output directory for reports"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Do not record outcomes into flake history"),
    json_only: bool = typer.Option(False, "--json", help="Print JSON verdict only"),
) -> None:
    """
    Evaluate one stage report.

    The report's outcomes are recorded into flake history first, unless
    --dry-run is given.
    """
    config = get_config(config_path)
    try:
        run = load_report(report, stage=stage, coverage=coverage)
    except FlakegateError as e:
        fail(e)

    tracker, notifier = open_tracker(config)
    pipeline = QualityPipeline(tracker, config.gate, dry_run=dry_run)
    verdict = pipeline.process(run)
    if not dry_run or notifier.events:
        persist(tracker, config)

    escalations = escalation_dicts(notifier)
    reporter = ReportGenerator(output_dir=output_dir or config.reports_dir)
    json_path, html_path = reporter.save_all(as_report(verdict, escalations))

    if json_only:
        typer.echo(json.dumps({**verdict.to_dict(), "escalations": escalations}, indent=2))
        raise typer.Exit(EXIT_PASSED if verdict.passed else EXIT_FAILED)

    console.print(_verdict_tree(verdict))
    print_escalations(notifier)
    style = _status_style(verdict.status)
    console.print(Panel(
        f"[{style} bold]{_status_icon(verdict.status)} {verdict.status.value.upper()}[/{style} bold]\n\n"
        f"Blocking: {len(verdict.blocking_reasons)}, advisory: {len(verdict.advisory_reasons)}\n"
        f"Reports saved:\n"
        f"  JSON: {json_path}\n"
        f"  HTML: {html_path}",
        title="Gate Verdict" + (" (dry run)" if dry_run else ""),
    ))

    raise typer.Exit(EXIT_PASSED if verdict.passed else EXIT_FAILED)


@app.command("pipeline")
def run_pipeline(
    unit: Optional[Path] = typer.Option(None, "--unit", help="Unit stage report"),
    integration: Optional[Path] = typer.Option(None, "--integration", help="Integration stage report"),
    e2e: Optional[Path] = typer.Option(None, "--e2e", help="End-to-end stage report"),
    nightly: Optional[Path] = typer.Option(None, "--nightly", help="Nightly stage report"),
    fail_fast: bool = typer.Option(True, "--fail-fast/--no-fail-fast", help="Skip stages after a failure"),
    config_path: Optional[Path] = CONFIG_OPTION,
    output_dir: Optional[Path] = typer.Option(None, "--output", "-o", help="Output directory for reports"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Do not record outcomes into flake history"),
    json_only: bool = typer.Option(False, "--json", help="Print JSON report only"),
) -> None:
    """
    Run stage reports through the gate in order: unit, integration, e2e, nightly.

    Examples:
        flakegate gate pipeline --unit unit.json --integration it.json
        flakegate gate pipeline --unit junit.xml --no-fail-fast
    """
    paths = {
        Stage.UNIT: unit,
        Stage.INTEGRATION: integration,
        Stage.E2E: e2e,
        Stage.NIGHTLY: nightly,
    }
    if not any(paths.values()):
        console.print("[red]Error: supply at least one stage report[/red]")
        raise typer.Exit(EXIT_ERROR)

    config = get_config(config_path)
    try:
        reports = {stage: read_report(path) for stage, path in paths.items() if path is not None}
    except FlakegateError as e:
        fail(e)

    tracker, notifier = open_tracker(config)
    pipeline = QualityPipeline(tracker, config.gate, dry_run=dry_run)
    report = pipeline.run(reports, fail_fast=fail_fast)
    if not dry_run or notifier.events:
        persist(tracker, config)

    reporter = ReportGenerator(output_dir=output_dir or config.reports_dir)
    json_path, html_path = reporter.save_all(report)

    if json_only:
        typer.echo(json.dumps(report.to_dict(), indent=2))
        raise typer.Exit(_exit_code(report))

    for result in report.stages:
        if result.verdict is not None:
            console.print(_verdict_tree(result.verdict))
        else:
            style = _status_style(result.status)
            detail = f": {escape(result.error)}" if result.error else ""
            console.print(
                f"[{style}]{_status_icon(result.status)} {result.stage.value}[/{style}] "
                f"{result.status.value}{detail}"
            )
    print_escalations(notifier)

    overall = report.overall_status
    style = _status_style(overall)
    console.print(Panel(
        f"[{style} bold]{_status_icon(overall)} {overall.value.upper()}[/{style} bold]\n\n"
        f"Stages: {report.passed_stages} passed, {report.failed_stages} failed\n"
        f"Weekly flake rate: {report.flake_rate:.2%}\n\n"
        f"Reports saved:\n"
        f"  JSON: {json_path}\n"
        f"  HTML: {html_path}",
        title="Pipeline Results",
    ))

    raise typer.Exit(_exit_code(report))


@app.command("report")
def show_report(
    output_dir: Optional[Path] = typer.Option(None, "--output", "-o", help="Reports directory"),
    config_path: Optional[Path] = CONFIG_OPTION,
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show the latest gate report."""
    reports_dir = output_dir or get_config(config_path).reports_dir
    data = ReportGenerator(output_dir=reports_dir).load_latest()

    if data is None:
        console.print("[yellow]No reports found. Run 'flakegate gate evaluate' first.[/yellow]")
        raise typer.Exit(EXIT_FAILED)

    if json_output:
        typer.echo(json.dumps(data, indent=2))
        return

    status = data.get("overall_status", "unknown")
    summary = data.get("summary", {})
    status_style = {
        "passed": "green",
        "failed": "red",
        "skipped": "yellow",
        "error": "red bold",
    }.get(status, "white")

    console.print(Panel(
        f"[{status_style} bold]{status.upper()}[/{status_style} bold]\n\n"
        f"Timestamp: {data.get('timestamp', 'unknown')}\n"
        f"Stages: {summary.get('passed', 0)} passed, {summary.get('failed', 0)} failed\n"
        f"Weekly flake rate: {summary.get('weekly_flake_rate', 0.0):.2%}\n\n"
        f"HTML Report: {reports_dir / 'latest.html'}",
        title="Latest Gate Report",
    ))

    for stage in data.get("stages", []):
        verdict = stage.get("verdict") or {}
        console.print(f"\n● {stage.get('stage')}: {stage.get('status')}")
        for reason in verdict.get("reasons", []):
            console.print(f"    {escape(reason.get('message', ''))}")
