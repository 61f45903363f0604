# src/flakegate/gates/reporter.py
"""
Report generators for gate verdicts.

Produces:
- JSON reports under .flakegate/reports/<timestamp>.json (plus latest.json)
- HTML report at .flakegate/reports/latest.html
"""

import json
from pathlib import Path
from typing import Optional, Union

from jinja2 import BaseLoader, Environment

from flakegate.gates.models import GateStatus, PipelineReport, StageResult, Verdict

HTML_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>flakegate report - {{ when }}</title>
    <style>
        body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; background: #f3f4f6; color: #1f2937; }
        .container { max-width: 960px; margin: 0 auto; padding: 24px; }
        .stage { background: white; border: 1px solid #e5e7eb; border-radius: 8px; margin-bottom: 16px; }
        .stage header, .stage footer { display: flex; justify-content: space-between; padding: 12px 16px; }
        table { width: 100%; border-collapse: collapse; }
        td { padding: 6px 16px; border-top: 1px solid #e5e7eb; }
        .blocking, .err { color: #ef4444; }
        .advisory { color: #eab308; }
        .muted { color: #6b7280; font-size: 0.875rem; }
    </style>
</head>
<body>
    <div class="container">
        <h1>flakegate quality gate</h1>
        <p class="muted">{{ when }}</p>
        <p style="font-size: 2rem; font-weight: 700; color: {{ color(report.overall_status) }};">{{ report.overall_status.value | upper }}</p>
        <p class="muted">Weekly flake rate: {{ "%.2f" | format(report.flake_rate * 100) }}%</p>
        {% for stage in report.stages %}
        <section class="stage">
            <header>
                <strong>{{ stage.stage.value }}</strong>
                <span style="color: {{ color(stage.status) }};">{{ stage.status.value | upper }}</span>
            </header>
            <table>
            {% if stage.error %}
                <tr><td colspan="2" class="err">{{ stage.error }}</td></tr>
            {% elif stage.verdict %}
                {% for reason in stage.verdict.reasons %}
                {% set kind = "blocking" if reason.blocking else "advisory" %}
                <tr><td class="{{ kind }}">{{ kind | upper }}</td><td>{{ reason }}</td></tr>
                {% else %}
                <tr><td colspan="2" class="muted">No findings</td></tr>
                {% endfor %}
            {% endif %}
            </table>
            <footer class="muted">{{ summary(stage) }}</footer>
        </section>
        {% endfor %}
        {% if report.escalations %}
        <h2>Expired quarantines</h2>
        <ul>
        {% for e in report.escalations %}
            <li>{{ e.test_id }}: owner {{ e.owner }}, ticket {{ e.ticket }}</li>
        {% endfor %}
        </ul>
        {% endif %}
    </div>
</body>
</html>
"""


def as_report(
    result: Union[Verdict, PipelineReport],
    escalations: Optional[list[dict]] = None,
) -> PipelineReport:
    """Wrap a single verdict in a one-stage report, with any escalations it raised."""
    if isinstance(result, PipelineReport):
        return result
    return PipelineReport(
        timestamp=result.evaluated_at,
        stages=[StageResult(stage=result.stage, status=result.status, verdict=result)],
        escalations=list(escalations or []),
    )


class ReportGenerator:
    """Generates JSON and HTML reports from verdicts."""

    STATUS_COLORS = {
        GateStatus.PASSED: "#22c55e",
        GateStatus.FAILED: "#ef4444",
        GateStatus.SKIPPED: "#eab308",
        GateStatus.ERROR: "#f97316",
    }

    def __init__(self, output_dir: Optional[Path] = None):
        self.output_dir = output_dir or Path(".flakegate/reports")
        self._jinja_env = Environment(loader=BaseLoader(), autoescape=True)

    def ensure_output_dir(self) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def save_json(self, result: Union[Verdict, PipelineReport]) -> Path:
        """
        Save report as JSON.

        Returns path to the timestamped file; latest.json is updated too.
        """
        report = as_report(result)
        self.ensure_output_dir()

        ts = report.timestamp.strftime("%Y%m%d_%H%M%S")
        filepath = self.output_dir / f"{ts}.json"
        payload = json.dumps(report.to_dict(), indent=2)

        filepath.write_text(payload, encoding="utf-8")
        (self.output_dir / "latest.json").write_text(payload, encoding="utf-8")
        return filepath

    def save_html(self, result: Union[Verdict, PipelineReport]) -> Path:
        """Generate and save latest.html."""
        self.ensure_output_dir()
        filepath = self.output_dir / "latest.html"
        filepath.write_text(self.render_html(as_report(result)), encoding="utf-8")
        return filepath

    def save_all(self, result: Union[Verdict, PipelineReport]) -> tuple[Path, Path]:
        """Save both JSON and HTML. Returns (json_path, html_path)."""
        return self.save_json(result), self.save_html(result)

    def load_latest(self) -> Optional[dict]:
        latest = self.output_dir / "latest.json"
        if not latest.exists():
            return None
        with open(latest, encoding="utf-8") as f:
            return json.load(f)

    def _color(self, status: GateStatus) -> str:
        return self.STATUS_COLORS.get(status, "#6b7280")

    @staticmethod
    def _summary(result: StageResult) -> str:
        if result.verdict is None:
            return ""
        run = result.verdict.run
        coverage = "not measured" if run.coverage is None else f"{run.coverage:.1f}%"
        parts = [
            f"{run.passed_count} passed, {run.failed_count} failed, {run.skipped_count} skipped",
            f"coverage {coverage}",
            f"{run.total_duration:.1f}s",
        ]
        if run.partial:
            parts.append("partial")
        return " · ".join(parts)

    def render_html(self, report: PipelineReport) -> str:
        """Render a report as a standalone HTML page."""
        template = self._jinja_env.from_string(HTML_TEMPLATE)
        return template.render(
            report=report,
            when=report.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            color=self._color,
            summary=self._summary,
        )
