# src/flakegate/ingest/ingestor.py
# Normalizes raw stage reports into immutable RunRecords.
"""
Run ingestor.

Accepts the structured report of one test-stage execution and turns it
into a RunRecord. Validation happens here, at the boundary, so nothing
downstream has to trust the report's shape.

Expected report shape::

    {
        "stage": "unit",
        "started_at": "2024-05-01T12:00:00Z",   # optional
        "coverage": 85.2,                       # optional
        "total_duration": 120.5,                # optional, defaults to sum
        "partial": false,                       # optional, stage was aborted
        "empty": false,                         # optional, no tests ran
        "outcomes": [
            {"test_id": "tests/test_api.py::test_get", "status": "passed",
             "duration": 0.12, "timestamp": "2024-05-01T12:00:01Z"},
        ],
    }

Ingestion has no side effects; recording into the flake tracker is a
separate step so reports can be replayed or dry-run.
"""

import logging
from collections.abc import Mapping
from typing import Any, Optional

from pydantic import ValidationError

from flakegate.errors import MalformedReportError
from flakegate.models import RunRecord, Stage, TestOutcome, utcnow

logger = logging.getLogger(__name__)

# Counts are derived from outcomes; a report supplying them could drift
COUNT_KEYS = ("passed", "failed", "skipped", "total")


def _first_error(error: ValidationError) -> tuple[Optional[str], str]:
    """Return (field, message) for the first validation error."""
    first = error.errors()[0]
    loc = first.get("loc") or ()
    field = str(loc[0]) if loc else None
    return field, first.get("msg", str(error))


def _parse_outcome(index: int, raw: Any, default_timestamp: Any) -> TestOutcome:
    if not isinstance(raw, Mapping):
        raise MalformedReportError("outcome must be a mapping", index=index)

    test_id = raw.get("test_id", raw.get("id"))
    if not isinstance(test_id, str) or not test_id.strip():
        raise MalformedReportError("test id must be a non-empty string", index=index, field="test_id")

    status = raw.get("status")
    if isinstance(status, str):
        status = status.strip().lower()

    data = {
        "test_id": test_id,
        "status": status,
        "duration": raw.get("duration", 0.0),
        "timestamp": raw.get("timestamp") or default_timestamp,
    }
    try:
        return TestOutcome.model_validate(data)
    except ValidationError as e:
        field, message = _first_error(e)
        raise MalformedReportError(message, index=index, field=field) from e


def _parse_stage(value: Any) -> Stage:
    if isinstance(value, Stage):
        return value
    if isinstance(value, str):
        try:
            return Stage(value.strip().lower())
        except ValueError:
            pass
    allowed = ", ".join(s.value for s in Stage)
    raise MalformedReportError(f"unknown stage {value!r} (expected one of: {allowed})", field="stage")


def ingest(raw_report: Mapping[str, Any]) -> RunRecord:
    """
    Validate a raw report and build a RunRecord.

    Raises:
        MalformedReportError: the report is unusable; ``index`` names the
            offending outcome when the problem is inside one.
    """
    if not isinstance(raw_report, Mapping):
        raise MalformedReportError("report must be a mapping")

    supplied_counts = [k for k in COUNT_KEYS if k in raw_report]
    if supplied_counts:
        raise MalformedReportError(
            "aggregate counts are derived from outcomes and must not be supplied",
            field=supplied_counts[0],
        )

    stage = _parse_stage(raw_report.get("stage"))

    raw_outcomes = raw_report.get("outcomes") or []
    if isinstance(raw_outcomes, (str, bytes)) or not isinstance(raw_outcomes, (list, tuple)):
        raise MalformedReportError("outcomes must be a list", field="outcomes")

    marked_empty = bool(raw_report.get("empty", False))
    partial = bool(raw_report.get("partial", False))
    if not raw_outcomes and not (marked_empty or partial):
        raise MalformedReportError(
            "report has no outcomes and is not marked empty or partial",
            field="outcomes",
        )

    started_at = raw_report.get("started_at") or utcnow()
    outcomes = tuple(
        _parse_outcome(i, raw, started_at) for i, raw in enumerate(raw_outcomes)
    )

    coverage = raw_report.get("coverage")
    if isinstance(coverage, bool):
        raise MalformedReportError("coverage must be a number", field="coverage")
    if not outcomes:
        # Nothing ran, so nothing was measured
        coverage = None

    total_duration = raw_report.get("total_duration")
    if total_duration is None:
        total_duration = sum(o.duration for o in outcomes)

    try:
        run = RunRecord(
            stage=stage,
            outcomes=outcomes,
            coverage=coverage,
            total_duration=total_duration,
            started_at=started_at,
            partial=partial,
        )
    except ValidationError as e:
        field, message = _first_error(e)
        raise MalformedReportError(message, field=field) from e

    logger.debug(
        "Ingested %s run: %d outcomes (%d failed), coverage=%s, partial=%s",
        run.stage.value,
        run.total_count,
        run.failed_count,
        run.coverage,
        run.partial,
    )
    return run
