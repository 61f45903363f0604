# src/flakegate/ingest/loaders.py
# Report file loaders: JSON, YAML and JUnit XML.
"""
Read stage reports from disk and hand them to the ingestor.

JSON and YAML files hold the native report shape (see ingestor). JUnit XML
files, as written by ``pytest --junitxml``, carry no stage or coverage, so
the caller supplies them.
"""

import json
import xml.etree.ElementTree as ET
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from flakegate.errors import MalformedReportError
from flakegate.ingest.ingestor import ingest
from flakegate.models import RunRecord, Stage, ensure_utc, utcnow

JSON_SUFFIXES = {".json"}
YAML_SUFFIXES = {".yaml", ".yml"}
XML_SUFFIXES = {".xml"}


def _junit_test_id(testcase: ET.Element) -> str:
    classname = testcase.attrib.get("classname", "")
    name = testcase.attrib.get("name", "").strip(":")
    if classname:
        return f"{classname}::{name}"
    return name


def _junit_status(testcase: ET.Element) -> str:
    if testcase.find("./failure") is not None or testcase.find("./error") is not None:
        return "failed"
    if testcase.find("./skipped") is not None:
        return "skipped"
    return "passed"


def _float_attr(element: ET.Element, name: str) -> float:
    try:
        return float(element.attrib.get(name, 0.0))
    except ValueError:
        return 0.0


def parse_junit(path: Path) -> dict[str, Any]:
    """Convert a JUnit XML file into a raw report (without stage)."""
    try:
        root = ET.parse(path).getroot()
    except ET.ParseError as e:
        raise MalformedReportError(f"invalid JUnit XML in {path}: {e}") from e

    suites = [root] if root.tag == "testsuite" else root.findall(".//testsuite")

    started_at: Optional[datetime] = None
    for suite in suites:
        stamp = suite.attrib.get("timestamp")
        if stamp:
            try:
                parsed = ensure_utc(datetime.fromisoformat(stamp))
            except ValueError:
                continue
            started_at = parsed if started_at is None else min(started_at, parsed)
    if started_at is None:
        started_at = utcnow()

    outcomes = [
        {
            "test_id": _junit_test_id(testcase),
            "status": _junit_status(testcase),
            "duration": _float_attr(testcase, "time"),
            "timestamp": started_at,
        }
        for testcase in root.iter("testcase")
    ]

    suite_time = sum(_float_attr(s, "time") for s in suites)
    return {
        "outcomes": outcomes,
        "started_at": started_at,
        "total_duration": suite_time or sum(o["duration"] for o in outcomes),
        "empty": not outcomes,
    }


def read_report(path: Path) -> dict[str, Any]:
    """Read a report file into its raw mapping form."""
    suffix = path.suffix.lower()
    if not path.exists():
        raise MalformedReportError(f"report file not found: {path}")

    if suffix in XML_SUFFIXES:
        return parse_junit(path)

    try:
        with open(path, encoding="utf-8") as f:
            if suffix in YAML_SUFFIXES:
                data = yaml.safe_load(f)
            elif suffix in JSON_SUFFIXES:
                data = json.load(f)
            else:
                raise MalformedReportError(f"unsupported report format: {path.suffix or path.name}")
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise MalformedReportError(f"could not parse {path}: {e}") from e

    if not isinstance(data, dict):
        raise MalformedReportError(f"{path} must contain a mapping")
    return data


def load_report(
    path: Path,
    stage: Optional[Union[Stage, str]] = None,
    coverage: Optional[float] = None,
) -> RunRecord:
    """
    Load and ingest a report file.

    Args:
        path: JSON, YAML or JUnit XML report.
        stage: Overrides (or, for JUnit, supplies) the report's stage.
        coverage: Overrides (or supplies) the aggregate coverage.

    Raises:
        MalformedReportError: unreadable file or invalid report.
    """
    data = read_report(path)
    if stage is not None:
        data["stage"] = stage.value if isinstance(stage, Stage) else stage
    if coverage is not None:
        data["coverage"] = coverage
    return ingest(data)
