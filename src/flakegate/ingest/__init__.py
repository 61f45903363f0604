"""
Run ingestion: raw stage reports in, immutable RunRecords out.
"""

from flakegate.ingest.ingestor import ingest
from flakegate.ingest.loaders import load_report, parse_junit, read_report

__all__ = ["ingest", "load_report", "parse_junit", "read_report"]
