# CLI package for flakegate.
"""
CLI module providing the `flakegate` command-line interface.

Commands:
- flakegate init: Create local config with default thresholds
- flakegate gate rules/evaluate/pipeline/report: Run the quality gate
- flakegate quarantine add/release/list: Quarantine administration
- flakegate flakes status/show: Flake metrics export
"""

from flakegate.cli.main import app

__all__ = ["app"]
