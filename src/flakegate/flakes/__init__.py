"""
Flake tracking module.

Maintains per-test outcome history across runs, classifies tests as
stable, flaky or quarantined, and escalates quarantines that expire
unresolved.

Usage:
    from flakegate.flakes import FlakeTracker, load_tracker, save_tracker

    tracker = load_tracker(path)
    tracker.record(run)
    snapshot = tracker.snapshot()
    save_tracker(tracker, path)
"""

from flakegate.flakes.models import (
    Classification,
    EscalationEvent,
    FlakeClassificationView,
    FlakeSnapshot,
    FlakeState,
    QuarantineEntry,
)
from flakegate.flakes.notifier import CollectingNotifier, EscalationNotifier, LoggingNotifier
from flakegate.flakes.storage import load_tracker, save_tracker
from flakegate.flakes.tracker import FlakeTracker, TrackerDocument

__all__ = [
    # Models
    "Classification",
    "EscalationEvent",
    "FlakeClassificationView",
    "FlakeSnapshot",
    "FlakeState",
    "QuarantineEntry",
    # Notifiers
    "CollectingNotifier",
    "EscalationNotifier",
    "LoggingNotifier",
    # Tracker
    "FlakeTracker",
    "TrackerDocument",
    # Storage
    "load_tracker",
    "save_tracker",
]
