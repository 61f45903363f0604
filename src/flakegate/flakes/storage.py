# src/flakegate/flakes/storage.py
"""
Storage utilities for flake tracker state.

Handles saving and loading of .flakegate/flake_state.json so history
survives between CI invocations.
"""

import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from pydantic import ValidationError

from flakegate.errors import StateError
from flakegate.flakes.notifier import EscalationNotifier
from flakegate.flakes.tracker import FlakeTracker, TrackerDocument

logger = logging.getLogger(__name__)

DEFAULT_STATE_PATH = Path(".flakegate/flake_state.json")


def save_tracker(tracker: FlakeTracker, path: Optional[Path] = None) -> Path:
    """
    Save tracker state as JSON.

    Writes to a temporary file in the same directory, then renames it
    into place.

    Returns the path written.
    """
    path = path or DEFAULT_STATE_PATH
    path.parent.mkdir(parents=True, exist_ok=True)

    payload = tracker.to_document().model_dump_json(indent=2)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".flake_state-", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

    logger.debug("Saved flake state for %d tests to %s", len(tracker), path)
    return path


def load_tracker(
    path: Optional[Path] = None,
    notifier: Optional[EscalationNotifier] = None,
    clock: Optional[Callable[[], datetime]] = None,
    window_size: Optional[int] = None,
    window_days: Optional[int] = None,
) -> FlakeTracker:
    """
    Load tracker state from JSON.

    A missing file yields an empty tracker.

    Raises:
        StateError: the file exists but is not valid tracker state.
    """
    path = path or DEFAULT_STATE_PATH
    if not path.exists():
        logger.debug("No flake state at %s; starting empty", path)
        return FlakeTracker(
            window_size=window_size or 50,
            window_days=window_days or 7,
            notifier=notifier,
            clock=clock,
        )

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        document = TrackerDocument.model_validate(data)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        raise StateError(f"Could not load flake state from {path}: {e}") from e

    return FlakeTracker.from_document(
        document,
        notifier=notifier,
        clock=clock,
        window_size=window_size,
        window_days=window_days,
    )
