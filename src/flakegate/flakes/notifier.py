# src/flakegate/flakes/notifier.py
"""
Escalation notifiers.

The tracker hands every EscalationEvent to a notifier. Anything with a
``notify(event)`` method works; two are provided.
"""

import logging
from typing import Protocol

from flakegate.flakes.models import EscalationEvent

logger = logging.getLogger(__name__)


class EscalationNotifier(Protocol):
    def notify(self, event: EscalationEvent) -> None: ...


class LoggingNotifier:
    """Reports escalations as warnings on the ``flakegate`` logger."""

    def notify(self, event: EscalationEvent) -> None:
        logger.warning("ESCALATION: %s", event.message)


class CollectingNotifier:
    """Keeps escalations in memory, e.g. for the CLI summary or tests."""

    def __init__(self) -> None:
        self.events: list[EscalationEvent] = []

    def notify(self, event: EscalationEvent) -> None:
        self.events.append(event)

    def __len__(self) -> int:
        return len(self.events)
