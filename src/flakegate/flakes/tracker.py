# src/flakegate/flakes/tracker.py
# Historical per-test outcome tracking and quarantine lifecycle.
"""
Flake tracker.

Keeps a rolling window of outcomes per test id and classifies each test:

    stable <-> flaky -> quarantined -> stable | flaky

A test is flaky when its window holds both passes and failures. A window
of only failures is a regression, not a flake, and stays stable with the
regression flag set. Quarantine is entered only through quarantine(),
never automatically. It lasts until release() or until its expiry passes.
On expiry the next classify() reverts the test and emits one
EscalationEvent.

Each test id has its own lock, so concurrent record() calls touching
different tests do not contend.
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Optional

from pydantic import BaseModel, Field

from flakegate.errors import MissingMetadataError, QuarantineError
from flakegate.flakes.models import (
    Classification,
    EscalationEvent,
    FlakeSnapshot,
    FlakeState,
    QuarantineEntry,
)
from flakegate.flakes.notifier import EscalationNotifier, LoggingNotifier
from flakegate.models import RunRecord, ensure_utc, utcnow

logger = logging.getLogger(__name__)

WEEK = timedelta(days=7)
DOCUMENT_VERSION = "1.0"


class TrackerDocument(BaseModel):
    """Serialized tracker state (see storage)."""

    version: str = Field(default=DOCUMENT_VERSION)
    window_size: int = Field(default=50, ge=1)
    window_days: int = Field(default=7, ge=1)
    saved_at: datetime = Field(default_factory=utcnow)
    states: list[FlakeState] = Field(default_factory=list)
    escalations: list[EscalationEvent] = Field(default_factory=list)
    undelivered: list[EscalationEvent] = Field(default_factory=list)


class FlakeTracker:
    """Process-wide store of per-test flake history."""

    def __init__(
        self,
        window_size: int = 50,
        window_days: int = 7,
        notifier: Optional[EscalationNotifier] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        if window_size < 1 or window_days < 1:
            raise ValueError("window_size and window_days must be positive")
        self.window_size = window_size
        self.window_days = window_days
        self.notifier = notifier if notifier is not None else LoggingNotifier()
        self._clock = clock or utcnow

        self._states: dict[str, FlakeState] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

        self._events_lock = threading.Lock()
        self._escalations: list[EscalationEvent] = []
        self._undelivered: list[EscalationEvent] = []

    def now(self) -> datetime:
        return ensure_utc(self._clock())

    @property
    def window(self) -> timedelta:
        return timedelta(days=self.window_days)

    def _entry(self, test_id: str) -> tuple[threading.Lock, FlakeState]:
        lock = self._locks.get(test_id)
        if lock is None:
            with self._registry_lock:
                if test_id not in self._locks:
                    self._states[test_id] = FlakeState(test_id=test_id)
                    self._locks[test_id] = threading.Lock()
                lock = self._locks[test_id]
        return lock, self._states[test_id]

    # -- recording ---------------------------------------------------------

    def record(self, run: RunRecord) -> None:
        """Append every outcome of a run to its test's window."""
        cutoff = self.now() - self.window
        for outcome in run.outcomes:
            lock, state = self._entry(outcome.test_id)
            with lock:
                state.add(outcome, cutoff=cutoff, max_size=self.window_size)
        logger.info(
            "Recorded %d outcomes from %s run into flake history",
            run.total_count,
            run.stage.value,
        )

    # -- classification ----------------------------------------------------

    def classify(self, test_id: str) -> Classification:
        """
        Classify a test, expiring its quarantine if due.

        Unknown tests are stable.
        """
        if test_id not in self._locks:
            return Classification.STABLE

        lock, state = self._entry(test_id)
        event: Optional[EscalationEvent] = None
        with lock:
            now = self.now()
            entry = state.quarantine
            if entry is not None and not entry.is_expired(now):
                return Classification.QUARANTINED

            classification = state.window_classification(now - self.window)
            if entry is not None:
                state.quarantine = None
                event = self._expiry_event(entry, now, classification)

        if event is not None:
            self._escalate(event)
        return classification

    @staticmethod
    def _expiry_event(
        entry: QuarantineEntry,
        now: datetime,
        classification: Classification,
    ) -> EscalationEvent:
        return EscalationEvent(
            test_id=entry.test_id,
            owner=entry.owner,
            ticket=entry.ticket,
            expired_at=entry.expires_at,
            escalated_at=now,
            classification_after=classification,
        )

    def is_regression(self, test_id: str) -> bool:
        """Every decisive outcome in the test's window failed."""
        if test_id not in self._locks:
            return False
        lock, state = self._entry(test_id)
        with lock:
            return state.is_regression(self.now() - self.window)

    def _observed_since(self, since: datetime) -> list[str]:
        observed = []
        for test_id in self.known_tests():
            lock, state = self._entry(test_id)
            with lock:
                last = state.last_seen()
            if last is not None and last >= since:
                observed.append(test_id)
        return observed

    @staticmethod
    def _rate(observed: list[str], classifications: dict[str, Classification]) -> float:
        if not observed:
            return 0.0
        unstable = sum(
            1
            for test_id in observed
            if classifications[test_id] in (Classification.FLAKY, Classification.QUARANTINED)
        )
        return unstable / len(observed)

    def weekly_flake_rate(self) -> float:
        """
        Fraction of tests seen in the trailing 7 days that are flaky or quarantined.

        Returns 0.0 when no test was seen.
        """
        observed = self._observed_since(self.now() - WEEK)
        classifications = {test_id: self.classify(test_id) for test_id in observed}
        return self._rate(observed, classifications)

    def snapshot(self) -> FlakeSnapshot:
        """Classify every known test and freeze the result."""
        classifications = {test_id: self.classify(test_id) for test_id in self.known_tests()}
        now = self.now()
        observed = self._observed_since(now - WEEK)
        return FlakeSnapshot(
            taken_at=now,
            classifications=classifications,
            regressions=frozenset(t for t in classifications if self.is_regression(t)),
            flake_rate=self._rate(observed, classifications),
        )

    # -- quarantine administration -----------------------------------------

    def quarantine(
        self,
        test_id: Optional[str] = None,
        owner: Optional[str] = None,
        ticket: Optional[str] = None,
        expires_at: Optional[datetime] = None,
    ) -> QuarantineEntry:
        """
        Place a test in quarantine.

        Raises:
            MissingMetadataError: any of the four fields is absent or blank.
            QuarantineError: the expiry is not in the future.
        """
        fields = {"test_id": test_id, "owner": owner, "ticket": ticket, "expires_at": expires_at}
        missing = [
            name
            for name, value in fields.items()
            if value is None or (isinstance(value, str) and not value.strip())
        ]
        if missing:
            raise MissingMetadataError(missing)

        now = self.now()
        expires_at = ensure_utc(expires_at)
        if expires_at <= now:
            raise QuarantineError(
                f"Quarantine expiry {expires_at.isoformat()} for {test_id} is not in the future"
            )

        entry = QuarantineEntry(
            test_id=test_id,
            owner=owner.strip(),
            ticket=ticket.strip(),
            expires_at=expires_at,
            created_at=now,
        )
        lock, state = self._entry(test_id)
        with lock:
            state.quarantine = entry
        logger.info(
            "Quarantined %s (owner=%s, ticket=%s) until %s",
            test_id,
            entry.owner,
            entry.ticket,
            entry.expires_at.isoformat(),
        )
        return entry

    def release(self, test_id: str) -> bool:
        """
        Resolve a quarantine. Returns False if the test was not quarantined.

        Releasing a quarantine that has already lapsed still escalates it.
        """
        if test_id not in self._locks:
            return False
        lock, state = self._entry(test_id)
        event: Optional[EscalationEvent] = None
        with lock:
            entry = state.quarantine
            state.quarantine = None
            if entry is not None:
                now = self.now()
                if entry.is_expired(now):
                    event = self._expiry_event(
                        entry, now, state.window_classification(now - self.window)
                    )

        if entry is None:
            return False
        logger.info("Released quarantine for %s", test_id)
        if event is not None:
            self._escalate(event)
        return True

    def quarantined(self) -> list[QuarantineEntry]:
        """Quarantine entries currently held, expired or not."""
        entries = []
        for test_id in self.known_tests():
            lock, state = self._entry(test_id)
            with lock:
                if state.quarantine is not None:
                    entries.append(state.quarantine)
        return entries

    # -- escalations -------------------------------------------------------

    def _escalate(self, event: EscalationEvent) -> None:
        with self._events_lock:
            self._escalations.append(event)
        logger.info("Quarantine for %s expired; escalating", event.test_id)
        try:
            self.notifier.notify(event)
        except Exception:
            logger.exception("Escalation notifier failed for %s; event queued", event.test_id)
            with self._events_lock:
                self._undelivered.append(event)

    def escalations(self) -> list[EscalationEvent]:
        with self._events_lock:
            return list(self._escalations)

    def drain_undelivered(self) -> list[EscalationEvent]:
        """Return and clear escalations the notifier failed to accept."""
        with self._events_lock:
            pending, self._undelivered = self._undelivered, []
        return pending

    # -- inspection --------------------------------------------------------

    def known_tests(self) -> list[str]:
        with self._registry_lock:
            return sorted(self._locks)

    def state(self, test_id: str) -> Optional[FlakeState]:
        """Copy of a test's state, or None for unknown tests."""
        if test_id not in self._locks:
            return None
        lock, state = self._entry(test_id)
        with lock:
            return state.model_copy(deep=True)

    def __len__(self) -> int:
        return len(self._locks)

    def __contains__(self, test_id: str) -> bool:
        return test_id in self._locks

    # -- persistence -------------------------------------------------------

    def to_document(self) -> TrackerDocument:
        states = [self.state(test_id) for test_id in self.known_tests()]
        with self._events_lock:
            escalations = list(self._escalations)
            undelivered = list(self._undelivered)
        return TrackerDocument(
            window_size=self.window_size,
            window_days=self.window_days,
            saved_at=self.now(),
            states=[s for s in states if s is not None],
            escalations=escalations,
            undelivered=undelivered,
        )

    @classmethod
    def from_document(
        cls,
        document: TrackerDocument,
        notifier: Optional[EscalationNotifier] = None,
        clock: Optional[Callable[[], datetime]] = None,
        window_size: Optional[int] = None,
        window_days: Optional[int] = None,
    ) -> "FlakeTracker":
        """Rebuild a tracker; explicit window settings override the document's."""
        tracker = cls(
            window_size=window_size or document.window_size,
            window_days=window_days or document.window_days,
            notifier=notifier,
            clock=clock,
        )
        for state in document.states:
            tracker._states[state.test_id] = state.model_copy(deep=True)
            tracker._locks[state.test_id] = threading.Lock()
        tracker._escalations = list(document.escalations)
        tracker._undelivered = list(document.undelivered)
        return tracker
