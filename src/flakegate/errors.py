# src/flakegate/errors.py
# Exception hierarchy for flakegate.
"""
Errors raised by the library.

Gate violations are never errors: a failing Verdict is a successful
evaluation. Exceptions here mean the caller supplied something unusable.
"""

from typing import Iterable, Optional


class FlakegateError(Exception):
    """Base class for all flakegate errors."""


class MalformedReportError(FlakegateError):
    """A raw report failed validation at ingestion time."""

    def __init__(
        self,
        message: str,
        index: Optional[int] = None,
        field: Optional[str] = None,
    ):
        self.index = index
        self.field = field
        self.reason = message
        super().__init__(f"{self.location}: {message}" if self.location else message)

    @property
    def location(self) -> str:
        """Dotted location of the offending value, e.g. ``outcomes[3].status``."""
        if self.index is not None:
            prefix = f"outcomes[{self.index}]"
            return f"{prefix}.{self.field}" if self.field else prefix
        return self.field or ""


class QuarantineError(FlakegateError):
    """A quarantine request was rejected."""


class MissingMetadataError(QuarantineError):
    """A quarantine request lacks one or more required fields."""

    def __init__(self, missing: Iterable[str]):
        self.missing = list(missing)
        super().__init__(
            "Quarantine requires test id, owner, ticket and expiry; missing: "
            + ", ".join(self.missing)
        )


class ConfigError(FlakegateError):
    """Configuration file could not be read or is invalid."""


class StateError(FlakegateError):
    """Persisted flake state could not be read."""
