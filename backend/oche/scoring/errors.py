from __future__ import annotations


class ScoringError(Exception):
    """Base class for errors raised by the scoring engine."""


class InvalidDartError(ScoringError, ValueError):
    """A dart (or round) that cannot exist on a standard board."""


class MatchOverError(ScoringError, RuntimeError):
    """A mutating call was made after the match was won."""


class SnapshotMismatchError(ScoringError, ValueError):
    """A persisted snapshot does not belong to the match being started."""


class RoundInProgressError(ScoringError, RuntimeError):
    """A whole visit was submitted while darts of another round are pending."""


class NoActiveMatchError(ScoringError, LookupError):
    """A match operation was requested before any match was started."""
