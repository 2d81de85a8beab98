"""
Error taxonomy for the scoring engine.

Only I/O boundaries raise: the arithmetic itself cannot fail. A candidate
without a scorable denominator is not an error, see ``models.Indeterminate``.
"""

from __future__ import annotations


class ScoringError(Exception):
    """Base class for everything the engine raises."""


class NotFound(ScoringError):
    """A referenced event, category, criterion, candidate, judge or score does not exist."""

    def __init__(self, kind: str, ident: object, message: str = ""):
        self.kind = kind
        self.ident = ident
        super().__init__(message or f"{kind.capitalize()} {ident} not found.")


class EmptyEvent(NotFound):
    """The event exists but has no categories, so nothing can be scored."""

    def __init__(self, event_id: int):
        super().__init__("event", event_id, f"Event {event_id} has no categories.")


class StorageFailure(ScoringError):
    """The data store could not complete a read or write; any write was rolled back."""


class InvalidScore(ScoringError, ValueError):
    """A submitted score entry breaks 0 <= score <= max, max > 0."""
