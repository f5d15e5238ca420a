"""Exception types raised by the retrieval engine."""

from __future__ import annotations


class JournalRecallError(Exception):
    """Base class for engine errors."""


class InvalidInputError(JournalRecallError, ValueError):
    """Input rejected before any lookup ran."""


class EmbeddingDimensionError(InvalidInputError):
    """A vector does not have the expected dimension."""

    def __init__(self, expected: int, actual: int):
        super().__init__(f"Expected embedding of dimension {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class QueryTooLongError(InvalidInputError):
    """A search query exceeds the configured length."""


class EntryNotFoundError(JournalRecallError, KeyError):
    """No journal entry exists with the requested id."""

    def __str__(self) -> str:
        return f"Journal entry not found: {self.args[0]}"


class ModelUnavailableError(JournalRecallError):
    """A model-backed capability could not be loaded or run."""
