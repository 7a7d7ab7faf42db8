"""
Error taxonomy for the embedding, search and note assistant pipeline.
"""

from __future__ import annotations


class SemanticNotesError(Exception):
    """Base class for pipeline errors."""


class EmptyInputError(SemanticNotesError, ValueError):
    """Raised when there is no text to embed."""


class EmptyQueryError(SemanticNotesError, ValueError):
    """Raised when a search query is empty or whitespace."""


class ContentTooShortError(SemanticNotesError, ValueError):
    """Raised when note content is below the minimum length for an AI task."""

    def __init__(
        self, length: int, minimum: int, purpose: str = "embedding generation"
    ) -> None:
        super().__init__(
            f"Content is too short for {purpose} "
            f"({length} < {minimum} characters)"
        )
        self.length = length
        self.minimum = minimum
        self.purpose = purpose


class ProviderUnavailableError(SemanticNotesError):
    """Raised when an AI provider call fails."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        retryable: bool = True,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class DimensionMismatchError(SemanticNotesError):
    """Raised when two compared vectors have different lengths."""

    def __init__(self, left: int, right: int) -> None:
        super().__init__(f"Embedding dimensions must match ({left} != {right})")
        self.left = left
        self.right = right


class NoteNotFoundError(SemanticNotesError):
    """Raised when a note does not exist or belongs to another owner."""

    def __init__(self, note_id: str) -> None:
        super().__init__(f"Note not found or unauthorized: {note_id}")
        self.note_id = note_id


class StorageError(SemanticNotesError):
    """Raised when the note store rejects a write."""
