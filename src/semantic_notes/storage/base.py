"""
Storage interfaces and data models for note persistence.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal, Protocol


EmbeddingFilter = Literal["has", "missing", "all"]


@dataclass(frozen=True)
class NoteRecord:
    """The slice of a note the embedding pipeline reads and writes."""

    id: str
    owner_id: str
    content: Any = None
    title: str | None = None
    summary: str | None = None
    embedding: list[float] | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def has_embedding(self) -> bool:
        return bool(self.embedding)


@dataclass(frozen=True)
class EmbeddingStats:
    """Embedding coverage for one owner's notes."""

    total_notes: int
    notes_with_embeddings: int

    @property
    def notes_without_embeddings(self) -> int:
        return self.total_notes - self.notes_with_embeddings

    @property
    def coverage(self) -> str:
        if self.total_notes == 0:
            return "0%"
        return f"{self.notes_with_embeddings / self.total_notes * 100:.1f}%"


class NoteStore(Protocol):
    """Protocol for note persistence used by search and batch workflows."""

    def get_note(self, note_id: str) -> NoteRecord | None:
        """Return a note by id, or None."""

    def list_notes(
        self,
        owner_id: str,
        *,
        embedding_filter: EmbeddingFilter = "all",
    ) -> list[NoteRecord]:
        """List an owner's notes, most recently updated first."""

    def update_embedding(
        self,
        note_id: str,
        embedding: list[float],
        *,
        owner_id: str | None = None,
    ) -> bool:
        """Replace a note's embedding. Return False when no note matched."""

    def update_summary(
        self, note_id: str, summary: str, *, owner_id: str | None = None
    ) -> bool:
        """Replace a note's summary."""

    def update_title(
        self, note_id: str, title: str, *, owner_id: str | None = None
    ) -> bool:
        """Replace a note's title."""

    def upsert_note(self, note: NoteRecord) -> None:
        """Insert or replace a note."""

    def embedding_stats(self, owner_id: str) -> EmbeddingStats:
        """Count an owner's notes with and without embeddings."""
