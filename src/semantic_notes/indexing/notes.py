"""
Single-note embedding path and coverage statistics.
"""

from __future__ import annotations

import logging
from typing import Any

from ..embeddings import EmbeddingProvider, EmbeddingResult
from ..errors import ContentTooShortError, NoteNotFoundError, StorageError
from ..extraction import extract_text
from ..storage import EmbeddingStats, NoteStore


logger = logging.getLogger(__name__)

DEFAULT_MIN_CONTENT_CHARS = 10


def build_embedding_text(title: str | None, content: Any) -> str:
    """Title-prefixed plain text used as embedding input."""
    return f"{title or ''} {extract_text(content)}".strip()


class NoteEmbedder:
    """Embed one note at a time and persist the vector."""

    def __init__(
        self,
        storage: NoteStore,
        embedding_provider: EmbeddingProvider,
        *,
        min_content_chars: int = DEFAULT_MIN_CONTENT_CHARS,
    ) -> None:
        self.storage = storage
        self.embedding_provider = embedding_provider
        self.min_content_chars = min_content_chars

    def embed_content(self, content: Any, title: str | None = None) -> EmbeddingResult:
        """Embed ad-hoc content without saving it anywhere."""
        text = build_embedding_text(title, content)
        if len(text) < self.min_content_chars:
            raise ContentTooShortError(len(text), self.min_content_chars)
        return self.embedding_provider.embed(text)

    def embed_note(self, owner_id: str, note_id: str) -> EmbeddingResult:
        """Embed a stored note owned by *owner_id* and save the vector."""
        note = self.storage.get_note(note_id)
        if note is None or note.owner_id != owner_id:
            raise NoteNotFoundError(note_id)

        result = self.embed_content(note.content, note.title)
        if not self.storage.update_embedding(note_id, result.vector, owner_id=owner_id):
            logger.error("Failed to save embedding for note %s", note_id)
            raise StorageError("Failed to save embedding to note")
        logger.info(
            "Embedded note %s (%d dimensions, %d tokens)",
            note_id,
            result.dimensions,
            result.tokens,
        )
        return result

    def embedding_stats(self, owner_id: str) -> EmbeddingStats:
        return self.storage.embedding_stats(owner_id)
