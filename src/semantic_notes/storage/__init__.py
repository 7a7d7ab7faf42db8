"""Storage backends for note embeddings."""

from .base import EmbeddingFilter, EmbeddingStats, NoteRecord, NoteStore
from .duckdb import DuckDBNoteStore

__all__ = [
    "EmbeddingFilter",
    "EmbeddingStats",
    "NoteRecord",
    "NoteStore",
    "DuckDBNoteStore",
]
