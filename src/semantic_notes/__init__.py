"""
SemanticNotes - semantic search over rich-text notes.

This package embeds note content with Google GenAI, ranks notes by cosine
similarity to a query, keeps a note collection's embeddings up to date
with rate-limited batch runs, and drafts note summaries and titles.

Example usage:
    >>> from semantic_notes import EmbeddingProvider, SemanticSearchEngine
    >>> engine = SemanticSearchEngine(EmbeddingProvider(), storage=store)
    >>> response = engine.search_notes("user-1", "project timeline")
"""

from .assistant import NoteAssistant, SummaryOutcome, TitleOutcome
from .config import Settings
from .embeddings import EmbeddingProvider, EmbeddingResult
from .errors import (
    ContentTooShortError,
    DimensionMismatchError,
    EmptyInputError,
    EmptyQueryError,
    NoteNotFoundError,
    ProviderUnavailableError,
    SemanticNotesError,
    StorageError,
)
from .extraction import extract_text
from .generation import SummaryResult, TextGenerator, TitleSuggestions
from .indexing import BatchReprocessor, BatchSummary, ItemOutcome, NoteEmbedder
from .search import (
    NoteEmbedding,
    SearchResponse,
    SearchResult,
    SemanticSearchEngine,
    cosine_similarity,
    rank,
)
from .storage import DuckDBNoteStore, NoteRecord, NoteStore

__all__ = [
    # Assistant
    "NoteAssistant",
    "SummaryOutcome",
    "TitleOutcome",
    # Config
    "Settings",
    # Embeddings
    "EmbeddingProvider",
    "EmbeddingResult",
    # Errors
    "SemanticNotesError",
    "EmptyInputError",
    "EmptyQueryError",
    "ContentTooShortError",
    "ProviderUnavailableError",
    "DimensionMismatchError",
    "NoteNotFoundError",
    "StorageError",
    # Extraction
    "extract_text",
    # Generation
    "SummaryResult",
    "TextGenerator",
    "TitleSuggestions",
    # Indexing
    "BatchReprocessor",
    "BatchSummary",
    "ItemOutcome",
    "NoteEmbedder",
    # Search
    "NoteEmbedding",
    "SearchResponse",
    "SearchResult",
    "SemanticSearchEngine",
    "cosine_similarity",
    "rank",
    # Storage
    "DuckDBNoteStore",
    "NoteRecord",
    "NoteStore",
]
