"""Search helpers for embedded notes."""

from .ranker import NoteEmbedding, SearchResult, cosine_similarity, rank
from .semantic import SearchResponse, SemanticSearchEngine

__all__ = [
    "NoteEmbedding",
    "SearchResult",
    "cosine_similarity",
    "rank",
    "SearchResponse",
    "SemanticSearchEngine",
]
