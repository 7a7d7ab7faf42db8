"""
Vector-based semantic search engine.

Embeds a query and ranks stored note embeddings by cosine similarity.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from ..embeddings import EmbeddingProvider
from ..errors import EmptyQueryError
from ..storage import NoteStore
from .ranker import NoteEmbedding, SearchResult, rank


logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.7
DEFAULT_LIMIT = 20

NO_CANDIDATES_MESSAGE = (
    "No notes found with embeddings. "
    "Please ensure your notes are processed for semantic search."
)


@dataclass(frozen=True)
class SearchResponse:
    """Ranked results plus counts before truncation."""

    query: str
    threshold: float
    results: list[SearchResult] = field(default_factory=list)
    total_found: int = 0
    total_candidates: int = 0
    message: str = ""


class SemanticSearchEngine:
    """Embed a query and search note embeddings."""

    def __init__(
        self,
        embedding_provider: EmbeddingProvider,
        storage: NoteStore | None = None,
    ) -> None:
        self.embedding_provider = embedding_provider
        self.storage = storage

    def search(
        self,
        query: str,
        candidates: Sequence[NoteEmbedding],
        *,
        threshold: float = DEFAULT_THRESHOLD,
        limit: int = DEFAULT_LIMIT,
    ) -> SearchResponse:
        """Return candidates ranked by similarity to *query*, capped at *limit*."""
        if not query or not query.strip():
            raise EmptyQueryError("Query is required")

        if not candidates:
            return SearchResponse(
                query=query,
                threshold=threshold,
                message=NO_CANDIDATES_MESSAGE,
            )

        query_embedding = self.embedding_provider.embed_query(query)
        ranked = rank(query_embedding.vector, candidates, threshold)
        limited = ranked[: max(limit, 0)]
        logger.debug(
            "Semantic search matched %d of %d candidates", len(ranked), len(candidates)
        )
        return SearchResponse(
            query=query,
            threshold=threshold,
            results=limited,
            total_found=len(ranked),
            total_candidates=len(candidates),
            message=f"Found {len(limited)} relevant notes",
        )

    def search_notes(
        self,
        owner_id: str,
        query: str,
        *,
        threshold: float = DEFAULT_THRESHOLD,
        limit: int = DEFAULT_LIMIT,
    ) -> SearchResponse:
        """Search every embedded note belonging to *owner_id*."""
        if self.storage is None:
            raise RuntimeError("search_notes requires a note store")
        if not query or not query.strip():
            raise EmptyQueryError("Query is required")

        notes = self.storage.list_notes(owner_id, embedding_filter="has")
        candidates = [
            NoteEmbedding(
                id=note.id,
                vector=note.embedding,
                title=note.title,
                summary=note.summary,
                updated_at=note.updated_at,
            )
            for note in notes
            if note.embedding
        ]
        return self.search(query, candidates, threshold=threshold, limit=limit)
