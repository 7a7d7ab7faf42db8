from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

import pytest

from semantic_notes.embeddings import EmbeddingResult
from semantic_notes.errors import EmptyInputError, ProviderUnavailableError
from semantic_notes.storage import DuckDBNoteStore, NoteRecord


# ---------------------------------------------------------------------------
# google-genai client fakes
# ---------------------------------------------------------------------------


@dataclass
class FakeStatistics:
    token_count: float


@dataclass
class FakeEmbedding:
    values: list[float] | None
    statistics: FakeStatistics | None = None


@dataclass
class FakeEmbedResult:
    embeddings: list[FakeEmbedding]


@dataclass
class FakeGenerateResponse:
    text: str | None


class FakeModels:
    """Records calls; returns deterministic embeddings and a canned text reply."""

    def __init__(
        self,
        *,
        error: Exception | None = None,
        result: FakeEmbedResult | None = None,
        token_count: float | None = None,
        reply: str | None = None,
    ) -> None:
        self.calls: list[dict[str, Any]] = []
        self.error = error
        self.result = result
        self.token_count = token_count
        self.reply = reply

    def embed_content(
        self, *, model: str, contents: list[str], config: dict
    ) -> FakeEmbedResult:
        self.calls.append({"model": model, "contents": contents, "config": config})
        if self.error is not None:
            raise self.error
        if self.result is not None:
            return self.result
        dim = config.get("output_dimensionality", 768)
        stats = (
            FakeStatistics(token_count=self.token_count)
            if self.token_count is not None
            else None
        )
        return FakeEmbedResult(
            embeddings=[
                FakeEmbedding(values=[float(i + 1)] * dim, statistics=stats)
                for i in range(len(contents))
            ]
        )

    def generate_content(
        self, *, model: str, contents: str, config: dict
    ) -> FakeGenerateResponse:
        self.calls.append({"model": model, "contents": contents, "config": config})
        if self.error is not None:
            raise self.error
        return FakeGenerateResponse(text=self.reply)


class FakeGenAIClient:
    def __init__(self, **kwargs: Any) -> None:
        self.models = FakeModels(**kwargs)


# ---------------------------------------------------------------------------
# Provider fake for search and batch tests
# ---------------------------------------------------------------------------


@dataclass
class KeywordEmbeddingProvider:
    """
    Maps text to a vector by the first registered keyword it contains.

    Texts containing a keyword from ``failures`` raise
    ``ProviderUnavailableError``; unknown texts get ``default``.
    """

    vectors: dict[str, list[float]] = field(default_factory=dict)
    failures: set[str] = field(default_factory=set)
    default: list[float] = field(default_factory=lambda: [0.0, 0.0, 1.0])
    calls: list[tuple[str, str]] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def embed(self, text: str, *, task_type: str = "RETRIEVAL_DOCUMENT") -> EmbeddingResult:
        if not text or not text.strip():
            raise EmptyInputError("No text provided for embedding generation")
        with self._lock:
            self.calls.append((text, task_type))
        for keyword in self.failures:
            if keyword in text:
                raise ProviderUnavailableError("quota exceeded", status_code=429)
        for keyword, vector in self.vectors.items():
            if keyword in text:
                return EmbeddingResult(vector=list(vector), tokens=len(text.split()))
        return EmbeddingResult(vector=list(self.default), tokens=len(text.split()))

    def embed_query(self, query: str) -> EmbeddingResult:
        return self.embed(query, task_type="RETRIEVAL_QUERY")


def paragraph_doc(*paragraphs: str) -> dict[str, Any]:
    return {
        "type": "doc",
        "content": [
            {"type": "paragraph", "content": [{"type": "text", "text": p}]}
            for p in paragraphs
        ],
    }


def make_note(
    note_id: str,
    *,
    owner_id: str = "user-1",
    title: str | None = None,
    text: str = "",
    embedding: list[float] | None = None,
    updated_at: datetime | None = None,
) -> NoteRecord:
    return NoteRecord(
        id=note_id,
        owner_id=owner_id,
        title=title,
        content=paragraph_doc(text) if text else None,
        embedding=embedding,
        created_at=updated_at,
        updated_at=updated_at,
    )


@pytest.fixture()
def store(tmp_path: Path):
    note_store = DuckDBNoteStore(str(tmp_path / "notes.duckdb"))
    yield note_store
    note_store.close()
