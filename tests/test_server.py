"""Tests for the REST endpoints."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from conftest import FakeGenAIClient, KeywordEmbeddingProvider, make_note, paragraph_doc
from semantic_notes.config import Settings
from semantic_notes.generation import TextGenerator
from semantic_notes.server import create_app

OWNER = {"X-Owner-Id": "user-1"}
NOTE_TEXT = (
    "Design review: we agreed to move search to embeddings, keep the keyword "
    "fallback for a release and measure latency before removing it."
)


@pytest.fixture()
def provider() -> KeywordEmbeddingProvider:
    return KeywordEmbeddingProvider(
        vectors={"timeline": [1.0, 0.0], "recipe": [0.0, 1.0]},
        default=[0.6, 0.8],
        failures={"outage"},
    )


@pytest.fixture()
def genai_client() -> FakeGenAIClient:
    return FakeGenAIClient(
        reply=json.dumps(
            {
                "summary": "Search moves to embeddings.",
                "keyPoints": ["Keep keyword fallback"],
                "suggestions": ["Embedding Search Review"],
                "recommended": "Embedding Search Review",
                "confidence": 0.9,
            }
        )
    )


@pytest.fixture()
def client(store, provider, genai_client, tmp_path: Path) -> TestClient:
    settings = Settings(db_path=str(tmp_path / "unused.duckdb"), batch_delay_seconds=0.0)
    app = create_app(
        settings,
        storage=store,
        embedding_provider=provider,
        text_generator=TextGenerator(client=genai_client),
    )
    return TestClient(app)


def test_requests_without_owner_are_rejected(client) -> None:
    assert client.post("/api/search", json={"query": "x"}).status_code == 401
    assert client.get("/api/search", params={"q": "x"}).status_code == 401
    assert client.post("/api/embeddings", json={}).status_code == 401
    assert client.get("/api/embeddings").status_code == 401


def test_search_returns_ranked_results(client, store) -> None:
    store.upsert_note(make_note("plan", title="Plan", text="Project timeline", embedding=[1.0, 0.0]))
    store.upsert_note(make_note("food", title="Food", text="Pasta recipe", embedding=[0.0, 1.0]))

    response = client.post(
        "/api/search", json={"query": "timeline", "threshold": 0.5}, headers=OWNER
    )

    assert response.status_code == 200
    data = response.json()
    assert [r["id"] for r in data["results"]] == ["plan"]
    assert data["results"][0]["similarity"] == pytest.approx(1.0)
    assert data["total_found"] == 1
    assert data["total_candidates"] == 2


def test_search_get_variant(client, store) -> None:
    store.upsert_note(make_note("plan", text="Project timeline", embedding=[1.0, 0.0]))

    response = client.get(
        "/api/search", params={"q": "timeline", "limit": 5}, headers=OWNER
    )

    assert response.status_code == 200
    assert response.json()["results"][0]["id"] == "plan"


def test_search_without_embedded_notes_is_not_an_error(client) -> None:
    response = client.post("/api/search", json={"query": "project timeline"}, headers=OWNER)

    assert response.status_code == 200
    data = response.json()
    assert data["results"] == []
    assert data["total_found"] == 0
    assert data["total_candidates"] == 0


def test_search_empty_query_is_bad_request(client) -> None:
    response = client.post("/api/search", json={"query": "   "}, headers=OWNER)

    assert response.status_code == 400
    assert client.get("/api/search", headers=OWNER).status_code == 400


def test_search_dimension_mismatch_is_bad_request(client, store) -> None:
    store.upsert_note(make_note("old", text="legacy", embedding=[1.0, 0.0, 0.0]))

    response = client.post("/api/search", json={"query": "timeline"}, headers=OWNER)

    assert response.status_code == 400
    assert "regenerate embeddings" in response.json()["error"]


def test_search_provider_outage_is_service_unavailable(client, store) -> None:
    store.upsert_note(make_note("n", text="anything", embedding=[1.0, 0.0]))

    response = client.post("/api/search", json={"query": "outage"}, headers=OWNER)

    assert response.status_code == 503


def test_embed_single_note_saves_vector(client, store) -> None:
    store.upsert_note(make_note("n1", title="Sprint", text="timeline review notes"))

    response = client.post("/api/embeddings", json={"note_id": "n1"}, headers=OWNER)

    assert response.status_code == 200
    data = response.json()
    assert data["saved"] is True
    assert data["dimensions"] == 2
    assert store.get_note("n1").embedding == [1.0, 0.0]


def test_embed_note_of_another_owner_is_not_found(client, store) -> None:
    store.upsert_note(make_note("n1", owner_id="user-2", text="timeline review notes"))

    response = client.post("/api/embeddings", json={"note_id": "n1"}, headers=OWNER)

    assert response.status_code == 404


def test_embed_adhoc_content_is_not_saved(client) -> None:
    response = client.post(
        "/api/embeddings",
        json={"title": "Dinner", "content": {"type": "doc", "content": [
            {"type": "paragraph", "content": [{"type": "text", "text": "A recipe for soup"}]}
        ]}},
        headers=OWNER,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["saved"] is False
    assert data["embedding"] == [0.0, 1.0]


def test_embed_requires_note_or_content(client) -> None:
    response = client.post("/api/embeddings", json={"title": "Only title"}, headers=OWNER)

    assert response.status_code == 400


def test_embed_short_content_is_bad_request(client, store) -> None:
    store.upsert_note(make_note("tiny", text="hi"))

    response = client.post("/api/embeddings", json={"note_id": "tiny"}, headers=OWNER)

    assert response.status_code == 400
    assert "too short" in response.json()["error"]


def test_embed_provider_outage_is_service_unavailable(client, store) -> None:
    store.upsert_note(make_note("n1", text="major outage postmortem"))

    response = client.post("/api/embeddings", json={"note_id": "n1"}, headers=OWNER)

    assert response.status_code == 503


def test_batch_process_reports_counts(client, store) -> None:
    store.upsert_note(make_note("a", text="abc"))
    store.upsert_note(make_note("b", text="timeline planning session"))
    store.upsert_note(make_note("c", text="provider outage during run"))

    response = client.post("/api/embeddings", json={"batch_process": True}, headers=OWNER)

    assert response.status_code == 200
    data = response.json()
    assert data["processed"] == 1
    assert data["errors"] == 1
    assert data["skipped"] == 1
    assert data["error_details"] == ["Note c: quota exceeded"]


def test_batch_process_with_nothing_to_do(client, store) -> None:
    store.upsert_note(make_note("a", text="timeline", embedding=[1.0, 0.0]))

    response = client.post("/api/embeddings", json={"batch_process": True}, headers=OWNER)

    assert response.status_code == 200
    assert response.json()["message"] == "All notes already have embeddings"


def test_embedding_statistics(client, store) -> None:
    store.upsert_note(make_note("a", text="x", embedding=[1.0, 0.0]))
    store.upsert_note(make_note("b", text="y"))

    response = client.get("/api/embeddings", headers=OWNER)

    assert response.status_code == 200
    data = response.json()
    assert data["total_notes"] == 2
    assert data["notes_with_embeddings"] == 1
    assert data["notes_without_embeddings"] == 1
    assert data["embedding_coverage"] == "50.0%"


def test_provider_is_built_lazily_from_settings(store, tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    app = create_app(Settings(db_path=str(tmp_path / "x.duckdb")), storage=store)
    store.upsert_note(make_note("n", text="anything", embedding=[1.0, 0.0]))

    response = TestClient(app).post("/api/search", json={"query": "q"}, headers=OWNER)

    # Missing credentials surface as a temporarily unavailable AI service.
    assert response.status_code == 503

def test_blocking_work_runs_off_the_event_loop(store, tmp_path: Path) -> None:
    loop_threads: list[bool] = []

    class _LoopCheckingProvider(KeywordEmbeddingProvider):
        def embed(self, text, *, task_type="RETRIEVAL_DOCUMENT"):
            try:
                asyncio.get_running_loop()
                loop_threads.append(True)
            except RuntimeError:
                loop_threads.append(False)
            return super().embed(text, task_type=task_type)

    app = create_app(
        Settings(db_path=str(tmp_path / "x.duckdb")),
        storage=store,
        embedding_provider=_LoopCheckingProvider(default=[1.0, 0.0]),
    )
    client = TestClient(app)
    store.upsert_note(make_note("n1", text="timeline review notes", embedding=[1.0, 0.0]))
    store.upsert_note(make_note("n2", text="another note to embed"))

    assert client.post("/api/search", json={"query": "q"}, headers=OWNER).status_code == 200
    assert client.get("/api/search", params={"q": "q"}, headers=OWNER).status_code == 200
    assert (
        client.post("/api/embeddings", json={"note_id": "n2"}, headers=OWNER).status_code
        == 200
    )
    assert loop_threads == [False, False, False]


def test_summarize_note_saves_summary(client, store) -> None:
    store.upsert_note(make_note("n1", title="Review", text=NOTE_TEXT))

    response = client.post("/api/summarize", json={"note_id": "n1"}, headers=OWNER)

    assert response.status_code == 200
    data = response.json()
    assert data["summary"] == "Search moves to embeddings."
    assert data["key_points"] == ["Keep keyword fallback"]
    assert data["saved"] is True
    assert store.get_note("n1").summary == "Search moves to embeddings."


def test_summarize_adhoc_content(client) -> None:
    response = client.post(
        "/api/summarize", json={"content": paragraph_doc(NOTE_TEXT)}, headers=OWNER
    )

    assert response.status_code == 200
    assert response.json()["saved"] is False


def test_summarize_requires_content(client) -> None:
    assert client.post("/api/summarize", json={}, headers=OWNER).status_code == 400
    assert client.post("/api/summarize", json={}).status_code == 401


def test_summarize_short_content_is_bad_request(client, genai_client) -> None:
    response = client.post(
        "/api/summarize", json={"content": paragraph_doc("Too short.")}, headers=OWNER
    )

    assert response.status_code == 400
    assert "too short for summarization" in response.json()["error"]
    assert genai_client.models.calls == []


def test_summarize_unknown_note_is_not_found(client) -> None:
    response = client.post("/api/summarize", json={"note_id": "ghost"}, headers=OWNER)

    assert response.status_code == 404


def test_cached_summary_is_returned(client, store, genai_client) -> None:
    store.upsert_note(make_note("n1", text=NOTE_TEXT))
    store.update_summary("n1", "Stored summary.")

    response = client.get("/api/summarize", params={"note_id": "n1"}, headers=OWNER)

    assert response.status_code == 200
    data = response.json()
    assert data["cached"] is True
    assert data["summary"] == "Stored summary."
    assert genai_client.models.calls == []
    assert client.get("/api/summarize", headers=OWNER).status_code == 400


def test_summary_provider_outage_is_service_unavailable(store, tmp_path: Path) -> None:
    app = create_app(
        Settings(db_path=str(tmp_path / "x.duckdb")),
        storage=store,
        text_generator=TextGenerator(client=FakeGenAIClient(error=ConnectionError("down"))),
    )

    response = TestClient(app).post(
        "/api/summarize", json={"content": paragraph_doc(NOTE_TEXT)}, headers=OWNER
    )

    assert response.status_code == 503


def test_auto_title_suggests_without_applying(client, store) -> None:
    store.upsert_note(make_note("n1", title="Draft", text=NOTE_TEXT))

    response = client.post("/api/auto-title", json={"note_id": "n1"}, headers=OWNER)

    assert response.status_code == 200
    data = response.json()
    assert data["recommended"] == "Embedding Search Review"
    assert data["applied"] is None
    assert store.get_note("n1").title == "Draft"


def test_auto_title_applies_recommended_title(client, store) -> None:
    store.upsert_note(make_note("n1", title="Draft", text=NOTE_TEXT))

    response = client.post(
        "/api/auto-title", json={"note_id": "n1", "apply_title": True}, headers=OWNER
    )

    assert response.status_code == 200
    assert response.json()["applied"] == "Embedding Search Review"
    assert store.get_note("n1").title == "Embedding Search Review"


def test_auto_title_for_stored_note(client, store) -> None:
    store.upsert_note(make_note("n1", title="Draft", text=NOTE_TEXT))

    response = client.get("/api/auto-title", params={"note_id": "n1"}, headers=OWNER)

    assert response.status_code == 200
    assert response.json()["current_title"] == "Draft"


def test_auto_title_short_content_is_bad_request(client) -> None:
    response = client.post(
        "/api/auto-title", json={"content": paragraph_doc("Tiny")}, headers=OWNER
    )

    assert response.status_code == 400
    assert "title generation" in response.json()["error"]


def test_batch_uses_configured_rate_limiter(store, provider, tmp_path: Path, monkeypatch) -> None:
    import semantic_notes.server as server_module

    kinds: list[tuple[str, float]] = []
    real_build = server_module.build_rate_limiter

    def _recording_build(kind, delay):
        kinds.append((kind, delay))
        return real_build(kind, delay)

    monkeypatch.setattr(server_module, "build_rate_limiter", _recording_build)
    settings = Settings(
        db_path=str(tmp_path / "x.duckdb"),
        batch_delay_seconds=0.0,
        batch_rate_limiter="token-bucket",
    )
    app = create_app(settings, storage=store, embedding_provider=provider)
    store.upsert_note(make_note("a", text="timeline planning session"))

    response = TestClient(app).post(
        "/api/embeddings", json={"batch_process": True}, headers=OWNER
    )

    assert response.status_code == 200
    assert kinds == [("token-bucket", 0.0)]
