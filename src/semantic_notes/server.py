"""
FastAPI server exposing semantic search, embedding maintenance and note
summaries and title suggestions.

Authentication is handled upstream; requests carry the authenticated owner in
the ``X-Owner-Id`` header and are trusted as-is.
"""

import asyncio
import logging
from typing import Any

from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .assistant import NoteAssistant
from .config import Settings
from .embeddings import EmbeddingProvider
from .errors import (
    ContentTooShortError,
    DimensionMismatchError,
    EmptyInputError,
    EmptyQueryError,
    NoteNotFoundError,
    ProviderUnavailableError,
    StorageError,
)
from .generation import SummaryResult, TextGenerator, TitleSuggestions
from .indexing import BatchReprocessor, NoteEmbedder, build_rate_limiter
from .search import SearchResponse, SemanticSearchEngine
from .storage import DuckDBNoteStore, NoteStore


logger = logging.getLogger(__name__)

SUMMARY_TOO_SHORT = "Content is too short for summarization. Please add more content."
TITLE_TOO_SHORT = "Content is too short for title generation. Please add more content."


class SearchRequest(BaseModel):
    """Request model for semantic search."""

    query: str
    threshold: float | None = None
    limit: int | None = None


class EmbeddingRequest(BaseModel):
    """Request model for single-note or batch embedding generation."""

    note_id: str | None = None
    content: Any = None
    title: str | None = None
    batch_process: bool = False
    full_rebuild: bool = False


class SummarizeRequest(BaseModel):
    note_id: str | None = None
    content: Any = None
    title: str | None = None


class AutoTitleRequest(BaseModel):
    note_id: str | None = None
    content: Any = None
    apply_title: bool = False


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _unauthorized() -> JSONResponse:
    return _error("Unauthorized", 401)


def _search_payload(response: SearchResponse) -> dict[str, Any]:
    return {
        "results": [
            {
                "id": result.id,
                "title": result.title,
                "summary": result.summary,
                "similarity": result.similarity,
                "updated_at": (
                    result.updated_at.isoformat() if result.updated_at else None
                ),
            }
            for result in response.results
        ],
        "query": response.query,
        "threshold": response.threshold,
        "total_found": response.total_found,
        "total_candidates": response.total_candidates,
        "message": response.message,
    }


def _summary_payload(result: SummaryResult) -> dict[str, Any]:
    return {
        "summary": result.summary,
        "key_points": result.key_points,
        "confidence": result.confidence,
    }


def _titles_payload(result: TitleSuggestions) -> dict[str, Any]:
    return {
        "suggestions": result.suggestions,
        "recommended": result.recommended,
        "confidence": result.confidence,
    }


def create_app(
    settings: Settings | None = None,
    *,
    storage: NoteStore | None = None,
    embedding_provider: EmbeddingProvider | None = None,
    text_generator: TextGenerator | None = None,
) -> FastAPI:
    """
    Build the API application.

    The AI clients and note store are created once per application and
    shared by every request; pass them explicitly to substitute fakes.
    Store and provider calls block, so handlers run them in worker threads.
    """
    app = FastAPI(
        title="SemanticNotes",
        description="Semantic search over rich-text notes",
    )
    app.state.settings = settings or Settings.from_env()
    app.state.storage = storage
    app.state.embedding_provider = embedding_provider
    app.state.text_generator = text_generator

    def get_storage(request: Request) -> NoteStore:
        state = request.app.state
        if state.storage is None:
            state.storage = DuckDBNoteStore(state.settings.resolved_db_path())
        return state.storage

    def get_provider(request: Request) -> EmbeddingProvider:
        state = request.app.state
        if state.embedding_provider is None:
            s: Settings = state.settings
            state.embedding_provider = EmbeddingProvider(
                model=s.embedding_model,
                dim=s.embedding_dim,
                max_input_chars=s.max_input_chars,
            )
        return state.embedding_provider

    def get_generator(request: Request) -> TextGenerator:
        state = request.app.state
        if state.text_generator is None:
            s: Settings = state.settings
            state.text_generator = TextGenerator(
                model=s.generation_model,
                min_summary_chars=s.min_summary_chars,
                min_title_chars=s.min_title_chars,
            )
        return state.text_generator

    def get_assistant(request: Request) -> NoteAssistant:
        return NoteAssistant(get_storage(request), get_generator(request))

    def run_search(
        request: Request,
        owner_id: str,
        query: str | None,
        threshold: float | None,
        limit: int | None,
    ) -> JSONResponse | dict[str, Any]:
        s: Settings = request.app.state.settings
        if not query or not query.strip():
            return _error("Query is required", 400)
        try:
            engine = SemanticSearchEngine(
                get_provider(request), storage=get_storage(request)
            )
            response = engine.search_notes(
                owner_id,
                query,
                threshold=s.search_threshold if threshold is None else threshold,
                limit=s.search_limit if limit is None else limit,
            )
            return _search_payload(response)
        except EmptyQueryError as exc:
            return _error(str(exc), 400)
        except DimensionMismatchError:
            return _error(
                "Embedding format mismatch. Please regenerate embeddings.", 400
            )
        except ProviderUnavailableError as exc:
            logger.warning("Semantic search unavailable: %s", exc)
            return _error("AI service temporarily unavailable", 503)
        except ValueError as exc:
            logger.warning("Semantic search misconfigured: %s", exc)
            return _error("AI service temporarily unavailable", 503)
        except Exception:
            logger.exception("Error in semantic search endpoint")
            return _error("Failed to perform semantic search. Please try again.", 500)

    @app.post("/api/search")
    async def search_notes(
        body: SearchRequest,
        request: Request,
        x_owner_id: str | None = Header(default=None),
    ):
        """Rank the owner's embedded notes against a query."""
        if not x_owner_id:
            return _unauthorized()
        return await asyncio.to_thread(
            run_search, request, x_owner_id, body.query, body.threshold, body.limit
        )

    @app.get("/api/search")
    async def search_notes_get(
        request: Request,
        q: str | None = None,
        threshold: float | None = None,
        limit: int | None = None,
        x_owner_id: str | None = Header(default=None),
    ):
        """Query-string variant of POST /api/search."""
        if not x_owner_id:
            return _unauthorized()
        if not q:
            return _error('Query parameter "q" is required', 400)
        return await asyncio.to_thread(
            run_search, request, x_owner_id, q, threshold, limit
        )

    def embed_single(
        request: Request, owner_id: str, body: EmbeddingRequest
    ) -> dict[str, Any]:
        s: Settings = request.app.state.settings
        embedder = NoteEmbedder(
            get_storage(request),
            get_provider(request),
            min_content_chars=s.min_content_chars,
        )
        if body.note_id:
            result = embedder.embed_note(owner_id, body.note_id)
        else:
            result = embedder.embed_content(body.content, body.title)
        saved = body.note_id is not None
        return {
            "embedding": result.vector,
            "tokens": result.tokens,
            "dimensions": result.dimensions,
            "saved": saved,
            "message": (
                "Embedding generated and saved to note"
                if saved
                else "Embedding generated successfully"
            ),
        }

    @app.post("/api/embeddings")
    async def generate_embeddings(
        body: EmbeddingRequest,
        request: Request,
        x_owner_id: str | None = Header(default=None),
    ):
        """Embed one note, ad-hoc content, or every note missing an embedding."""
        if not x_owner_id:
            return _unauthorized()
        s: Settings = request.app.state.settings
        try:
            if body.batch_process:
                reprocessor = BatchReprocessor(
                    get_storage(request),
                    get_provider(request),
                    chunk_size=s.batch_chunk_size,
                    rate_limiter=build_rate_limiter(
                        s.batch_rate_limiter, s.batch_delay_seconds
                    ),
                    min_content_chars=s.min_content_chars,
                )
                summary = await asyncio.to_thread(
                    reprocessor.run, x_owner_id, full_rebuild=body.full_rebuild
                )
                return {
                    "message": summary.message,
                    "processed": summary.processed,
                    "skipped": summary.skipped,
                    "errors": summary.errors,
                    "error_details": summary.error_details,
                }

            if not body.note_id and (not body.content or not body.title):
                return _error(
                    "Either note_id or both content and title are required", 400
                )
            return await asyncio.to_thread(embed_single, request, x_owner_id, body)
        except (ContentTooShortError, EmptyInputError):
            return _error("Content is too short for embedding generation", 400)
        except NoteNotFoundError:
            return _error("Note not found or unauthorized", 404)
        except ProviderUnavailableError as exc:
            logger.warning("Embedding generation unavailable: %s", exc)
            return _error("AI service temporarily unavailable", 503)
        except StorageError as exc:
            return _error(str(exc), 500)
        except ValueError as exc:
            logger.warning("Embedding generation misconfigured: %s", exc)
            return _error("AI service temporarily unavailable", 503)
        except Exception:
            logger.exception("Error in embeddings endpoint")
            return _error("Failed to generate embedding. Please try again.", 500)

    @app.get("/api/embeddings")
    async def embedding_statistics(
        request: Request,
        x_owner_id: str | None = Header(default=None),
    ):
        """Report how many of the owner's notes have embeddings."""
        if not x_owner_id:
            return _unauthorized()
        try:
            stats = await asyncio.to_thread(
                lambda: get_storage(request).embedding_stats(x_owner_id)
            )
        except Exception:
            logger.exception("Error retrieving embedding statistics")
            return _error("Failed to retrieve statistics. Please try again.", 500)
        return {
            "total_notes": stats.total_notes,
            "notes_with_embeddings": stats.notes_with_embeddings,
            "notes_without_embeddings": stats.notes_without_embeddings,
            "embedding_coverage": stats.coverage,
            "message": "Embedding statistics retrieved successfully",
        }

    async def run_assistant(
        request: Request, method: str, failure: str, too_short: str, *args, **kwargs
    ):
        """Call a ``NoteAssistant`` method off the event loop.

        Returns ``(outcome, None)`` or ``(None, error_response)``.
        """

        def call():
            return getattr(get_assistant(request), method)(*args, **kwargs)

        try:
            return await asyncio.to_thread(call), None
        except ContentTooShortError:
            return None, _error(too_short, 400)
        except EmptyInputError as exc:
            return None, _error(str(exc), 400)
        except NoteNotFoundError:
            return None, _error("Note not found or unauthorized", 404)
        except StorageError as exc:
            return None, _error(str(exc), 500)
        except (ProviderUnavailableError, ValueError) as exc:
            logger.warning("Note assistant unavailable: %s", exc)
            return None, _error("AI service temporarily unavailable", 503)
        except Exception:
            logger.exception("Error in note assistant endpoint")
            return None, _error(failure, 500)

    @app.post("/api/summarize")
    async def summarize_note(
        body: SummarizeRequest,
        request: Request,
        x_owner_id: str | None = Header(default=None),
    ):
        """Summarize content, saving the summary when a note is named."""
        if not x_owner_id:
            return _unauthorized()
        if body.content is None and not body.note_id:
            return _error("Content is required", 400)
        outcome, failed = await run_assistant(
            request,
            "summarize",
            "Failed to generate summary. Please try again.",
            SUMMARY_TOO_SHORT,
            x_owner_id,
            note_id=body.note_id,
            content=body.content,
            title=body.title,
        )
        if failed is not None:
            return failed
        return {
            **_summary_payload(outcome.result),
            "saved": outcome.saved,
            "message": "Summary generated successfully",
        }

    @app.get("/api/summarize")
    async def get_note_summary(
        request: Request,
        note_id: str | None = None,
        x_owner_id: str | None = Header(default=None),
    ):
        """Return a note's stored summary, generating one if it has none."""
        if not x_owner_id:
            return _unauthorized()
        if not note_id:
            return _error("Note ID is required", 400)
        outcome, failed = await run_assistant(
            request,
            "note_summary",
            "Failed to get summary. Please try again.",
            SUMMARY_TOO_SHORT,
            x_owner_id,
            note_id,
        )
        if failed is not None:
            return failed
        return {
            **_summary_payload(outcome.result),
            "cached": outcome.cached,
            "saved": outcome.saved,
            "message": (
                "Retrieved cached summary"
                if outcome.cached
                else "Summary generated and saved successfully"
            ),
        }

    @app.post("/api/auto-title")
    async def auto_title(
        body: AutoTitleRequest,
        request: Request,
        x_owner_id: str | None = Header(default=None),
    ):
        """Suggest titles, optionally applying the recommended one to a note."""
        if not x_owner_id:
            return _unauthorized()
        if body.content is None and not body.note_id:
            return _error("Content is required", 400)
        outcome, failed = await run_assistant(
            request,
            "suggest_titles",
            "Failed to generate title suggestions. Please try again.",
            TITLE_TOO_SHORT,
            x_owner_id,
            note_id=body.note_id,
            content=body.content,
            apply=body.apply_title,
        )
        if failed is not None:
            return failed
        return {
            **_titles_payload(outcome.result),
            "applied": outcome.applied,
            "message": (
                "Title applied successfully"
                if outcome.applied
                else "Title suggestions generated"
            ),
        }

    @app.get("/api/auto-title")
    async def auto_title_for_note(
        request: Request,
        note_id: str | None = None,
        x_owner_id: str | None = Header(default=None),
    ):
        """Suggest titles for a stored note without changing it."""
        if not x_owner_id:
            return _unauthorized()
        if not note_id:
            return _error("Note ID is required", 400)
        outcome, failed = await run_assistant(
            request,
            "suggest_titles",
            "Failed to generate title suggestions. Please try again.",
            TITLE_TOO_SHORT,
            x_owner_id,
            note_id=note_id,
        )
        if failed is not None:
            return failed
        return {
            **_titles_payload(outcome.result),
            "current_title": outcome.current_title,
            "message": "Title suggestions generated successfully",
        }

    return app


def run_server(host: str = "127.0.0.1", port: int = 8000, settings: Settings | None = None):
    """Run the FastAPI server."""
    import uvicorn

    uvicorn.run(create_app(settings), host=host, port=port)


if __name__ == "__main__":
    run_server()
