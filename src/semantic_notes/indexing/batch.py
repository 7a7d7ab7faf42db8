"""
Batch reprocessing of note embeddings.

Notes are embedded in fixed-size chunks: items inside a chunk run
concurrently on a thread pool, chunks run one after another with the rate
limiter consulted in between. A failing note is recorded and never stops the
rest of the run.
"""

from __future__ import annotations

import enum
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Literal, Sequence

from ..embeddings import EmbeddingProvider
from ..errors import SemanticNotesError
from ..storage import NoteRecord, NoteStore
from .notes import DEFAULT_MIN_CONTENT_CHARS, build_embedding_text
from .rate_limit import FixedDelayRateLimiter, RateLimiter


logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 5
DEFAULT_CHUNK_DELAY = 1.0

OutcomeStatus = Literal["processed", "skipped", "error"]

NOTHING_TO_DO_MESSAGE = "All notes already have embeddings"
CONTENT_TOO_SHORT = "Content too short"
DATABASE_UPDATE_FAILED = "Database update failed"


class BatchState(str, enum.Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    PROCESSING = "processing"
    COMPLETED = "completed"


@dataclass(frozen=True)
class ItemOutcome:
    """Result of reprocessing one note."""

    note_id: str
    status: OutcomeStatus
    detail: str | None = None
    dimensions: int = 0
    tokens: int = 0


@dataclass(frozen=True)
class BatchSummary:
    """Summary output for a reprocessing run."""

    processed: int = 0
    skipped: int = 0
    errors: int = 0
    error_details: list[str] = field(default_factory=list)
    outcomes: list[ItemOutcome] = field(default_factory=list)
    message: str = ""

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @classmethod
    def from_outcomes(cls, outcomes: list[ItemOutcome]) -> "BatchSummary":
        processed = sum(1 for o in outcomes if o.status == "processed")
        skipped = sum(1 for o in outcomes if o.status == "skipped")
        errors = sum(1 for o in outcomes if o.status == "error")
        error_details = [
            f"Note {o.note_id}: {o.detail}" for o in outcomes if o.status == "error"
        ]
        return cls(
            processed=processed,
            skipped=skipped,
            errors=errors,
            error_details=error_details,
            outcomes=outcomes,
            message=(
                f"Batch processing completed. Processed {processed} notes "
                f"with {errors} errors ({skipped} skipped)."
            ),
        )


class BatchReprocessor:
    """Keep a note collection's embeddings up to date."""

    def __init__(
        self,
        storage: NoteStore,
        embedding_provider: EmbeddingProvider,
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        rate_limiter: RateLimiter | None = None,
        min_content_chars: int = DEFAULT_MIN_CONTENT_CHARS,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be > 0")
        self.storage = storage
        self.embedding_provider = embedding_provider
        self.chunk_size = chunk_size
        self.rate_limiter = rate_limiter or FixedDelayRateLimiter(DEFAULT_CHUNK_DELAY)
        self.min_content_chars = min_content_chars
        self.state = BatchState.IDLE

    def run(self, owner_id: str, *, full_rebuild: bool = False) -> BatchSummary:
        """Scan an owner's notes and embed those that need it."""
        self.state = BatchState.SCANNING
        notes = self.storage.list_notes(
            owner_id,
            embedding_filter="all" if full_rebuild else "missing",
        )
        logger.info(
            "Batch scan for owner %s found %d notes (full_rebuild=%s)",
            owner_id,
            len(notes),
            full_rebuild,
        )
        if not notes:
            self.state = BatchState.COMPLETED
            return BatchSummary(message=NOTHING_TO_DO_MESSAGE)
        return self.process_notes(notes, owner_id=owner_id)

    def process_notes(
        self,
        notes: Sequence[NoteRecord],
        *,
        owner_id: str | None = None,
    ) -> BatchSummary:
        """Embed and persist *notes*; outcomes are returned in input order."""
        self.state = BatchState.PROCESSING
        outcomes: list[ItemOutcome] = []

        def _process(note: NoteRecord) -> ItemOutcome:
            return self._process_one(note, owner_id=owner_id)

        if notes:
            with ThreadPoolExecutor(max_workers=self.chunk_size) as executor:
                for start in range(0, len(notes), self.chunk_size):
                    if start > 0:
                        self.rate_limiter.acquire()
                    chunk = notes[start : start + self.chunk_size]
                    outcomes.extend(executor.map(_process, chunk))

        summary = BatchSummary.from_outcomes(outcomes)
        self.state = BatchState.COMPLETED
        logger.info(
            "Batch run finished: %d processed, %d skipped, %d errors",
            summary.processed,
            summary.skipped,
            summary.errors,
        )
        return summary

    def _process_one(self, note: NoteRecord, *, owner_id: str | None) -> ItemOutcome:
        text = build_embedding_text(note.title, note.content)
        if len(text) < self.min_content_chars:
            return ItemOutcome(note_id=note.id, status="skipped", detail=CONTENT_TOO_SHORT)

        try:
            result = self.embedding_provider.embed(text)
        except SemanticNotesError as exc:
            logger.warning("Embedding failed for note %s: %s", note.id, exc)
            return ItemOutcome(note_id=note.id, status="error", detail=str(exc))
        except Exception as exc:
            logger.exception("Unexpected failure embedding note %s", note.id)
            return ItemOutcome(
                note_id=note.id, status="error", detail=str(exc) or "Unknown error"
            )

        try:
            saved = self.storage.update_embedding(
                note.id, result.vector, owner_id=owner_id
            )
        except Exception as exc:
            logger.warning("Saving embedding failed for note %s: %s", note.id, exc)
            saved = False
        if not saved:
            return ItemOutcome(
                note_id=note.id, status="error", detail=DATABASE_UPDATE_FAILED
            )

        return ItemOutcome(
            note_id=note.id,
            status="processed",
            dimensions=result.dimensions,
            tokens=result.tokens,
        )
