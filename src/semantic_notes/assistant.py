"""
Note summaries and title suggestions backed by the note store.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from .errors import EmptyInputError, NoteNotFoundError, StorageError
from .generation import SummaryResult, TextGenerator, TitleSuggestions
from .storage import NoteRecord, NoteStore


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SummaryOutcome:
    result: SummaryResult
    saved: bool = False
    cached: bool = False


@dataclass(frozen=True)
class TitleOutcome:
    result: TitleSuggestions
    applied: str | None = None
    current_title: str | None = None


class NoteAssistant:
    """Summarize notes and suggest titles, saving results on request."""

    def __init__(self, storage: NoteStore, generator: TextGenerator) -> None:
        self.storage = storage
        self.generator = generator

    def _owned_note(self, owner_id: str, note_id: str) -> NoteRecord:
        note = self.storage.get_note(note_id)
        if note is None or note.owner_id != owner_id:
            raise NoteNotFoundError(note_id)
        return note

    def summarize(
        self,
        owner_id: str,
        *,
        note_id: str | None = None,
        content: Any = None,
        title: str | None = None,
    ) -> SummaryOutcome:
        """
        Summarize *content*, or the stored note when only *note_id* is given.

        With a *note_id* the summary is also saved on the note. A failed save
        is logged and reported as ``saved=False``; the summary is still
        returned.
        """
        note = self._owned_note(owner_id, note_id) if note_id else None
        if content is None and note is not None:
            content = note.content
            title = title or note.title
        if content is None:
            raise EmptyInputError("Content is required")

        result = self.generator.summarize(content, title)
        saved = note is not None and self._save_summary(owner_id, note.id, result.summary)
        return SummaryOutcome(result=result, saved=saved)

    def note_summary(self, owner_id: str, note_id: str) -> SummaryOutcome:
        """Return the note's stored summary, generating and saving one if absent."""
        note = self._owned_note(owner_id, note_id)
        if note.summary:
            return SummaryOutcome(
                result=SummaryResult(summary=note.summary, key_points=[], confidence=1.0),
                cached=True,
            )
        result = self.generator.summarize(note.content, note.title)
        saved = self._save_summary(owner_id, note.id, result.summary)
        return SummaryOutcome(result=result, saved=saved)

    def suggest_titles(
        self,
        owner_id: str,
        *,
        note_id: str | None = None,
        content: Any = None,
        apply: bool = False,
    ) -> TitleOutcome:
        """
        Suggest titles for *content* or a stored note.

        ``apply=True`` with a *note_id* writes the recommended title to the
        note and raises ``StorageError`` if that write fails.
        """
        note = self._owned_note(owner_id, note_id) if note_id else None
        if content is None and note is not None:
            content = note.content
        if content is None:
            raise EmptyInputError("Content is required")

        result = self.generator.suggest_titles(content)
        applied = None
        if apply and note is not None:
            try:
                updated = self.storage.update_title(
                    note.id, result.recommended, owner_id=owner_id
                )
            except Exception as exc:
                logger.error("Updating title of note %s failed: %s", note.id, exc)
                updated = False
            if not updated:
                raise StorageError("Failed to apply title to note")
            applied = result.recommended
            logger.info("Applied title to note %s", note.id)
        return TitleOutcome(
            result=result,
            applied=applied,
            current_title=note.title if note is not None else None,
        )

    def _save_summary(self, owner_id: str, note_id: str, summary: str) -> bool:
        try:
            saved = self.storage.update_summary(note_id, summary, owner_id=owner_id)
        except Exception as exc:
            logger.warning("Saving summary for note %s failed: %s", note_id, exc)
            return False
        if not saved:
            logger.warning("Saving summary for note %s matched no row", note_id)
        return saved
