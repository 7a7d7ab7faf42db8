"""
DuckDB storage backend for notes and their embeddings.
"""

from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import duckdb

from .base import EmbeddingFilter, EmbeddingStats, NoteRecord


_HAS_EMBEDDING = "embedding IS NOT NULL AND len(embedding) > 0"
_MISSING_EMBEDDING = "(embedding IS NULL OR len(embedding) = 0)"

_FILTER_CLAUSES: dict[str, str] = {
    "has": f"AND {_HAS_EMBEDDING}",
    "missing": f"AND {_MISSING_EMBEDDING}",
    "all": "",
}

_NOTE_COLUMNS = (
    "id, owner_id, title, summary, content_json, embedding, created_at, updated_at"
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class DuckDBNoteStore:
    """
    DuckDB-backed note store.

    Batch workers persist embeddings from several threads, so every statement
    runs under a single connection lock.
    """

    def __init__(
        self,
        db_path: str,
        *,
        read_only: bool = False,
        initialize: bool = True,
    ) -> None:
        self.db_path = str(Path(db_path).expanduser().resolve())
        self.read_only = read_only
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = duckdb.connect(self.db_path, read_only=read_only)
        self._lock = threading.Lock()
        if initialize and not read_only:
            self.initialize()

    def close(self) -> None:
        """Close the underlying DuckDB connection."""
        with self._lock:
            self._conn.close()

    def initialize(self) -> None:
        with self._lock:
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS notes (
                    id VARCHAR PRIMARY KEY,
                    owner_id VARCHAR NOT NULL,
                    title VARCHAR,
                    summary VARCHAR,
                    content_json VARCHAR NOT NULL DEFAULT 'null',
                    embedding DOUBLE[],
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                );
                """
            )

    def upsert_note(self, note: NoteRecord) -> None:
        created_at = note.created_at or _utcnow()
        updated_at = note.updated_at or created_at
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO notes (
                    id, owner_id, title, summary, content_json, embedding,
                    created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    owner_id = excluded.owner_id,
                    title = excluded.title,
                    summary = excluded.summary,
                    content_json = excluded.content_json,
                    embedding = excluded.embedding,
                    created_at = excluded.created_at,
                    updated_at = excluded.updated_at
                """,
                [
                    note.id,
                    note.owner_id,
                    note.title,
                    note.summary,
                    json.dumps(note.content),
                    note.embedding,
                    created_at,
                    updated_at,
                ],
            )

    def get_note(self, note_id: str) -> NoteRecord | None:
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_NOTE_COLUMNS} FROM notes WHERE id = ? LIMIT 1",
                [note_id],
            ).fetchone()
        if row is None:
            return None
        return self._row_to_note(row)

    def list_notes(
        self,
        owner_id: str,
        *,
        embedding_filter: EmbeddingFilter = "all",
    ) -> list[NoteRecord]:
        if embedding_filter not in _FILTER_CLAUSES:
            raise ValueError(f"Unknown embedding filter: {embedding_filter}")
        sql = f"""
            SELECT {_NOTE_COLUMNS}
            FROM notes
            WHERE owner_id = ?
            {_FILTER_CLAUSES[embedding_filter]}
            ORDER BY updated_at DESC, id ASC
        """
        with self._lock:
            rows = self._conn.execute(sql, [owner_id]).fetchall()
        return [self._row_to_note(row) for row in rows]

    def update_embedding(
        self,
        note_id: str,
        embedding: list[float],
        *,
        owner_id: str | None = None,
    ) -> bool:
        return self._update_column("embedding", note_id, list(embedding), owner_id)

    def update_summary(
        self, note_id: str, summary: str, *, owner_id: str | None = None
    ) -> bool:
        return self._update_column("summary", note_id, summary, owner_id)

    def update_title(
        self, note_id: str, title: str, *, owner_id: str | None = None
    ) -> bool:
        return self._update_column("title", note_id, title, owner_id)

    def embedding_stats(self, owner_id: str) -> EmbeddingStats:
        with self._lock:
            row = self._conn.execute(
                f"""
                SELECT
                    COUNT(*),
                    COALESCE(SUM(CASE WHEN {_HAS_EMBEDDING} THEN 1 ELSE 0 END), 0)
                FROM notes
                WHERE owner_id = ?
                """,
                [owner_id],
            ).fetchone()
        if row is None:
            return EmbeddingStats(total_notes=0, notes_with_embeddings=0)
        return EmbeddingStats(total_notes=int(row[0]), notes_with_embeddings=int(row[1]))

    def _update_column(
        self,
        column: str,
        note_id: str,
        value: Any,
        owner_id: str | None,
    ) -> bool:
        where = "id = ?"
        params: list[Any] = [note_id]
        if owner_id is not None:
            where += " AND owner_id = ?"
            params.append(owner_id)

        with self._lock:
            row = self._conn.execute(
                f"SELECT COUNT(*) FROM notes WHERE {where}", params
            ).fetchone()
            if row is None or int(row[0]) == 0:
                return False
            self._conn.execute(
                f"UPDATE notes SET {column} = ? WHERE {where}", [value, *params]
            )
        return True

    @staticmethod
    def _row_to_note(row: tuple[Any, ...]) -> NoteRecord:
        embedding = row[5]
        return NoteRecord(
            id=str(row[0]),
            owner_id=str(row[1]),
            title=row[2],
            summary=row[3],
            content=json.loads(row[4]) if row[4] else None,
            embedding=[float(v) for v in embedding] if embedding is not None else None,
            created_at=row[6],
            updated_at=row[7],
        )
