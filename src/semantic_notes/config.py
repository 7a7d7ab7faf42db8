"""
Configuration helpers for the note store, AI clients and batch runs.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field


DEFAULT_DB_PATH = "~/.semantic_notes/notes.duckdb"
ENV_DB_PATH = "SEMANTIC_NOTES_DB_PATH"
ENV_PREFIX = "SEMANTIC_NOTES_"


def resolve_db_path(override_path: str | None = None) -> str:
    """
    Resolve the DuckDB path from CLI override, env var, or default.

    Precedence:
    1) explicit override_path
    2) SEMANTIC_NOTES_DB_PATH
    3) default path
    """
    raw_path = override_path or os.getenv(ENV_DB_PATH) or DEFAULT_DB_PATH
    resolved = Path(raw_path).expanduser().resolve()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    return str(resolved)


class Settings(BaseModel):
    """Runtime settings for the semantic search pipeline."""

    db_path: str | None = Field(
        default=None, description="DuckDB file holding notes and embeddings"
    )
    embedding_model: str = Field(default="gemini-embedding-001")
    embedding_dim: int = Field(default=768, gt=0)
    max_input_chars: int = Field(
        default=8000, gt=0, description="Character cap applied before embedding"
    )
    search_threshold: float = Field(default=0.7, ge=-1.0, le=1.0)
    search_limit: int = Field(default=20, gt=0)
    batch_chunk_size: int = Field(
        default=5, gt=0, description="Notes embedded concurrently per chunk"
    )
    batch_delay_seconds: float = Field(
        default=1.0, ge=0.0, description="Pause between batch chunks"
    )
    batch_rate_limiter: Literal["fixed", "token-bucket"] = Field(
        default="fixed", description="How the pause between chunks is applied"
    )
    min_content_chars: int = Field(default=10, ge=0)
    generation_model: str = Field(default="gemini-2.5-flash")
    min_summary_chars: int = Field(default=50, ge=0)
    min_title_chars: int = Field(default=20, ge=0)
    log_level: str = Field(default="INFO")

    @classmethod
    def from_env(cls, **overrides: object) -> "Settings":
        """
        Build settings from ``SEMANTIC_NOTES_*`` environment variables.

        Keyword overrides win over the environment; values that are ``None``
        are ignored so CLI options can be passed through unconditionally.
        """
        values: dict[str, object] = {}
        for name in cls.model_fields:
            raw = os.getenv(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None and raw != "":
                values[name] = raw
        for name, value in overrides.items():
            if value is not None:
                values[name] = value
        return cls.model_validate(values)

    def resolved_db_path(self) -> str:
        return resolve_db_path(self.db_path)
