"""
Embedding provider for vector-based semantic search.

Wraps the Google GenAI embedding API for single-text embedding with a
character cap standing in for the provider's token limit. Provider failures
are mapped to ``ProviderUnavailableError``; retry policy is left to callers.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any

from google.genai import Client as GenAIClient
from google.genai import errors as genai_errors

from .errors import EmptyInputError, ProviderUnavailableError


logger = logging.getLogger(__name__)

_DEFAULT_MODEL = "gemini-embedding-001"
_DEFAULT_DIM = 768
_DEFAULT_MAX_CHARS = 8000
_NON_RETRYABLE_CODES = frozenset({400, 401, 403, 404})


def provider_error(exc: Exception, action: str) -> ProviderUnavailableError:
    """Map a failed google-genai call to ``ProviderUnavailableError``."""
    if isinstance(exc, genai_errors.APIError):
        code = getattr(exc, "code", None)
        logger.warning("AI provider returned an error (%s): %s", action, exc)
        return ProviderUnavailableError(
            f"Failed to {action}: {exc}",
            status_code=code,
            retryable=code not in _NON_RETRYABLE_CODES,
        )
    logger.warning("AI provider call failed (%s): %s", action, exc)
    return ProviderUnavailableError(f"Failed to {action}: {exc}")


@dataclass(frozen=True)
class EmbeddingResult:
    """Vector returned by the provider plus reported token usage."""

    vector: list[float]
    tokens: int = 0

    @property
    def dimensions(self) -> int:
        return len(self.vector)


class EmbeddingProvider:
    """Generate text embeddings via Google GenAI."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        dim: int | None = None,
        max_input_chars: int | None = None,
        client: Any | None = None,
    ) -> None:
        self.model = model or os.getenv("SEMANTIC_NOTES_EMBEDDING_MODEL", _DEFAULT_MODEL)
        self.dim = dim or int(os.getenv("SEMANTIC_NOTES_EMBEDDING_DIM", str(_DEFAULT_DIM)))
        self.max_input_chars = max_input_chars or int(
            os.getenv("SEMANTIC_NOTES_MAX_INPUT_CHARS", str(_DEFAULT_MAX_CHARS))
        )

        if client is not None:
            self._client = client
        else:
            resolved_key = api_key or os.getenv("GOOGLE_API_KEY")
            if resolved_key is None:
                raise ValueError(
                    "GOOGLE_API_KEY not found. "
                    "Provide api_key or set the environment variable."
                )
            self._client = GenAIClient(api_key=resolved_key)

    def embed(
        self,
        text: str,
        *,
        task_type: str = "RETRIEVAL_DOCUMENT",
    ) -> EmbeddingResult:
        """Embed a single text, truncated to ``max_input_chars``."""
        truncated = (text or "")[: self.max_input_chars]
        if not truncated.strip():
            raise EmptyInputError("No text provided for embedding generation")

        try:
            result = self._client.models.embed_content(
                model=self.model,
                contents=[truncated],
                config={
                    "task_type": task_type,
                    "output_dimensionality": self.dim,
                },
            )
        except Exception as exc:
            raise provider_error(exc, "generate embedding") from exc

        return self._parse_result(result)

    def embed_query(self, query: str) -> EmbeddingResult:
        """Embed a single query text for retrieval."""
        return self.embed(query, task_type="RETRIEVAL_QUERY")

    @staticmethod
    def _parse_result(result: Any) -> EmbeddingResult:
        embeddings = getattr(result, "embeddings", None)
        if not embeddings:
            raise ProviderUnavailableError("No embedding returned from AI service")

        first = embeddings[0]
        values = getattr(first, "values", None)
        if not values:
            raise ProviderUnavailableError("No embedding returned from AI service")
        try:
            vector = [float(v) for v in values]
        except (TypeError, ValueError) as exc:
            raise ProviderUnavailableError(
                f"Malformed embedding returned from AI service: {exc}"
            ) from exc

        tokens = 0
        statistics = getattr(first, "statistics", None)
        token_count = getattr(statistics, "token_count", None)
        if token_count is not None:
            tokens = int(token_count)
        return EmbeddingResult(vector=vector, tokens=tokens)
