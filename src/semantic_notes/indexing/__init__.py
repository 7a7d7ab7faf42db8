"""Embedding generation for stored notes."""

from .batch import BatchReprocessor, BatchState, BatchSummary, ItemOutcome
from .notes import NoteEmbedder, build_embedding_text
from .rate_limit import (
    FixedDelayRateLimiter,
    RateLimiter,
    RateLimiterKind,
    TokenBucketRateLimiter,
    build_rate_limiter,
)

__all__ = [
    "BatchReprocessor",
    "BatchState",
    "BatchSummary",
    "ItemOutcome",
    "NoteEmbedder",
    "build_embedding_text",
    "FixedDelayRateLimiter",
    "RateLimiter",
    "RateLimiterKind",
    "TokenBucketRateLimiter",
    "build_rate_limiter",
]
