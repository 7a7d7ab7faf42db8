"""
Summaries and title suggestions for notes via Google GenAI.

The model is asked for JSON matching a pydantic schema. Replies that do not
validate fall back to a low-confidence result instead of failing the request.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any

from google.genai import Client as GenAIClient
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .embeddings import provider_error
from .errors import ContentTooShortError, ProviderUnavailableError
from .extraction import extract_text


logger = logging.getLogger(__name__)

_DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_MIN_SUMMARY_CHARS = 50
DEFAULT_MIN_TITLE_CHARS = 20
TITLE_INPUT_CHARS = 500
UNTITLED = "Untitled Note"
SUMMARY_UNAVAILABLE = "Summary not available"

SUMMARY_SYSTEM_PROMPT = (
    "You are an expert at analyzing and summarizing text content. "
    "Always respond with valid JSON."
)
TITLE_SYSTEM_PROMPT = (
    "You are an expert at creating compelling, concise titles for notes and "
    "articles. Always respond with valid JSON."
)

_SUMMARY_FIELD = re.compile(r'"summary":\s*"([^"]+)"')


class SummaryPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    summary: str | None = None
    key_points: list[str] = Field(default_factory=list, alias="keyPoints")
    confidence: float | None = None


class TitlePayload(BaseModel):
    suggestions: list[str] = Field(default_factory=list)
    recommended: str | None = None
    confidence: float | None = None


@dataclass(frozen=True)
class SummaryResult:
    summary: str
    key_points: list[str] = field(default_factory=list)
    confidence: float = 0.5


@dataclass(frozen=True)
class TitleSuggestions:
    suggestions: list[str]
    recommended: str
    confidence: float = 0.5


def _summary_prompt(text: str, title: str | None) -> str:
    title_line = f"Title: {title}\n" if title else ""
    return (
        "Please analyze the following note content and provide:\n"
        "1. A concise summary (2-3 sentences)\n"
        "2. Key points (3-5 bullet points)\n"
        "3. Your confidence level (0-1)\n\n"
        f"{title_line}Content: {text}\n\n"
        'Respond with JSON containing "summary", "keyPoints" and "confidence".'
    )


def _title_prompt(text: str) -> str:
    return (
        "Based on the following note content, suggest 3-5 potential titles "
        "that are:\n"
        "- Concise (under 60 characters)\n"
        "- Descriptive of the main topic\n"
        "- Engaging and clear\n\n"
        f"Content: {text}\n\n"
        'Respond with JSON containing "suggestions", "recommended" and '
        '"confidence".'
    )


def parse_summary(raw: str) -> SummaryResult:
    """Turn a model reply into a summary, salvaging what it can from bad JSON."""
    try:
        payload = SummaryPayload.model_validate_json(raw)
    except ValidationError:
        match = _SUMMARY_FIELD.search(raw)
        return SummaryResult(
            summary=match.group(1) if match else SUMMARY_UNAVAILABLE,
            key_points=["Summary generated but details unavailable"],
            confidence=0.3,
        )
    return SummaryResult(
        summary=payload.summary or SUMMARY_UNAVAILABLE,
        key_points=list(payload.key_points),
        confidence=payload.confidence or 0.5,
    )


def parse_titles(raw: str) -> TitleSuggestions:
    """Turn a model reply into title suggestions; bad JSON yields a placeholder."""
    try:
        payload = TitlePayload.model_validate_json(raw)
    except ValidationError:
        return TitleSuggestions(suggestions=[UNTITLED], recommended=UNTITLED, confidence=0.1)
    suggestions = [s for s in payload.suggestions if s] or [UNTITLED]
    return TitleSuggestions(
        suggestions=suggestions,
        recommended=payload.recommended or suggestions[0],
        confidence=payload.confidence or 0.5,
    )


class TextGenerator:
    """Generate note summaries and titles with a Gemini model."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        min_summary_chars: int = DEFAULT_MIN_SUMMARY_CHARS,
        min_title_chars: int = DEFAULT_MIN_TITLE_CHARS,
        client: Any | None = None,
    ) -> None:
        self.model = model or os.getenv("SEMANTIC_NOTES_GENERATION_MODEL", _DEFAULT_MODEL)
        self.min_summary_chars = min_summary_chars
        self.min_title_chars = min_title_chars

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

    def summarize(self, content: Any, title: str | None = None) -> SummaryResult:
        """Summarize note content; requires ``min_summary_chars`` of text."""
        text = extract_text(content)
        if len(text) < self.min_summary_chars:
            raise ContentTooShortError(len(text), self.min_summary_chars, "summarization")
        raw = self._generate(
            _summary_prompt(text, title),
            system_prompt=SUMMARY_SYSTEM_PROMPT,
            schema=SummaryPayload,
            temperature=0.3,
            action="generate summary",
        )
        return parse_summary(raw)

    def suggest_titles(self, content: Any) -> TitleSuggestions:
        """Suggest titles from the first ``TITLE_INPUT_CHARS`` characters of text."""
        text = extract_text(content)
        if len(text) < self.min_title_chars:
            raise ContentTooShortError(len(text), self.min_title_chars, "title generation")
        raw = self._generate(
            _title_prompt(text[:TITLE_INPUT_CHARS]),
            system_prompt=TITLE_SYSTEM_PROMPT,
            schema=TitlePayload,
            temperature=0.5,
            action="generate title suggestions",
        )
        return parse_titles(raw)

    def _generate(
        self,
        prompt: str,
        *,
        system_prompt: str,
        schema: type[BaseModel],
        temperature: float,
        action: str,
    ) -> str:
        try:
            response = self._client.models.generate_content(
                model=self.model,
                contents=prompt,
                config={
                    "system_instruction": system_prompt,
                    "temperature": temperature,
                    "response_mime_type": "application/json",
                    "response_json_schema": schema.model_json_schema(by_alias=True),
                },
            )
        except Exception as exc:
            raise provider_error(exc, action) from exc

        text = getattr(response, "text", None)
        if not text:
            raise ProviderUnavailableError("No response from AI service")
        return text
