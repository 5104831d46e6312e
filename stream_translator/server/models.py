"""Pydantic request/response models for the HTTP API.

WHY: The FastAPI endpoints need typed schemas for request validation,
response serialization, and automatic OpenAPI documentation. Pydantic
models enforce field types at runtime and generate JSON Schema that
appears in the /docs UI.

HOW: Each endpoint pair (request + response) has its own model. Record
payloads mirror the frozen record dataclasses field for field.

RULES:
- All models use Field(description=...) for OpenAPI documentation
- Record models match core.records field names exactly
- Response models never expose internal objects (decoders, locks)
- SessionStatus is imported from server.sessions (single source of truth)
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from stream_translator.config import (
    DEFAULT_NATIVE_LANGUAGE,
    DEFAULT_OPTION_COUNT,
    DEFAULT_TARGET_LANGUAGE,
)


# ---------------------------------------------------------------------------
# Record models
# ---------------------------------------------------------------------------


class OptionModel(BaseModel):
    """One translation option, as decoded from the stream."""

    num: int = Field(description="Option number assigned by the model (0 if malformed).")
    translation: str = Field(description="The translated phrase.")
    frequency_rating: str = Field(description="How common the phrasing is.")
    frequency_rating_localized: str = Field(
        description="The frequency rating in the learner's native language."
    )
    transliteration: str = Field(description="Romanized pronunciation guide.")
    explanation: str = Field(description="Nuance and usage notes.")
    recommended_voice: str = Field(
        description=(
            "Suggested speech voice. Usually one of alloy, echo, fable, onyx, "
            "nova, shimmer, but not validated."
        )
    )
    sequence: int = Field(description="0-based position of the option in the stream.")


class ExplanationModel(OptionModel):
    """A detailed explanation snapshot (may be partially filled)."""

    idiom_detected: str = Field(description="Whether the original phrase is an idiom.")


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class TranslationRequest(BaseModel):
    """Body for POST /translations."""

    text: str = Field(min_length=1, description="The phrase to translate.")
    target_language: str = Field(
        default=DEFAULT_TARGET_LANGUAGE,
        description="ISO 639-1 code of the language being learned.",
    )
    native_language: str = Field(
        default=DEFAULT_NATIVE_LANGUAGE,
        description="ISO 639-1 code of the learner's own language.",
    )
    option_count: int = Field(
        default=DEFAULT_OPTION_COUNT,
        ge=1,
        le=10,
        description="How many alternative translations to request.",
    )
    situation: Optional[str] = Field(
        default=None,
        description="Optional note on who is speaking to whom, and where.",
    )


class ExplanationRequest(BaseModel):
    """Body for POST /explanations."""

    text: str = Field(min_length=1, description="The learner's original phrase.")
    translation: str = Field(min_length=1, description="The chosen translation to explain.")
    target_language: str = Field(
        default=DEFAULT_TARGET_LANGUAGE,
        description="ISO 639-1 code of the language being learned.",
    )
    native_language: str = Field(
        default=DEFAULT_NATIVE_LANGUAGE,
        description="ISO 639-1 code of the learner's own language.",
    )
    situation: Optional[str] = Field(default=None, description="Optional usage context.")


class SpeechRequest(BaseModel):
    """Body for POST /speech."""

    text: str = Field(min_length=1, description="Text to read aloud.")
    voice: Optional[str] = Field(
        default=None,
        description="Voice name. Unknown or missing voices fall back to the default.",
    )
    response_format: str = Field(default="mp3", description="Audio container format.")


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class SessionCreatedResponse(BaseModel):
    """Response for POST /translations."""

    id: str = Field(description="Session ID for polling and streaming.")
    status: str = Field(description="Initial session status (always 'pending').")


class SessionResponse(BaseModel):
    """Response for GET /translations/{id}."""

    id: str = Field(description="Session ID.")
    status: str = Field(description="pending, streaming, completed, or failed.")
    text: str = Field(description="The phrase being translated.")
    created_at: float = Field(description="Epoch seconds when the session was created.")
    error: Optional[str] = Field(default=None, description="Error message if failed.")
    raw_text: str = Field(description="Unmodified generated text received so far.")
    fragment_count: int = Field(description="Number of raw fragments received so far.")
    total: int = Field(description="Number of options decoded so far.")
    start: int = Field(description="Index of the first option in this response.")
    options: List[OptionModel] = Field(description="Decoded options from index start.")


class NextOptionResponse(BaseModel):
    """Response for GET /translations/{id}/next."""

    done: bool = Field(description="True once the stream has completed.")
    timed_out: bool = Field(default=False, description="True if no option arrived in time.")
    option: Optional[OptionModel] = Field(default=None, description="The next option.")


class FormatInfo(BaseModel):
    """One registered output format."""

    key: str = Field(description="Format identifier.")
    name: str = Field(description="Human-readable name.")
    suffix: str = Field(description="File suffix of the output.")


class ErrorResponse(BaseModel):
    """Consistent error body."""

    detail: str = Field(description="Human-readable error message.")


class HealthResponse(BaseModel):
    """Liveness check response."""

    status: str = Field(description="Always 'ok' when the service is up.")
    version: str = Field(description="Package version.")
