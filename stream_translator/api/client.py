"""Async HTTP client for an OpenAI-compatible generation service.

WHY: The translator needs three things from the remote service: a
streamed chat completion (the fragment source the decoder consumes), a
one-shot chat completion (the non-streaming variant), and text-to-speech
audio for a chosen option. This module encapsulates all of it behind a
single client class so callers (CLI, HTTP service, tests) don't need to
know HTTP or server-sent-event details.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. GenerationClient is an
async context manager — enter it to get an authenticated client, exit to
close the connection pool. stream_chat() POSTs with "stream": true and
reads the server-sent events line by line, yielding only the text deltas.

RULES:
- Always use the async context manager (async with GenerationClient(...) as client:)
- Non-2xx responses raise GenerationAPIError with status and body
- Network errors (httpx.HTTPError) propagate unchanged; no retries
- stream_chat() stops at the "[DONE]" event or when the body ends
- Empty deltas are skipped; fragment boundaries are whatever the
  service sends
"""

from __future__ import annotations

import json
import logging
from typing import AsyncIterator, List, Optional

import httpx

from stream_translator.api.models import ChatCompletion, ChatCompletionChunk, ChatMessage
from stream_translator.config import (
    GENERATION_BASE_URL,
    GENERATION_MODEL,
    REQUEST_TIMEOUT_S,
    SPEECH_MODEL,
    load_api_key,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_SSE_DATA_PREFIX = "data:"
_SSE_DONE = "[DONE]"

_SPEECH_FORMATS = {"mp3", "opus", "aac", "flac", "wav", "pcm"}


class GenerationAPIError(Exception):
    """Raised when the generation service returns an error response.

    WHY: Callers need a typed exception to distinguish service errors from
    network errors or other failures.

    HOW: Wraps the HTTP status code and response body (or the error
    message of an in-stream error event).

    RULES:
    - Always include status_code and message
    - message is the response body text or a summary
    """

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"Generation API error {status_code}: {message}")


class GenerationClient:
    """Async client for chat completions and speech synthesis.

    WHY: Provides a clean, typed interface for the calls the translator
    makes, handling auth, streaming, and error wrapping.

    HOW: Wraps httpx.AsyncClient with Bearer token auth. Use as an async
    context manager to ensure the HTTP connection pool is properly closed.

    RULES:
    - Use as: async with GenerationClient() as client: ...
    - api_key defaults to load_api_key() from .env
    - base_url, model, and speech_model default to config values
    - transport is for tests (httpx.MockTransport)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        speech_model: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_key = api_key or load_api_key()
        self._base_url = (base_url or GENERATION_BASE_URL).rstrip("/")
        self._model = model or GENERATION_MODEL
        self._speech_model = speech_model or SPEECH_MODEL
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> GenerationClient:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"Authorization": f"Bearer {self._api_key}"},
            timeout=httpx.Timeout(REQUEST_TIMEOUT_S, connect=30.0),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Return the active httpx client, raising if not in context manager."""
        if self._client is None:
            raise RuntimeError(
                "GenerationClient must be used as an async context manager: "
                "async with GenerationClient() as client: ..."
            )
        return self._client

    def _chat_body(
        self,
        messages: List[ChatMessage],
        temperature: Optional[float],
        stream: bool,
    ) -> dict:
        body: dict = {
            "model": self._model,
            "messages": [m.to_dict() for m in messages],
            "stream": stream,
        }
        if temperature is not None:
            body["temperature"] = temperature
        return body

    # ------------------------------------------------------------------
    # Streamed chat completion
    # ------------------------------------------------------------------

    async def stream_chat(
        self,
        messages: List[ChatMessage],
        temperature: Optional[float] = None,
    ) -> AsyncIterator[str]:
        """Stream a chat completion and yield its text fragments.

        WHY: The decoder consumes text as it is generated so the first
        translation option can be shown long before the last one exists.

        HOW: Opens a streaming POST to /chat/completions and parses each
        "data:" line of the event stream as a ChatCompletionChunk. Lines
        that are not data (comments, keep-alives, blank separators) are
        skipped.

        RULES:
        - Yields only non-empty content deltas, unmodified
        - "[DONE]" ends the iteration
        - An in-stream {"error": ...} event raises GenerationAPIError(502)
        - A non-JSON data line raises GenerationAPIError(502)
        - Non-2xx responses raise GenerationAPIError before any yield

        Args:
            messages: The chat messages (usually from core.prompts).
            temperature: Optional sampling temperature.

        Yields:
            Text fragments with arbitrary boundaries.
        """
        client = self._ensure_client()
        body = self._chat_body(messages, temperature, stream=True)

        async with client.stream("POST", "/chat/completions", json=body) as resp:
            if resp.status_code != 200:
                await resp.aread()
                raise GenerationAPIError(resp.status_code, resp.text)

            async for line in resp.aiter_lines():
                line = line.strip()
                if not line.startswith(_SSE_DATA_PREFIX):
                    continue
                data = line[len(_SSE_DATA_PREFIX):].strip()
                if data == _SSE_DONE:
                    return

                payload = _parse_event(data)
                chunk = ChatCompletionChunk.from_dict(payload)
                if chunk.content:
                    yield chunk.content
                if chunk.finish_reason:
                    logger.debug("Stream finished: %s", chunk.finish_reason)

    # ------------------------------------------------------------------
    # One-shot chat completion
    # ------------------------------------------------------------------

    async def complete_chat(
        self,
        messages: List[ChatMessage],
        temperature: Optional[float] = None,
    ) -> str:
        """Request a chat completion and return the full response text.

        RULES:
        - Raises GenerationAPIError on non-2xx responses
        - Returns "" when the response has no message content
        """
        client = self._ensure_client()
        body = self._chat_body(messages, temperature, stream=False)

        resp = await client.post("/chat/completions", json=body)
        if resp.status_code != 200:
            raise GenerationAPIError(resp.status_code, resp.text)

        return ChatCompletion.from_dict(resp.json()).content

    # ------------------------------------------------------------------
    # Speech synthesis
    # ------------------------------------------------------------------

    async def synthesize_speech(
        self,
        text: str,
        voice: str,
        response_format: str = "mp3",
    ) -> bytes:
        """Synthesize speech for text with the given voice.

        WHY: Learners hear each option read aloud in the voice the model
        recommended for it.

        HOW: POSTs to /audio/speech and returns the raw audio body.

        RULES:
        - response_format must be one of mp3, opus, aac, flac, wav, pcm
        - Raises ValueError for empty text or an unknown format
        - Raises GenerationAPIError on non-2xx responses
        """
        if not text.strip():
            raise ValueError("Cannot synthesize speech for empty text.")
        if response_format not in _SPEECH_FORMATS:
            raise ValueError(
                "Unsupported audio format '{}'. Supported: {}".format(
                    response_format, ", ".join(sorted(_SPEECH_FORMATS))
                )
            )

        client = self._ensure_client()
        resp = await client.post(
            "/audio/speech",
            json={
                "model": self._speech_model,
                "input": text,
                "voice": voice,
                "response_format": response_format,
            },
        )
        if resp.status_code != 200:
            raise GenerationAPIError(resp.status_code, resp.text)
        return resp.content


def _parse_event(data: str) -> dict:
    """Decode one event payload, surfacing in-stream errors.

    RULES:
    - Invalid JSON → GenerationAPIError(502)
    - {"error": {"message": ...}} → GenerationAPIError(502, message)
    """
    try:
        payload = json.loads(data)
    except json.JSONDecodeError as exc:
        raise GenerationAPIError(502, f"Malformed stream event: {exc.msg}") from exc

    error = payload.get("error") if isinstance(payload, dict) else None
    if error:
        message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
        raise GenerationAPIError(502, message)
    if not isinstance(payload, dict):
        raise GenerationAPIError(502, "Malformed stream event: not an object")
    return payload
