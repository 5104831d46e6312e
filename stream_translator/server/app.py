"""FastAPI application exposing streamed translations over HTTP.

WHY: Web and mobile front ends need to show translation options as they
are generated, let several views follow the same translation, ask for a
detailed explanation that fills in field by field, and fetch audio for a
chosen option. FastAPI provides automatic OpenAPI documentation, request
validation, background tasks, and streaming responses.

HOW: POST /translations creates a session and decodes the model stream
in a background task. Readers then use the session's decoder three ways:
GET /translations/{id} reads the decoded options by index,
GET /translations/{id}/next long-polls the broadcast channel for the
next option, and GET /translations/{id}/stream follows every option as
NDJSON. POST /explanations streams progressive snapshots as NDJSON.
POST /speech returns synthesized audio.

RULES:
- All endpoints have OpenAPI descriptions on every response
- Error responses use a consistent ErrorResponse schema
- Prompt validation errors → 400, missing API key → 503,
  generation service errors → 502
- A failed stream marks the session failed and releases its readers
- The session store is a singleton created at import
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, List

from fastapi import BackgroundTasks, FastAPI, HTTPException, Query
from fastapi.responses import Response, StreamingResponse

from stream_translator import __version__
from stream_translator.api.client import GenerationAPIError, GenerationClient
from stream_translator.config import resolve_voice
from stream_translator.core.prompts import (
    build_explanation_messages,
    build_options_messages,
)
from stream_translator.core.records import (
    OPTION_SCHEMA,
    PhraseExplanation,
    TranslationOption,
)
from stream_translator.formatters import FORMATTERS
from stream_translator.pipeline import stream_explanation
from stream_translator.server.models import (
    ErrorResponse,
    ExplanationModel,
    ExplanationRequest,
    FormatInfo,
    HealthResponse,
    NextOptionResponse,
    OptionModel,
    SessionCreatedResponse,
    SessionResponse,
    SpeechRequest,
    TranslationRequest,
)
from stream_translator.server.sessions import SessionStatus, SessionStore

logger = logging.getLogger(__name__)

_NDJSON = "application/x-ndjson"

_AUDIO_MEDIA_TYPES = {
    "mp3": "audio/mpeg",
    "opus": "audio/ogg",
    "aac": "audio/aac",
    "flac": "audio/flac",
    "wav": "audio/wav",
    "pcm": "audio/L16",
}

# ---------------------------------------------------------------------------
# App and store setup
# ---------------------------------------------------------------------------

session_store = SessionStore()


async def _periodic_cleanup() -> None:
    """Run session cleanup every 5 minutes."""
    while True:
        await asyncio.sleep(300)
        session_store.cleanup_expired()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start periodic cleanup on startup, cancel on shutdown."""
    task = asyncio.create_task(_periodic_cleanup())
    yield
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


app = FastAPI(
    lifespan=lifespan,
    title="Stream Translator API",
    description=(
        "Streams translation options for a phrase as they are generated, "
        "with progressive explanations and text-to-speech for each option."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _option_model(record: TranslationOption) -> OptionModel:
    return OptionModel(**record.to_dict())


def _open_client() -> GenerationClient:
    """Create a client, mapping a missing API key to 503."""
    try:
        return GenerationClient()
    except ValueError as exc:
        raise HTTPException(status_code=503, detail=str(exc))


def _get_session_or_404(session_id: str):
    session = session_store.get_session(session_id)
    if session is None:
        raise HTTPException(
            status_code=404, detail="Session not found: {}".format(session_id)
        )
    return session


async def _run_translation_session(session_id: str, store: SessionStore) -> None:
    """Decode the model stream for one session.

    WHY: This is the background task that owns a session's decoder: it
    opens the stream, feeds every fragment, and records the outcome.

    HOW: Iterates decoder.decode() over the client's fragment stream,
    appending each raw fragment to the session. Stops early if the
    session is deleted mid-stream.

    RULES:
    - The decoder is the only writer of the session's options
    - On any exception: session FAILED, decoder abandoned (readers released)
    - On natural end: decoder finished by decode(), session COMPLETED
    """
    session = store.get_session(session_id)
    if session is None:
        return

    config = session.config
    decoder = session.decoder

    try:
        messages = build_options_messages(
            config["text"],
            config["target_language"],
            config["native_language"],
            config["option_count"],
            config.get("situation"),
        )
        async with GenerationClient() as client:
            store.update_session(session_id, status=SessionStatus.STREAMING)
            fragments = decoder.decode(client.stream_chat(messages))
            try:
                async for fragment in fragments:
                    if store.update_session(session_id, fragment=fragment) is None:
                        logger.info("Session %s deleted mid-stream", session_id)
                        break
            finally:
                await fragments.aclose()

        store.update_session(session_id, status=SessionStatus.COMPLETED)

    except Exception as exc:
        if store.get_session(session_id) is None:
            return
        logger.exception("Translation stream failed for session %s", session_id)
        store.update_session(session_id, status=SessionStatus.FAILED, error=str(exc))
        if not decoder.completed:
            decoder.abandon()


async def _drain(decoder: Any, fragments: AsyncIterator[str]) -> None:
    """Drive a fragment stream to the end, releasing readers if it fails."""
    try:
        async for _ in fragments:
            pass
    except Exception:
        decoder.abandon()
        raise


async def _explanation_lines(
    client: GenerationClient,
    body: ExplanationRequest,
) -> AsyncIterator[str]:
    """Yield one NDJSON line per explanation snapshot.

    RULES:
    - Each line is {"explanation": {...}, "done": false}
    - The last line is {"explanation": {...}, "done": true}
    - A stream failure after the response started is reported as a
      final {"error": "...", "done": true} line
    """
    async with client:
        decoder, fragments = stream_explanation(
            client,
            body.text,
            body.translation,
            body.target_language,
            body.native_language,
            body.situation,
        )
        driver = asyncio.create_task(_drain(decoder, fragments))

        try:
            async for snapshot in decoder.iter_snapshots():
                yield _explanation_line(snapshot, done=False)

            try:
                await driver
            except Exception as exc:
                logger.exception("Explanation stream failed")
                yield json.dumps({"error": str(exc), "done": True}) + "\n"
                return

            yield _explanation_line(decoder.current, done=True)
        finally:
            if not driver.done():
                driver.cancel()


def _explanation_line(snapshot: PhraseExplanation, done: bool) -> str:
    payload = ExplanationModel(**snapshot.to_dict()).model_dump()
    return json.dumps({"explanation": payload, "done": done}, ensure_ascii=False) + "\n"


# ---------------------------------------------------------------------------
# Endpoints: Translations
# ---------------------------------------------------------------------------


@app.post(
    "/translations",
    response_model=SessionCreatedResponse,
    status_code=201,
    tags=["translations"],
    summary="Start a streamed translation",
    description=(
        "Starts generating translation options in the background and "
        "returns a session ID immediately. Read options with "
        "GET /translations/{id}, /next, or /stream."
    ),
    responses={
        400: {"model": ErrorResponse, "description": "Invalid input"},
        429: {"model": ErrorResponse, "description": "Too many sessions"},
    },
)
async def create_translation(
    body: TranslationRequest,
    background_tasks: BackgroundTasks,
) -> SessionCreatedResponse:
    try:
        build_options_messages(
            body.text,
            body.target_language,
            body.native_language,
            body.option_count,
            body.situation,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    try:
        session = session_store.create_session(config=body.model_dump())
    except ValueError as exc:
        raise HTTPException(status_code=429, detail=str(exc))

    background_tasks.add_task(_run_translation_session, session.id, session_store)

    return SessionCreatedResponse(id=session.id, status=session.status.value)


@app.get(
    "/translations/{session_id}",
    response_model=SessionResponse,
    tags=["translations"],
    summary="Get decoded options",
    description=(
        "Returns the session status, the raw generated text, and the "
        "options decoded so far, "
        "starting at index `start`. Poll with an increasing `start` to "
        "receive only new options."
    ),
    responses={404: {"model": ErrorResponse, "description": "Session not found"}},
)
async def get_translation(
    session_id: str,
    start: int = Query(default=0, ge=0, description="Index of the first option to return."),
) -> SessionResponse:
    session = _get_session_or_404(session_id)
    decoder = session.decoder
    return SessionResponse(
        id=session.id,
        status=session.status.value,
        text=session.config.get("text", ""),
        created_at=session.created_at,
        error=session.error,
        raw_text=session.raw_text,
        fragment_count=session.fragment_count,
        total=len(decoder),
        start=start,
        options=[_option_model(r) for r in decoder.slice(start)],
    )


@app.get(
    "/translations/{session_id}/next",
    response_model=NextOptionResponse,
    tags=["translations"],
    summary="Wait for the next option",
    description=(
        "Long-polls until the next option is decoded, the stream ends, or "
        "the timeout expires. Options decoded before the call are not "
        "returned here; use GET /translations/{id} for those."
    ),
    responses={404: {"model": ErrorResponse, "description": "Session not found"}},
)
async def next_translation_option(
    session_id: str,
    timeout: float = Query(default=30.0, gt=0, le=120, description="Seconds to wait."),
) -> NextOptionResponse:
    session = _get_session_or_404(session_id)
    try:
        record = await asyncio.wait_for(session.decoder.next_update(), timeout)
    except asyncio.TimeoutError:
        return NextOptionResponse(done=False, timed_out=True)

    if record is None:
        return NextOptionResponse(done=True)
    return NextOptionResponse(done=False, option=_option_model(record))


@app.get(
    "/translations/{session_id}/stream",
    tags=["translations"],
    summary="Follow options as NDJSON",
    description=(
        "Streams every option from index `start` as one JSON object per "
        "line, ending when the translation completes or fails."
    ),
    responses={404: {"model": ErrorResponse, "description": "Session not found"}},
)
async def stream_translation(
    session_id: str,
    start: int = Query(default=0, ge=0, description="Index of the first option to stream."),
) -> StreamingResponse:
    session = _get_session_or_404(session_id)

    async def _lines() -> AsyncIterator[str]:
        async for record in session.decoder.iter_records(start):
            yield _option_model(record).model_dump_json() + "\n"

    return StreamingResponse(_lines(), media_type=_NDJSON)


@app.delete(
    "/translations/{session_id}",
    status_code=204,
    tags=["translations"],
    summary="Delete a translation session",
    description="Deletes the session and releases any readers still waiting on it.",
    responses={404: {"model": ErrorResponse, "description": "Session not found"}},
)
async def delete_translation(session_id: str) -> Response:
    if not session_store.delete_session(session_id):
        raise HTTPException(
            status_code=404, detail="Session not found: {}".format(session_id)
        )
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Endpoints: Explanations and speech
# ---------------------------------------------------------------------------


@app.post(
    "/explanations",
    tags=["explanations"],
    summary="Stream a detailed explanation",
    description=(
        "Streams the explanation of one translation as NDJSON. Every line "
        "holds the explanation as filled in so far; the last line has "
        "`done: true`."
    ),
    responses={
        400: {"model": ErrorResponse, "description": "Invalid input"},
        503: {"model": ErrorResponse, "description": "API key not configured"},
    },
)
async def create_explanation(body: ExplanationRequest) -> StreamingResponse:
    try:
        build_explanation_messages(
            body.text,
            body.translation,
            body.target_language,
            body.native_language,
            body.situation,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    client = _open_client()
    return StreamingResponse(_explanation_lines(client, body), media_type=_NDJSON)


@app.post(
    "/speech",
    tags=["speech"],
    summary="Synthesize speech",
    description="Returns audio for the text, spoken with the given (or default) voice.",
    responses={
        400: {"model": ErrorResponse, "description": "Unsupported audio format"},
        502: {"model": ErrorResponse, "description": "Generation service error"},
        503: {"model": ErrorResponse, "description": "API key not configured"},
    },
)
async def create_speech(body: SpeechRequest) -> Response:
    media_type = _AUDIO_MEDIA_TYPES.get(body.response_format)
    if media_type is None:
        raise HTTPException(
            status_code=400,
            detail="Unsupported audio format '{}'. Supported: {}".format(
                body.response_format, ", ".join(sorted(_AUDIO_MEDIA_TYPES))
            ),
        )

    client = _open_client()
    try:
        async with client:
            audio = await client.synthesize_speech(
                body.text,
                resolve_voice(body.voice),
                response_format=body.response_format,
            )
    except GenerationAPIError as exc:
        raise HTTPException(status_code=502, detail=exc.message)

    return Response(content=audio, media_type=media_type)


# ---------------------------------------------------------------------------
# Endpoints: Formats and health
# ---------------------------------------------------------------------------


@app.get(
    "/formats",
    response_model=List[FormatInfo],
    tags=["formats"],
    summary="List available output formats",
)
async def list_formats() -> List[FormatInfo]:
    result = []
    for key, formatter_cls in sorted(FORMATTERS.items()):
        formatter = formatter_cls()
        outputs = formatter.format([], OPTION_SCHEMA)
        result.append(FormatInfo(
            key=key,
            name=formatter.name,
            suffix=outputs[0].suffix if outputs else "",
        ))
    return result


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["health"],
    summary="Health check",
)
async def health_check() -> HealthResponse:
    return HealthResponse(status="ok", version=__version__)


def run_api():
    """Entry point for the stream-translator-api console script."""
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
