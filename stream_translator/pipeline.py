"""High-level translation workflows shared by the CLI and the HTTP service.

WHY: Both front ends do the same thing: build a prompt, open a stream,
and hand the fragments to a decoder. Keeping the wiring here means the
CLI and the service can't drift apart on how a request is made.

HOW: stream_options() and stream_explanation() return the decoder plus
the raw fragment iterator produced by decoder.decode(). The caller
drives that iterator (displaying or discarding the raw text) while
any number of readers consume records from the decoder. explain_once()
is the non-streaming variant. speak_option() turns a record into audio.

RULES:
- Nothing runs until the caller iterates the returned fragment stream
- Prompt validation errors are raised immediately, before any request
- The voice for speech is the record's recommended voice when it is one
  of config.VOICES, else config.DEFAULT_VOICE
"""

from __future__ import annotations

from typing import Any, AsyncIterator, Optional, Tuple

from stream_translator.api.client import GenerationClient
from stream_translator.core.assembler import parse_blob
from stream_translator.core.decoder import ExplanationStreamDecoder, OptionStreamDecoder
from stream_translator.core.prompts import (
    build_explanation_messages,
    build_options_messages,
)
from stream_translator.core.records import EXPLANATION_SCHEMA, PhraseExplanation


def stream_options(
    client: GenerationClient,
    text: str,
    target_language: str,
    native_language: str,
    option_count: int = 3,
    situation: Optional[str] = None,
) -> Tuple[OptionStreamDecoder, AsyncIterator[str]]:
    """Start a multi-option translation stream.

    Returns:
        (decoder, raw_fragments). Iterate raw_fragments to completion to
        drive decoding; read options from the decoder.
    """
    messages = build_options_messages(
        text, target_language, native_language, option_count, situation
    )
    decoder = OptionStreamDecoder()
    return decoder, decoder.decode(client.stream_chat(messages))


def stream_explanation(
    client: GenerationClient,
    text: str,
    translation: str,
    target_language: str,
    native_language: str,
    situation: Optional[str] = None,
) -> Tuple[ExplanationStreamDecoder, AsyncIterator[str]]:
    """Start a progressively-filled explanation stream.

    Returns:
        (decoder, raw_fragments), as for stream_options().
    """
    messages = build_explanation_messages(
        text, translation, target_language, native_language, situation
    )
    decoder = ExplanationStreamDecoder()
    return decoder, decoder.decode(client.stream_chat(messages))


async def explain_once(
    client: GenerationClient,
    text: str,
    translation: str,
    target_language: str,
    native_language: str,
    situation: Optional[str] = None,
) -> PhraseExplanation:
    """Request an explanation in one response and parse it in one pass."""
    messages = build_explanation_messages(
        text, translation, target_language, native_language, situation
    )
    blob = await client.complete_chat(messages)
    return parse_blob(blob, EXPLANATION_SCHEMA)


async def speak_option(
    client: GenerationClient,
    record: Any,
    response_format: str = "mp3",
) -> bytes:
    """Synthesize a record's translation in its recommended voice."""
    return await client.synthesize_speech(
        record.translation,
        record.voice_or_default(),
        response_format=response_format,
    )
