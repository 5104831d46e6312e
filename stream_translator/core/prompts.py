"""Prompt assembly for translation options and phrase explanations.

WHY: The decoder only works if the model writes exactly the fields of a
record schema, in order, each followed by the sentinel. The prompts are
where that wire format is requested, so they are generated from the same
RecordSchema the decoder uses rather than written out by hand.

HOW: build_options_messages() and build_explanation_messages() return
chat message lists (system + user). The system message describes the
field order and the "value||||" framing; the user message carries the
phrase, the languages, and an optional situation note. Input size is
validated before any API call.

RULES:
- Field order in the prompt comes from the schema (never hand-listed)
- Every value is followed by "||||" and a newline, no labels
- Empty input raises ValueError
- Input plus situation over MAX_INPUT_CHARS raises PromptTooLargeError
- All functions are pure (no I/O)
"""

from __future__ import annotations

from typing import List, Optional

from stream_translator.api.models import ChatMessage
from stream_translator.config import VOICES, language_name
from stream_translator.core.records import (
    EXPLANATION_SCHEMA,
    OPTION_SCHEMA,
    SENTINEL,
    RecordSchema,
)

# Maximum characters of user-supplied text (phrase + situation).
MAX_INPUT_CHARS = 2_000

_FIELD_INSTRUCTIONS = {
    "num": "the option number, digits only",
    "translation": "the phrase in {target}, in its native script",
    "idiom_detected": "\"yes\" if the original phrase is an idiom, otherwise \"no\"",
    "frequency_rating": "how common the phrasing is: very common, common, uncommon, or rare",
    "frequency_rating_localized": "the same frequency rating, written in {native}",
    "transliteration": "a romanized pronunciation guide for the translation",
    "explanation": "a short explanation in {native} of nuance, register, and when to use it",
    "recommended_voice": "the best voice to read it aloud, one of: " + ", ".join(VOICES),
}


class PromptTooLargeError(ValueError):
    """Raised when the user-supplied text exceeds the prompt size limit.

    WHY: Long inputs are almost always pasted by mistake and waste a paid
    request. Failing before the call gives a clear, immediate error.

    RULES:
    - Message includes the actual size and the limit
    - Raised before any API call is made
    """


def _validate_input(text: str, situation: Optional[str]) -> str:
    text = text.strip()
    if not text:
        raise ValueError("Nothing to translate: the input text is empty.")
    total_chars = len(text) + len(situation or "")
    if total_chars > MAX_INPUT_CHARS:
        raise PromptTooLargeError(
            f"Input size ({total_chars:,} characters) exceeds the limit of "
            f"{MAX_INPUT_CHARS:,} characters. Shorten the phrase or situation."
        )
    return text


def describe_format(schema: RecordSchema, target: str, native: str) -> str:
    """Describe the sentinel wire format for one record of the schema.

    WHY: The same format description is used by both prompts and must
    always match the decoder's field order.

    HOW: One numbered line per field, then the framing rules.
    """
    lines = []
    for position, spec in enumerate(schema.fields, start=1):
        instruction = _FIELD_INSTRUCTIONS[spec.name].format(target=target, native=native)
        lines.append(f"{position}. {instruction}")
    lines.append("")
    lines.append(
        f"Write each value followed immediately by {SENTINEL} and a newline. "
        f"Never write field names or labels, never use {SENTINEL} inside a "
        "value, and write nothing before the first value or after the last."
    )
    return "\n".join(lines)


def build_options_messages(
    text: str,
    target_language: str,
    native_language: str,
    option_count: int = 3,
    situation: Optional[str] = None,
) -> List[ChatMessage]:
    """Build the chat messages requesting several translation options.

    Args:
        text: The phrase to translate.
        target_language: ISO 639-1 code of the language being learned.
        native_language: ISO 639-1 code of the learner's language.
        option_count: How many alternative translations to ask for.
        situation: Optional note about who is speaking to whom, and where.

    Returns:
        [system, user] ChatMessage list.
    """
    if option_count < 1:
        raise ValueError("option_count must be at least 1")
    text = _validate_input(text, situation)
    target = language_name(target_language)
    native = language_name(native_language)

    system = (
        f"You are a {target} language tutor for a {native} speaker. "
        f"Give {option_count} different natural ways to say the learner's "
        f"phrase in {target}, from most to least common. For each option, "
        f"write these {OPTION_SCHEMA.size} values in this exact order:\n\n"
        + describe_format(OPTION_SCHEMA, target, native)
        + "\n\nRepeat the sequence once per option, numbering options from 1."
    )
    user = f"Phrase: {text}"
    if situation:
        user += f"\nSituation: {situation.strip()}"

    return [ChatMessage(role="system", content=system), ChatMessage(role="user", content=user)]


def build_explanation_messages(
    text: str,
    translation: str,
    target_language: str,
    native_language: str,
    situation: Optional[str] = None,
) -> List[ChatMessage]:
    """Build the chat messages requesting a detailed single-record explanation.

    Args:
        text: The learner's original phrase.
        translation: The chosen translation to explain.
        target_language: ISO 639-1 code of the language being learned.
        native_language: ISO 639-1 code of the learner's language.
        situation: Optional note about the context of use.

    Returns:
        [system, user] ChatMessage list.
    """
    text = _validate_input(text, situation)
    translation = translation.strip()
    if not translation:
        raise ValueError("Nothing to explain: the translation is empty.")
    target = language_name(target_language)
    native = language_name(native_language)

    system = (
        f"You are a {target} language tutor for a {native} speaker. "
        f"Explain the given {target} translation of the learner's phrase in "
        f"depth. Write exactly these {EXPLANATION_SCHEMA.size} values, once, "
        "in this exact order:\n\n"
        + describe_format(EXPLANATION_SCHEMA, target, native)
        + "\n\nUse 1 as the option number."
    )
    user = f"Phrase: {text}\nTranslation: {translation}"
    if situation:
        user += f"\nSituation: {situation.strip()}"

    return [ChatMessage(role="system", content=system), ChatMessage(role="user", content=user)]
