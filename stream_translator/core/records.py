"""Record schemas and immutable record dataclasses.

WHY: The generation service streams bare field values separated by a
sentinel, with no keys. The only thing tying a value to a meaning is its
position in the cycle. The schemas here are that contract: an ordered,
fixed-length list of fields per record kind, plus the frozen dataclasses
that consumers receive.

HOW: A RecordSchema is a tuple of FieldSpec entries and a factory that
builds a frozen record from a {name: value} mapping. Two record kinds
exist:
  TranslationOption — 7 fields, one per option in a multi-option reply
  PhraseExplanation — 8 fields, the detailed single-record explanation

RULES:
- Field order is the contract; names never drive assignment
- Field 0 is always the numeric "num" field (kind "int")
- recommended_voice is kind "voice": documented as one of config.VOICES,
  but out-of-enumeration strings are stored as-is
- Records are frozen; "sequence" is the 0-based cycle number
- Labels are the upper-case names the model sometimes echoes back
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Callable, Dict, Tuple

from stream_translator.config import resolve_voice

SENTINEL = "||||"
"""Literal terminator written after every field value on the wire."""


@dataclass(frozen=True)
class FieldSpec:
    """One positional field of a record schema.

    RULES:
    - name: attribute name on the record dataclass
    - label: upper-case label the model may echo ("FREQUENCY_RATING")
    - kind: "int", "text", or "voice"
    """

    name: str
    label: str
    kind: str = "text"

    @property
    def default(self) -> Any:
        return 0 if self.kind == "int" else ""


@dataclass(frozen=True)
class TranslationOption:
    """One translation option from a multi-option reply.

    WHY: Learners are shown several ways to say the same thing, each with
    how common it is, how to pronounce it, and a voice to hear it in.

    RULES:
    - num: the option number the model assigned (0 if malformed)
    - recommended_voice may be outside VOICES; use voice_or_default()
    """

    num: int = 0
    translation: str = ""
    frequency_rating: str = ""
    frequency_rating_localized: str = ""
    transliteration: str = ""
    explanation: str = ""
    recommended_voice: str = ""
    sequence: int = 0

    def voice_or_default(self) -> str:
        return resolve_voice(self.recommended_voice)

    def to_dict(self) -> Dict[str, Any]:
        return _record_to_dict(self)


@dataclass(frozen=True)
class PhraseExplanation:
    """Detailed explanation of a single chosen translation.

    WHY: After picking an option, the learner asks for a deeper dive,
    including whether the phrase is an idiom.

    RULES:
    - Same fields as TranslationOption plus idiom_detected after translation
    - idiom_detected is free text ("yes"/"no" in practice); see is_idiom
    """

    num: int = 0
    translation: str = ""
    idiom_detected: str = ""
    frequency_rating: str = ""
    frequency_rating_localized: str = ""
    transliteration: str = ""
    explanation: str = ""
    recommended_voice: str = ""
    sequence: int = 0

    @property
    def is_idiom(self) -> bool:
        return self.idiom_detected.strip().lower() in ("yes", "true", "y")

    def voice_or_default(self) -> str:
        return resolve_voice(self.recommended_voice)

    def to_dict(self) -> Dict[str, Any]:
        return _record_to_dict(self)


def _record_to_dict(record: Any) -> Dict[str, Any]:
    return {f.name: getattr(record, f.name) for f in fields(record)}


@dataclass(frozen=True)
class RecordSchema:
    """An ordered field layout and the record type it builds.

    WHY: Both record kinds share the same decoding mechanics. Keeping the
    layout as data lets the scanner, the assembler, the prompt builder,
    and the JSON formatter all agree on one definition.

    HOW: build() fills missing fields with their defaults and passes the
    cycle number through as "sequence".

    RULES:
    - size is the cycle length N
    - labels() is used by the scanner to drop echoed labels
    """

    name: str
    fields: Tuple[FieldSpec, ...]
    record_type: Callable[..., Any]

    @property
    def size(self) -> int:
        return len(self.fields)

    def labels(self) -> Tuple[str, ...]:
        return tuple(f.label for f in self.fields)

    def empty_values(self) -> Dict[str, Any]:
        return {f.name: f.default for f in self.fields}

    def build(self, values: Dict[str, Any], sequence: int = 0) -> Any:
        merged = self.empty_values()
        merged.update(values)
        return self.record_type(sequence=sequence, **merged)


OPTION_SCHEMA = RecordSchema(
    name="translation_option",
    fields=(
        FieldSpec("num", "NUMBER", "int"),
        FieldSpec("translation", "TRANSLATION"),
        FieldSpec("frequency_rating", "FREQUENCY_RATING"),
        FieldSpec("frequency_rating_localized", "FREQUENCY_RATING_LOCALIZED"),
        FieldSpec("transliteration", "TRANSLITERATION"),
        FieldSpec("explanation", "EXPLANATION"),
        FieldSpec("recommended_voice", "RECOMMENDED_VOICE", "voice"),
    ),
    record_type=TranslationOption,
)

EXPLANATION_SCHEMA = RecordSchema(
    name="phrase_explanation",
    fields=(
        FieldSpec("num", "NUMBER", "int"),
        FieldSpec("translation", "TRANSLATION"),
        FieldSpec("idiom_detected", "IDIOM_DETECTED"),
        FieldSpec("frequency_rating", "FREQUENCY_RATING"),
        FieldSpec("frequency_rating_localized", "FREQUENCY_RATING_LOCALIZED"),
        FieldSpec("transliteration", "TRANSLITERATION"),
        FieldSpec("explanation", "EXPLANATION"),
        FieldSpec("recommended_voice", "RECOMMENDED_VOICE", "voice"),
    ),
    record_type=PhraseExplanation,
)
