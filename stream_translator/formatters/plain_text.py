"""Plain text formatter with one numbered block per record.

WHY: Learners want a readable summary of the options they were given —
no JSON, just the phrases, how to say them, and what they mean. This is
the simplest output format and the one the CLI prints.

HOW: Each record becomes a block: a "N. translation (transliteration)"
header, then indented frequency, idiom (explanation records only), voice,
and explanation lines. Empty fields are left out. Blocks are separated
by a blank line.

RULES:
- Header: "{num}. {translation}" plus " ({transliteration})" if present
- Frequency line joins the rating and its localized form with " / ",
  dropping the localized form when it repeats the rating
- "Idiom:" line only for records that have idiom_detected
- No trailing whitespace on any line; content ends with one newline
- Output suffix: "-options.txt"
- Media type: "text/plain"
"""

from __future__ import annotations

from typing import Any, List, Sequence

from stream_translator.core.records import OPTION_SCHEMA, RecordSchema
from stream_translator.formatters.base import BaseFormatter, FormatterOutput


def format_record(record: Any) -> str:
    """Render one record as a plain text block (no trailing newline)."""
    header = "{}. {}".format(record.num, record.translation)
    if record.transliteration:
        header += " ({})".format(record.transliteration)
    lines = [header]

    frequency = record.frequency_rating
    localized = record.frequency_rating_localized
    if localized and localized.lower() != frequency.lower():
        frequency = "{} / {}".format(frequency, localized) if frequency else localized
    if frequency:
        lines.append("   Frequency: {}".format(frequency))

    idiom = getattr(record, "idiom_detected", "")
    if idiom:
        lines.append("   Idiom: {}".format(idiom))
    if record.recommended_voice:
        lines.append("   Voice: {}".format(record.recommended_voice))
    if record.explanation:
        lines.append("   {}".format(record.explanation))

    return "\n".join(line.rstrip() for line in lines)


class PlainTextFormatter(BaseFormatter):
    """Formatter that produces numbered, human-readable option blocks."""

    @property
    def name(self) -> str:
        return "Plain Text"

    def format(
        self,
        records: Sequence[Any],
        schema: RecordSchema = OPTION_SCHEMA,
    ) -> List[FormatterOutput]:
        blocks = [format_record(record) for record in records]
        content = "\n\n".join(blocks)
        if content:
            content += "\n"

        return [
            FormatterOutput(
                suffix="-options.txt",
                content=content,
                media_type="text/plain",
            )
        ]
