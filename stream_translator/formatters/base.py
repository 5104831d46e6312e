"""Formatter interface and the output container it returns.

WHY: Finished records are saved or served in more than one shape (plain
text for reading, JSON for other tools). This base class enforces a
consistent interface so the CLI and HTTP layers can work with any
formatter generically.

HOW: BaseFormatter is an ABC requiring a ``name`` property plus a
``format()`` method that takes records and their schema. FormatterOutput
is a plain dataclass bundling a file suffix with its content and MIME
type.

RULES:
- Subclasses MUST implement ``name`` (human-readable) and ``format()``
- ``format()`` returns a list — today every formatter returns one item
- ``suffix`` starts with a hyphen, e.g. ``"-options.json"``
- The caller is responsible for prepending the output filename stem
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Sequence

from stream_translator.core.records import OPTION_SCHEMA, RecordSchema


@dataclass
class FormatterOutput:
    """One output file produced by a formatter.

    Attributes:
        suffix: File suffix appended to the output stem,
                e.g. ``"-options.txt"`` → ``"hello-options.txt"``.
        content: The file content as a string.
        media_type: MIME type for the content, e.g. ``"application/json"``.
    """

    suffix: str
    content: str
    media_type: str


class BaseFormatter(ABC):
    """Abstract base for all record formatters.

    New formats subclass this, provide name and format(), and get a key
    in formatters.FORMATTERS so the CLI and the /formats endpoint see them.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable format name, e.g. 'Plain Text'."""

    @abstractmethod
    def format(
        self,
        records: Sequence[Any],
        schema: RecordSchema = OPTION_SCHEMA,
    ) -> list[FormatterOutput]:
        """Convert finished records into one or more output files.

        Args:
            records: Sealed TranslationOption records, or a single-item
                     list holding a PhraseExplanation.
            schema: The RecordSchema the records were decoded with.

        Returns:
            List of FormatterOutput objects.
        """
