"""Registry of output formats for decoded records.

WHY: The --formats flag and the /formats endpoint both look formats up
by key. Keeping the table in one place means a new format only needs
its class and one entry here.

HOW: FORMATTERS maps string keys to formatter *classes* (not instances).
Callers instantiate as needed: ``formatter = FORMATTERS["json"]()``.

RULES:
- Keys are snake_case identifiers (used in CLI flags, API responses)
- Values are BaseFormatter subclasses (not instances)
- Every formatter listed here must be importable without side effects
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from stream_translator.formatters.json_records import JSONRecordsFormatter
from stream_translator.formatters.plain_text import PlainTextFormatter

if TYPE_CHECKING:
    from stream_translator.formatters.base import BaseFormatter

FORMATTERS: dict[str, type[BaseFormatter]] = {
    "plain_text": PlainTextFormatter,
    "json": JSONRecordsFormatter,
}
