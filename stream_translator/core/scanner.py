"""Sentinel scanning over an accumulating text buffer.

WHY: The generation service streams text in arbitrary fragments. A
fragment can end halfway through a value, or halfway through the
"||||" terminator itself. Field values can only be cut out once their
terminator has fully arrived, so the scanner keeps everything it has
not yet resolved and rescans it as more text comes in.

HOW: Each feed() appends the fragment to the buffer, then walks the
buffer with a non-greedy "(.*?)||||" pattern. Every captured span is
trimmed and becomes a candidate value. The buffer is cut down to the
text after the last consumed sentinel. flush() salvages whatever is left
when the stream ends without a final sentinel.

RULES:
- The buffer always holds exactly the unresolved suffix of the input
- No match → buffer untouched, no values
- A candidate equal to a schema label ("TRANSLATION", "Frequency rating:")
  is discarded, never returned
- A "LABEL:" prefix is left for the assembler, which knows the
  destination field (see strip_label)
- flush() strips trailing pipes/whitespace, clears the buffer, and
  returns at most one value; a second flush() returns None
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional

from stream_translator.core.records import SENTINEL

logger = logging.getLogger(__name__)

# "LABEL: value" with a label made of letters, spaces, and underscores.
_LABEL_PREFIX_RE = re.compile(r"^([A-Za-z][A-Za-z _]*?)\s*:\s*(.*)$", re.DOTALL)


def normalize_label(text: str) -> str:
    """Fold a label or candidate for label comparison.

    RULES:
    - Case-insensitive
    - Underscores and runs of whitespace compare equal to one space
    - A trailing colon is ignored
    """
    text = text.strip().rstrip(":").strip()
    return re.sub(r"[\s_]+", " ", text).casefold()


def strip_label(value: str, label: str) -> str:
    """Remove an echoed "LABEL:" prefix naming the field the value belongs to.

    WHY: Despite format instructions, models sometimes write
    "TRANSLATION: 안녕" instead of "안녕". The label carries no data, but
    only the destination field's own label is an echo: an explanation
    that starts with "Translation: ..." is real text.

    RULES:
    - label is the destination field's label, compared via normalize_label
    - A value that is only that label becomes ""
    - Any other prefix ("Note: ...", another field's label) is left alone
    """
    target = normalize_label(label)
    if normalize_label(value) == target:
        return ""
    match = _LABEL_PREFIX_RE.match(value)
    if match and normalize_label(match.group(1)) == target:
        return match.group(2).strip()
    return value


class SentinelScanner:
    """Extracts sentinel-terminated values from a stream of fragments.

    WHY: Fragment boundaries never line up with field boundaries. The
    scanner is the one place that knows about the wire format, so the
    assembler only ever sees whole, cleaned values.

    HOW: Keeps a single text buffer. feed() appends and scans the whole
    buffer, so a sentinel split across fragments is found once its last
    character arrives.

    RULES:
    - Values are returned in the order their sentinels appear
    - Echoed labels are dropped (logged at DEBUG, not an error)
    - The scanner owns its buffer; nothing else mutates it
    """

    def __init__(self, labels: Iterable[str] = (), sentinel: str = SENTINEL) -> None:
        self._sentinel = sentinel
        self._pattern = re.compile("(.*?)" + re.escape(sentinel), re.DOTALL)
        self._labels = frozenset(normalize_label(label) for label in labels)
        self._buffer = ""

    @property
    def buffer(self) -> str:
        """The unresolved text since the last consumed sentinel."""
        return self._buffer

    def feed(self, fragment: str) -> List[str]:
        """Append a fragment and return every value it completes.

        Args:
            fragment: Raw text exactly as received from the transport.

        Returns:
            Zero or more cleaned candidate values, in stream order.
        """
        self._buffer += fragment

        values: List[str] = []
        consumed = 0
        for match in self._pattern.finditer(self._buffer):
            consumed = match.end()
            value = self._clean(match.group(1))
            if value is not None:
                values.append(value)

        if consumed:
            self._buffer = self._buffer[consumed:]
        return values

    def flush(self) -> Optional[str]:
        """Salvage a trailing value that never got its sentinel.

        WHY: Models sometimes stop right after the last value, without the
        final "||||". That value is still useful.

        HOW: Takes the whole buffer, strips whitespace and any partial
        sentinel ("|", "||", "|||") from the end, and cleans the rest.

        RULES:
        - Always clears the buffer
        - Returns None when nothing usable is left
        """
        residue, self._buffer = self._buffer, ""
        text = residue.strip().rstrip(self._sentinel[0]).strip()
        if not text:
            return None
        logger.debug("Salvaging unterminated tail value: %r", text)
        return self._clean(text)

    def _clean(self, raw: str) -> Optional[str]:
        value = raw.strip()
        if value and normalize_label(value) in self._labels:
            logger.debug("Dropping echoed field label: %r", value)
            return None
        return value
