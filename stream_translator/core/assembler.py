"""Cyclic record assembly and single-shot blob parsing.

WHY: The scanner yields an unbounded, flat sequence of bare values. The
only structure is positional: value k belongs to field k mod N of record
k div N. This module turns that flat sequence back into records, either
as a growing list (one record per cycle) or as one record that keeps
being updated.

HOW: CyclicRecordAssembler keeps an explicit global value_index. Each
push() coerces the value for its field kind and writes it into the
in-progress values. In list mode the value filling the last field seals
the record (a frozen dataclass) and resets for the next cycle. In single
mode every push returns a fresh frozen snapshot of the one record.
parse_blob() applies the same position mapping to one complete response.

RULES:
- Destination field = value_index mod schema.size
- A "LABEL:" prefix naming the destination field is stripped before coercion
- "int" fields take the leading integer of the value, else 0 (never raises)
- "text" fields store the value verbatim
- "voice" fields store the value verbatim even outside config.VOICES
- List mode: push returns the sealed record or None
- Single mode: push always returns a snapshot; values are never reset
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional

from stream_translator.config import VOICES
from stream_translator.core.records import SENTINEL, FieldSpec, RecordSchema
from stream_translator.core.scanner import normalize_label, strip_label

logger = logging.getLogger(__name__)

_LEADING_INT_RE = re.compile(r"^\s*[#(]?\s*(-?\d+)")


def coerce_value(spec: FieldSpec, value: str) -> Any:
    """Convert a raw value for the field it is destined for.

    WHY: The numbering field is an int on the record, but models write
    "1.", "#2", or occasionally nothing numeric at all. A bad number must
    not abort the stream.

    RULES:
    - "int": leading integer ("3.", "#3", "(3)" → 3), otherwise 0
    - "voice": stored as-is; unknown voices are logged at DEBUG
    - "text": stored as-is
    """
    if spec.kind == "int":
        match = _LEADING_INT_RE.match(value)
        if match is None:
            logger.debug("Non-numeric value %r for %s, using 0", value, spec.name)
            return 0
        return int(match.group(1))
    if spec.kind == "voice" and value.lower() not in VOICES:
        logger.debug("Unrecognized voice %r stored as-is", value)
    return value


class CyclicRecordAssembler:
    """Maps a flat value sequence onto fixed-width records.

    WHY: Field order is the only contract with the model. Keeping the
    position as an explicit counter (rather than walking an object's
    attributes) makes the mapping a pure function of how many values have
    been seen.

    HOW: value_index counts every accepted value since creation. The
    in-progress values live in a plain dict; records handed out are
    always built fresh from it, so callers never see torn state.

    RULES:
    - sealing=True (list mode): seal on the last field, then reset
    - sealing=False (single mode): never reset, snapshot on every push
    - sequence on a record is the cycle number (value_index div N)
    """

    def __init__(self, schema: RecordSchema, sealing: bool = True) -> None:
        self.schema = schema
        self.sealing = sealing
        self.value_index = 0
        self._values: Dict[str, Any] = schema.empty_values()
        self._cycle = 0

    @property
    def position(self) -> int:
        """Field position the next value will be written to."""
        return self.value_index % self.schema.size

    @property
    def is_open(self) -> bool:
        """True when the current cycle has at least one field written."""
        return self.position != 0

    def push(self, value: str) -> Optional[Any]:
        """Write one value into the field at the current cyclic position.

        Args:
            value: A cleaned candidate value from the scanner.

        Returns:
            List mode: the sealed record when this value completed a cycle,
            otherwise None. Single mode: a snapshot of the record.
        """
        position = self.position
        spec = self.schema.fields[position]
        self._values[spec.name] = coerce_value(spec, strip_label(value, spec.label))
        self.value_index += 1

        completed_cycle = position == self.schema.size - 1

        if not self.sealing:
            record = self.snapshot()
            if completed_cycle:
                self._cycle += 1
            return record

        if not completed_cycle:
            return None

        record = self.snapshot()
        self._values = self.schema.empty_values()
        self._cycle += 1
        return record

    def snapshot(self) -> Any:
        """Build an immutable record from the current in-progress values."""
        return self.schema.build(self._values, sequence=self._cycle)


def parse_blob(text: str, schema: RecordSchema) -> Any:
    """Parse one complete, non-streamed response into a single record.

    WHY: Some callers ask for the whole response at once instead of
    streaming it. The wire format is the same, so the field mapping must
    be too.

    HOW: Splits on the sentinel, takes the first N segments, strips an
    echoed label from each, and coerces each into its field by position.

    RULES:
    - Segment i → field i, for i < N
    - Segments beyond N are ignored (including the empty tail after the
      last sentinel)
    - Missing segments leave their fields at defaults
    - A segment that is only a label (any field's) becomes an empty value
    - A "LABEL:" prefix is stripped only when it names segment i's field
    """
    labels = frozenset(normalize_label(label) for label in schema.labels())
    values: Dict[str, Any] = {}
    for spec, segment in zip(schema.fields, text.split(SENTINEL)):
        segment = segment.strip()
        if normalize_label(segment) in labels:
            segment = ""
        values[spec.name] = coerce_value(spec, strip_label(segment, spec.label))
    return schema.build(values)
