"""Stream drivers: fragments in, records and raw text out.

WHY: Callers hold an async stream of text fragments from the generation
service. They want two things from it at once: the raw text for live
display, and structured records as soon as each one is complete. The
drivers do both in a single pass, owning all the decoding state.

HOW: Each driver wires a SentinelScanner, a CyclicRecordAssembler, and
an UpdateChannel together:
  OptionStreamDecoder      — list mode, one sealed TranslationOption per
                             cycle, appended to an output list
  ExplanationStreamDecoder — single mode, one PhraseExplanation re-emitted
                             as a fresh snapshot after every value
decode() is an async generator that feeds every fragment and re-yields
it unchanged; when the source is exhausted it runs finish(), which does
the tail flush and completes the channel.

RULES:
- Records are emitted in the order their values were extracted
- Raw fragments are yielded unmodified, after they have been fed
- A transport error propagates out of decode() as-is; the channel is
  left open and partial state is left where it was (see abandon())
- finish() runs the tail flush exactly once, however often it is called
- feed() after finish() raises RuntimeError
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterable, AsyncIterator, List, Optional

from stream_translator.core.assembler import CyclicRecordAssembler
from stream_translator.core.broadcast import UpdateChannel
from stream_translator.core.records import (
    EXPLANATION_SCHEMA,
    OPTION_SCHEMA,
    PhraseExplanation,
    RecordSchema,
    TranslationOption,
)
from stream_translator.core.scanner import SentinelScanner

logger = logging.getLogger(__name__)


class _StreamDecoder:
    """Shared mechanics for both driver shapes."""

    sealing = True

    def __init__(self, schema: RecordSchema) -> None:
        self.schema = schema
        self.scanner = SentinelScanner(schema.labels())
        self.assembler = CyclicRecordAssembler(schema, sealing=self.sealing)
        self.channel: UpdateChannel = UpdateChannel()
        self._finished = False

    @property
    def completed(self) -> bool:
        return self.channel.completed

    async def next_update(self) -> Optional[Any]:
        """Wait for the next emitted record, or None when the stream is done."""
        return await self.channel.next()

    def feed(self, fragment: str) -> List[Any]:
        """Decode one fragment and return the records it produced."""
        if self._finished:
            raise RuntimeError("Decoder already finished; cannot feed more text")
        produced: List[Any] = []
        for value in self.scanner.feed(fragment):
            produced.extend(self._accept(value))
        return produced

    def finish(self) -> None:
        """Flush the unterminated tail (once) and complete the channel."""
        if self._finished:
            return
        self._finished = True
        tail = self.scanner.flush()
        if tail is not None:
            self._accept(tail)
        self._on_finish()
        self.channel.complete()
        logger.debug(
            "Decoded %d values for %s", self.assembler.value_index, self.schema.name
        )

    def abandon(self) -> None:
        """Release all readers without flushing, e.g. after a transport error.

        The decoder never does this on its own; the caller decides that a
        failed stream is over.
        """
        self._finished = True
        self.channel.complete()

    async def decode(self, fragments: AsyncIterable[str]) -> AsyncIterator[str]:
        """Feed every fragment from the transport and re-yield it unchanged."""
        async for fragment in fragments:
            self.feed(fragment)
            yield fragment
        self.finish()

    def _accept(self, value: str) -> List[Any]:
        raise NotImplementedError

    def _on_finish(self) -> None:
        pass


class OptionStreamDecoder(_StreamDecoder):
    """List-mode driver producing sealed TranslationOption records.

    WHY: A multi-option reply is an unbounded run of 7-value cycles. Each
    finished option should reach the learner while the next one is still
    being generated.

    HOW: Every sealed record is appended to the output list and then
    emitted on the channel. Readers either slice the list by index or
    await the channel; iter_records() combines both so nothing is missed.

    RULES:
    - records/slice() never include the in-progress option (see pending)
    - The output list is append-only
    """

    sealing = True

    def __init__(self, schema: RecordSchema = OPTION_SCHEMA) -> None:
        super().__init__(schema)
        self._records: List[TranslationOption] = []

    @property
    def records(self) -> tuple:
        """All sealed records so far, oldest first."""
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def slice(self, start: int = 0, stop: Optional[int] = None) -> List[TranslationOption]:
        return self._records[start:stop]

    @property
    def pending(self) -> Optional[TranslationOption]:
        """Snapshot of the partly filled option, or None between options."""
        if not self.assembler.is_open:
            return None
        return self.assembler.snapshot()

    async def iter_records(self, start: int = 0) -> AsyncIterator[TranslationOption]:
        """Yield every sealed record from index start until the stream completes.

        WHY: A bare next() loop can miss a record when one fragment seals
        two options back to back. Reading the output list by index and
        only using the channel as a wake-up signal is lossless.
        """
        index = start
        while True:
            while index < len(self._records):
                yield self._records[index]
                index += 1
            if self.completed:
                return
            await self.channel.next()

    def _accept(self, value: str) -> List[Any]:
        record = self.assembler.push(value)
        if record is None:
            return []
        self._records.append(record)
        self.channel.emit(record)
        return [record]


class ExplanationStreamDecoder(_StreamDecoder):
    """Single-mode driver progressively filling one PhraseExplanation.

    WHY: The explanation view shows fields as soon as they arrive, so
    readers need the record after every value, not only when complete.

    HOW: Each accepted value produces a fresh frozen snapshot, stored as
    current and emitted. finish() emits the final snapshot once more
    before completing.

    RULES:
    - current is never None; it starts as an all-default record
    - Snapshots are immutable; later values never change an emitted one
    """

    sealing = False

    def __init__(self, schema: RecordSchema = EXPLANATION_SCHEMA) -> None:
        super().__init__(schema)
        self.current: PhraseExplanation = self.assembler.snapshot()
        self._version = 0

    async def iter_snapshots(self) -> AsyncIterator[PhraseExplanation]:
        """Yield the latest snapshot each time it changes, ending with the final one.

        Snapshots emitted in quick succession may be coalesced into the
        newest one; the final state is always delivered.
        """
        seen = 0
        while True:
            if self._version != seen:
                seen = self._version
                yield self.current
                # values may have arrived while the consumer held the yield
                continue
            if self.completed:
                return
            await self.channel.next()

    def _accept(self, value: str) -> List[Any]:
        self.current = self.assembler.push(value)
        self._emit()
        return [self.current]

    def _on_finish(self) -> None:
        self._emit()

    def _emit(self) -> None:
        self._version += 1
        self.channel.emit(self.current)
