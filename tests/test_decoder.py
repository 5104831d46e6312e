"""Tests for the stream drivers (OptionStreamDecoder, ExplanationStreamDecoder).

WHY: The drivers are what every front end actually uses. They must
produce the same records however the transport happens to cut the text,
keep records in stream order, salvage an unterminated tail, and leave
readers in a well-defined state when the transport fails.

HOW: Synchronous tests call feed()/finish() directly. Async tests wrap
a fragment list in an async generator and drive decode() with
asyncio.run(), optionally with reader tasks running alongside.
  - TestOptionDecoding: the canonical single-option reply
  - TestFragmentationInvariance: every way of cutting the text agrees
  - TestTailFlush: missing final sentinel, idempotent finish
  - TestExplanationDecoding: progressive snapshots in single mode
  - TestDecodeDriver: raw passthrough, completion, transport failure
  - TestReaders: iter_records() and iter_snapshots()

RULES:
- Sample replies come from conftest.py
- Failure tests raise a plain ConnectionError from the fragment source
"""

from __future__ import annotations

import asyncio

import pytest

from stream_translator.core.decoder import ExplanationStreamDecoder, OptionStreamDecoder
from stream_translator.core.records import PhraseExplanation, TranslationOption

EXPECTED_SINGLE = TranslationOption(
    num=5,
    translation="Hello",
    frequency_rating="common",
    frequency_rating_localized="common",
    transliteration="Annyeong",
    explanation="A greeting",
    recommended_voice="alloy",
    sequence=0,
)


async def _source(fragments, error=None):
    """Async fragment source, optionally failing after the last fragment."""
    for fragment in fragments:
        await asyncio.sleep(0)
        yield fragment
    if error is not None:
        raise error


def _decode_all(decoder, fragments):
    for fragment in fragments:
        decoder.feed(fragment)
    decoder.finish()
    return decoder


# ---------------------------------------------------------------------------
# TestOptionDecoding
# ---------------------------------------------------------------------------


class TestOptionDecoding:
    """List mode yields one sealed option per seven values."""

    def test_single_fragment_single_option(self, single_option_text):
        decoder = OptionStreamDecoder()
        produced = decoder.feed(single_option_text)
        assert produced == [EXPECTED_SINGLE]
        assert decoder.records == (EXPECTED_SINGLE,)
        decoder.finish()
        assert len(decoder) == 1
        assert decoder.completed

    def test_three_options_in_order(self, three_options_text):
        decoder = _decode_all(OptionStreamDecoder(), [three_options_text])
        assert [r.num for r in decoder.records] == [1, 2, 3]
        assert [r.sequence for r in decoder.records] == [0, 1, 2]
        assert decoder.records[0].translation == "안녕하세요"
        assert decoder.records[2].recommended_voice == "onyx"

    def test_pending_shows_partial_option(self):
        decoder = OptionStreamDecoder()
        decoder.feed("1||||Hello||||com")
        assert decoder.records == ()
        assert decoder.pending.num == 1
        assert decoder.pending.translation == "Hello"

    def test_pending_none_between_options(self, single_option_text):
        decoder = OptionStreamDecoder()
        decoder.feed(single_option_text)
        assert decoder.pending is None

    def test_slice_from_index(self, three_options_text):
        decoder = _decode_all(OptionStreamDecoder(), [three_options_text])
        assert [r.num for r in decoder.slice(1)] == [2, 3]
        assert decoder.slice(5) == []

    def test_echoed_labels_do_not_shift_fields(self):
        text = (
            "NUMBER||||5||||TRANSLATION: Hello||||common||||common||||"
            "Annyeong||||A greeting||||RECOMMENDED_VOICE||||alloy||||"
        )
        decoder = _decode_all(OptionStreamDecoder(), [text])
        assert decoder.records == (EXPECTED_SINGLE,)

    def test_explanation_naming_another_field_kept(self):
        text = (
            "1||||Hi||||common||||common||||hai||||"
            "Translation: literally 'hi'||||nova||||"
        )
        decoder = _decode_all(OptionStreamDecoder(), [text])
        assert decoder.records[0].explanation == "Translation: literally 'hi'"

    def test_bad_number_does_not_abort(self):
        text = "first||||Hello||||common||||common||||Annyeong||||A greeting||||alloy||||"
        decoder = _decode_all(OptionStreamDecoder(), [text])
        assert decoder.records[0].num == 0
        assert decoder.records[0].translation == "Hello"

    def test_unknown_voice_kept_but_resolved_for_speech(self):
        text = "1||||Hello||||common||||common||||Annyeong||||A greeting||||robot||||"
        decoder = _decode_all(OptionStreamDecoder(), [text])
        record = decoder.records[0]
        assert record.recommended_voice == "robot"
        assert record.voice_or_default() == "alloy"

    def test_feed_after_finish_raises(self):
        decoder = OptionStreamDecoder()
        decoder.finish()
        with pytest.raises(RuntimeError):
            decoder.feed("more")


# ---------------------------------------------------------------------------
# TestFragmentationInvariance
# ---------------------------------------------------------------------------


class TestFragmentationInvariance:
    """The records never depend on where the fragment boundaries fall."""

    def test_fragments_split_inside_sentinel(self):
        fragments = [
            "5|",
            "|||Hel",
            "lo||||comm",
            "on||||common||||Annyeong||||A greeting||||alloy||||",
        ]
        decoder = _decode_all(OptionStreamDecoder(), fragments)
        assert decoder.records == (EXPECTED_SINGLE,)

    def test_character_by_character(self, three_options_text):
        whole = _decode_all(OptionStreamDecoder(), [three_options_text])
        by_char = _decode_all(OptionStreamDecoder(), list(three_options_text))
        assert by_char.records == whole.records

    @pytest.mark.parametrize("size", [2, 3, 4, 5, 7, 11, 64])
    def test_fixed_size_chunks(self, three_options_text, chunker, size):
        whole = _decode_all(OptionStreamDecoder(), [three_options_text])
        chunked = _decode_all(OptionStreamDecoder(), chunker(three_options_text, size))
        assert chunked.records == whole.records

    def test_every_two_way_split(self, single_option_text):
        for cut in range(len(single_option_text) + 1):
            decoder = _decode_all(
                OptionStreamDecoder(),
                [single_option_text[:cut], single_option_text[cut:]],
            )
            assert decoder.records == (EXPECTED_SINGLE,), cut

    def test_empty_fragments_are_harmless(self, single_option_text):
        fragments = ["", single_option_text[:10], "", single_option_text[10:], ""]
        decoder = _decode_all(OptionStreamDecoder(), fragments)
        assert decoder.records == (EXPECTED_SINGLE,)


# ---------------------------------------------------------------------------
# TestTailFlush
# ---------------------------------------------------------------------------


class TestTailFlush:
    """finish() salvages an unterminated last value, exactly once."""

    def test_missing_final_sentinel_still_seals(self):
        text = "5||||Hello||||common||||common||||Annyeong||||A greeting||||alloy"
        decoder = _decode_all(OptionStreamDecoder(), [text])
        assert decoder.records == (EXPECTED_SINGLE,)

    def test_partial_final_sentinel_still_seals(self):
        text = "5||||Hello||||common||||common||||Annyeong||||A greeting||||alloy||"
        decoder = _decode_all(OptionStreamDecoder(), [text])
        assert decoder.records == (EXPECTED_SINGLE,)

    def test_incomplete_option_not_appended(self):
        decoder = _decode_all(OptionStreamDecoder(), ["1||||Hello"])
        assert decoder.records == ()
        assert decoder.pending.translation == "Hello"

    def test_finish_is_idempotent(self):
        decoder = OptionStreamDecoder()
        decoder.feed("5||||Hello||||common||||common||||Annyeong||||A greeting||||alloy")
        decoder.finish()
        decoder.finish()
        assert len(decoder) == 1
        assert decoder.assembler.value_index == 7

    def test_single_mode_tail_at_cycle_start(self, explanation_text):
        decoder = _decode_all(ExplanationStreamDecoder(), [explanation_text, "42"])
        assert decoder.current.num == 42
        assert decoder.current.translation == "안녕하세요"
        assert decoder.current.sequence == 1


# ---------------------------------------------------------------------------
# TestExplanationDecoding
# ---------------------------------------------------------------------------


class TestExplanationDecoding:
    """Single mode re-emits one record after every value."""

    def test_current_starts_as_defaults(self):
        decoder = ExplanationStreamDecoder()
        assert decoder.current == PhraseExplanation()

    def test_snapshot_per_value(self):
        decoder = ExplanationStreamDecoder()
        produced = decoder.feed("1||||안녕하세요||||yes||||")
        assert len(produced) == 3
        assert produced[0].translation == ""
        assert produced[1].translation == "안녕하세요"
        assert produced[2].is_idiom
        assert decoder.current is produced[-1]

    def test_full_explanation(self, explanation_text, chunker):
        decoder = _decode_all(ExplanationStreamDecoder(), chunker(explanation_text, 6))
        current = decoder.current
        assert current.num == 1
        assert current.idiom_detected == "no"
        assert not current.is_idiom
        assert current.frequency_rating == "very common"
        assert current.transliteration == "annyeonghaseyo"
        assert current.recommended_voice == "shimmer"


# ---------------------------------------------------------------------------
# TestDecodeDriver
# ---------------------------------------------------------------------------


class TestDecodeDriver:
    """decode() passes raw text through and finishes the decoder."""

    def test_raw_fragments_yielded_unchanged(self, chunker, three_options_text):
        fragments = chunker(three_options_text, 9)

        async def scenario():
            decoder = OptionStreamDecoder()
            raw = [f async for f in decoder.decode(_source(fragments))]
            return decoder, raw

        decoder, raw = asyncio.run(scenario())
        assert raw == fragments
        assert "".join(raw) == three_options_text
        assert decoder.completed
        assert len(decoder) == 3

    def test_fragment_is_fed_before_it_is_yielded(self, single_option_text):
        async def scenario():
            decoder = OptionStreamDecoder()
            counts = []
            async for _ in decoder.decode(_source([single_option_text])):
                counts.append(len(decoder))
            return counts

        assert asyncio.run(scenario()) == [1]

    def test_transport_error_propagates(self, single_option_text):
        async def scenario():
            decoder = OptionStreamDecoder()
            with pytest.raises(ConnectionError):
                async for _ in decoder.decode(
                    _source([single_option_text, "6||||Bye"], error=ConnectionError("reset"))
                ):
                    pass
            return decoder

        decoder = asyncio.run(scenario())
        assert decoder.records == (EXPECTED_SINGLE,)
        assert not decoder.completed
        assert decoder.pending.num == 6
        assert decoder.scanner.buffer == "Bye"

    def test_abandon_releases_waiters_without_flush(self):
        async def scenario():
            decoder = OptionStreamDecoder()
            decoder.feed("1||||Hello")
            waiter = asyncio.create_task(decoder.next_update())
            await asyncio.sleep(0)
            decoder.abandon()
            return decoder, await waiter

        decoder, result = asyncio.run(scenario())
        assert result is None
        assert decoder.completed
        assert decoder.scanner.buffer == "Hello"

    def test_waiters_get_each_sealed_record(self, three_options_text):
        async def scenario():
            decoder = OptionStreamDecoder()
            seen = []

            async def reader():
                while True:
                    record = await decoder.next_update()
                    if record is None:
                        return
                    seen.append(record.num)

            task = asyncio.create_task(reader())
            await asyncio.sleep(0)
            async for _ in decoder.decode(_source(list(three_options_text))):
                pass
            await task
            return seen

        assert asyncio.run(scenario()) == [1, 2, 3]


# ---------------------------------------------------------------------------
# TestReaders
# ---------------------------------------------------------------------------


class TestReaders:
    """iter_records() and iter_snapshots() never lose the end of a stream."""

    def test_iter_records_is_lossless(self, three_options_text):
        async def scenario():
            decoder = OptionStreamDecoder()

            async def collect():
                return [r.num async for r in decoder.iter_records()]

            task = asyncio.create_task(collect())
            await asyncio.sleep(0)
            # all three options sealed by a single fragment
            async for _ in decoder.decode(_source([three_options_text])):
                pass
            return await task

        assert asyncio.run(scenario()) == [1, 2, 3]

    def test_iter_records_from_start_index(self, three_options_text):
        async def scenario():
            decoder = OptionStreamDecoder()
            async for _ in decoder.decode(_source([three_options_text])):
                pass
            return [r.num async for r in decoder.iter_records(start=1)]

        assert asyncio.run(scenario()) == [2, 3]

    def test_iter_records_ends_after_abandon(self, single_option_text):
        async def scenario():
            decoder = OptionStreamDecoder()
            decoder.feed(single_option_text)

            async def collect():
                return [r.num async for r in decoder.iter_records()]

            task = asyncio.create_task(collect())
            await asyncio.sleep(0)
            decoder.abandon()
            return await task

        assert asyncio.run(scenario()) == [5]

    def test_iter_snapshots_ends_with_final_state(self, explanation_text):
        async def scenario():
            decoder = ExplanationStreamDecoder()

            async def collect():
                return [s async for s in decoder.iter_snapshots()]

            task = asyncio.create_task(collect())
            await asyncio.sleep(0)
            async for _ in decoder.decode(_source(list(explanation_text))):
                pass
            return decoder, await task

        decoder, snapshots = asyncio.run(scenario())
        assert snapshots
        assert snapshots[-1] == decoder.current
        assert snapshots[-1].recommended_voice == "shimmer"
        translations = [s.translation for s in snapshots]
        assert "" in translations
        assert "안녕하세요" in translations

    def test_iter_snapshots_catches_up_after_slow_consumer(self):
        async def scenario():
            decoder = ExplanationStreamDecoder()
            resume = asyncio.Event()
            seen = []

            async def collect():
                async for snapshot in decoder.iter_snapshots():
                    seen.append(snapshot.translation)
                    if len(seen) == 1:
                        await resume.wait()

            task = asyncio.create_task(collect())
            await asyncio.sleep(0)
            decoder.feed("1||||")
            await asyncio.sleep(0)
            # the reader is parked in its loop body when this value arrives
            decoder.feed("안녕하세요||||")
            resume.set()
            for _ in range(5):
                await asyncio.sleep(0)
            before_finish = list(seen)
            decoder.finish()
            await task
            return before_finish

        assert asyncio.run(scenario()) == ["", "안녕하세요"]
