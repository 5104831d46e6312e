"""Command-line interface for the Stream Translator.

WHY: Learners (and developers debugging prompts) need a simple way to
translate a phrase from the terminal and watch the options arrive as
they are generated. The CLI wires together prompt assembly, the
streaming generation client, the stream decoder, formatters, and speech
synthesis behind a single command.

HOW: Uses argparse to accept the phrase, languages, option count, and
follow-up actions. Runs the async pipeline via asyncio.run(). While the
fragment stream is driven to completion, a concurrent task reads sealed
options from the decoder and prints each one to stdout as soon as it is
complete. Raw fragments can be echoed to stderr. --explain streams a
detailed explanation of one option, --speak saves its audio, --formats
saves formatted output files.

RULES:
- Positional argument: the phrase to translate
- Options go to stdout as they seal; status and raw text go to stderr
- --explain N / --speak N refer to the N-th option shown (1-based)
- Output naming: {slug}{suffix}, numeric suffix for conflicts (-options-2.json)
- Config errors (missing API key, input too long) exit with status 1
- Ctrl-C exits with status 130
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import re
import sys
from pathlib import Path
from typing import Any, List, Optional, Sequence

from stream_translator.api.client import GenerationClient
from stream_translator.config import (
    DEFAULT_NATIVE_LANGUAGE,
    DEFAULT_OPTION_COUNT,
    DEFAULT_TARGET_LANGUAGE,
)
from stream_translator.core.decoder import ExplanationStreamDecoder, OptionStreamDecoder
from stream_translator.core.records import EXPLANATION_SCHEMA, OPTION_SCHEMA
from stream_translator.formatters import FORMATTERS
from stream_translator.formatters.base import FormatterOutput
from stream_translator.formatters.plain_text import format_record
from stream_translator.pipeline import speak_option, stream_explanation, stream_options


def _status(msg: str) -> None:
    """Print a status message to stderr.

    WHY: Status output must not pollute stdout so the CLI can be piped.
    """
    print(msg, file=sys.stderr, flush=True)


def _slugify(text: str, max_length: int = 40) -> str:
    """Derive a filename stem from the phrase.

    RULES:
    - Lowercase, runs of non-word characters become a single "-"
    - Truncated to max_length, never empty ("translation" fallback)
    """
    slug = re.sub(r"\W+", "-", text.lower()).strip("-")
    return slug[:max_length].rstrip("-") or "translation"


def _resolve_output_path(
    stem: str,
    suffix: str,
    output_dir: Path,
) -> Path:
    """Resolve the output file path, adding numeric suffix on conflict.

    WHY: Users translate the same phrase repeatedly while comparing
    results. Overwriting previous output would lose work.

    HOW: Check if {stem}{suffix} exists. If so, insert a counter before
    the file extension until a free name is found.

    RULES:
    - First attempt: {stem}{suffix} (e.g. hello-options.json)
    - Conflict: hello-options-2.json, hello-options-3.json, ...
    """
    base_path = output_dir / "{}{}".format(stem, suffix)
    if not base_path.exists():
        return base_path

    dot_idx = suffix.rfind(".")
    if dot_idx > 0:
        suffix_name = suffix[:dot_idx]
        suffix_ext = suffix[dot_idx:]
    else:
        suffix_name = suffix
        suffix_ext = ""

    counter = 2
    while True:
        candidate = output_dir / "{}{}-{}{}".format(stem, suffix_name, counter, suffix_ext)
        if not candidate.exists():
            return candidate
        counter += 1


def _save_output(output: FormatterOutput, stem: str, output_dir: Path) -> Path:
    """Save a single formatter output to disk as UTF-8 text."""
    path = _resolve_output_path(stem, output.suffix, output_dir)
    path.write_text(output.content, encoding="utf-8")
    return path


def _pick_option(options: Sequence[Any], position: int) -> Any:
    """Return the position-th option (1-based), exiting on a bad index."""
    if not 1 <= position <= len(options):
        print(
            "Error: Option {} does not exist ({} option(s) decoded).".format(
                position, len(options)
            ),
            file=sys.stderr,
        )
        sys.exit(1)
    return options[position - 1]


async def _print_options(decoder: OptionStreamDecoder) -> None:
    """Print every option to stdout as soon as the decoder seals it."""
    async for record in decoder.iter_records():
        print(format_record(record), flush=True)
        print(flush=True)


async def _watch_explanation(decoder: ExplanationStreamDecoder) -> None:
    """Report each explanation field on stderr as it fills in."""
    shown: dict = {}
    async for snapshot in decoder.iter_snapshots():
        for spec in EXPLANATION_SCHEMA.fields:
            value = getattr(snapshot, spec.name)
            if value and shown.get(spec.name) != value:
                shown[spec.name] = value
                _status("  {}: {}".format(spec.name, value))


async def _drive(decoder: Any, fragments: Any, reader: Any, raw: bool) -> None:
    """Drive fragments to the end while a reader task consumes the decoder.

    RULES:
    - Raw fragments are echoed to stderr only when raw is True
    - If the stream fails, the decoder is abandoned so the reader ends,
      then the error propagates
    """
    reader_task = asyncio.create_task(reader)
    try:
        async for fragment in fragments:
            if raw:
                sys.stderr.write(fragment)
                sys.stderr.flush()
    finally:
        if not decoder.completed:
            decoder.abandon()
        await reader_task
    if raw:
        _status("")


async def _run_pipeline(args: argparse.Namespace) -> None:
    """Execute the translation pipeline.

    WHY: This is the async core of the CLI — it streams the options, then
    runs any follow-up explanation, speech, and file output steps.

    RULES:
    - Validate output directory and format keys before any API call
    - Status messages to stderr at each step
    """
    output_dir = Path(args.output_dir).resolve() if args.output_dir else Path.cwd()
    if not output_dir.is_dir():
        print("Error: Output directory does not exist: {}".format(output_dir), file=sys.stderr)
        sys.exit(1)

    format_keys: List[str] = []
    if args.formats:
        format_keys = [f.strip() for f in args.formats.split(",") if f.strip()]
        for key in format_keys:
            if key not in FORMATTERS:
                available = ", ".join(sorted(FORMATTERS.keys()))
                print(
                    "Error: Unknown format '{}'. Available formats: {}".format(key, available),
                    file=sys.stderr,
                )
                sys.exit(1)

    stem = _slugify(args.text)

    try:
        async with GenerationClient() as client:
            # Step 1: Stream options
            decoder, fragments = stream_options(
                client,
                args.text,
                args.target_language,
                args.native_language,
                args.options,
                args.situation,
            )
            _status("Translating into {}...".format(args.target_language))
            await _drive(decoder, fragments, _print_options(decoder), args.raw)

            options = list(decoder.records)
            if not options:
                _status("No translation options were decoded.")
                sys.exit(1)
            _status("Decoded {} option(s).".format(len(options)))

            # Step 2: Save formatted output
            for key in format_keys:
                formatter = FORMATTERS[key]()
                for output in formatter.format(options, OPTION_SCHEMA):
                    saved = _save_output(output, stem, output_dir)
                    _status("  Saved: {}".format(saved.name))

            # Step 3: Explain one option
            if args.explain is not None:
                option = _pick_option(options, args.explain)
                _status("Explaining option {}: {}".format(args.explain, option.translation))
                explainer, explanation_fragments = stream_explanation(
                    client,
                    args.text,
                    option.translation,
                    args.target_language,
                    args.native_language,
                    args.situation,
                )
                await _drive(
                    explainer,
                    explanation_fragments,
                    _watch_explanation(explainer),
                    args.raw,
                )
                print(format_record(explainer.current), flush=True)

            # Step 4: Speak one option
            if args.speak is not None:
                option = _pick_option(options, args.speak)
                _status("Synthesizing option {} with voice {}...".format(
                    args.speak, option.voice_or_default()
                ))
                audio = await speak_option(client, option)
                path = _resolve_output_path(stem, "-option-{}.mp3".format(args.speak), output_dir)
                path.write_bytes(audio)
                _status("  Saved: {}".format(path.name))

    except KeyboardInterrupt:
        _status("\nCancelled by user.")
        sys.exit(130)
    except ValueError as e:
        # Config errors (missing API key, input too long, etc.)
        print("Error: {}".format(e), file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print("Error: {}".format(e), file=sys.stderr)
        sys.exit(1)


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    WHY: Separating parser construction from main() makes the CLI
    testable — tests can inspect the parser without running the pipeline.
    """
    parser = argparse.ArgumentParser(
        prog="stream_translator",
        description="Translate a phrase into several natural options, streamed "
                    "as they are generated, with explanations and speech.",
    )

    parser.add_argument("text", help="The phrase to translate.")

    parser.add_argument(
        "--to",
        dest="target_language",
        default=DEFAULT_TARGET_LANGUAGE,
        help="Target language ISO 639-1 code (default: %(default)s).",
    )

    parser.add_argument(
        "--from",
        dest="native_language",
        default=DEFAULT_NATIVE_LANGUAGE,
        help="Your language, used for explanations (default: %(default)s).",
    )

    parser.add_argument(
        "--options",
        type=int,
        default=DEFAULT_OPTION_COUNT,
        help="Number of translation options to request (default: %(default)s).",
    )

    parser.add_argument(
        "--situation",
        default=None,
        help="Who is speaking to whom, and where (improves register).",
    )

    parser.add_argument(
        "--raw",
        action="store_true",
        help="Echo the raw generated text to stderr as it streams.",
    )

    parser.add_argument(
        "--explain",
        type=int,
        default=None,
        metavar="N",
        help="Stream a detailed explanation of option N.",
    )

    parser.add_argument(
        "--speak",
        type=int,
        default=None,
        metavar="N",
        help="Save option N as speech (mp3) in its recommended voice.",
    )

    parser.add_argument(
        "--formats",
        default=None,
        help="Comma-separated list of output formats to save. "
             "Available: {}.".format(", ".join(sorted(FORMATTERS.keys()))),
    )

    parser.add_argument(
        "--output-dir",
        default=None,
        help="Directory to save output files (default: current directory).",
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log decoder details to stderr.",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    asyncio.run(_run_pipeline(args))


if __name__ == "__main__":
    main()
