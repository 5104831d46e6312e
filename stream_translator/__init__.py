"""Stream Translator — streamed, structured translation options.

WHY: A generation service streams its answer as plain text in arbitrary
fragments, but the translator needs structured records (translation,
frequency, transliteration, explanation, voice) and needs them while the
answer is still being written. This package decodes the stream into
records as it arrives and lets any number of readers follow along.

HOW: Three-stage pipeline — prompt (core.prompts), stream (api client),
decode (core scanner → assembler → broadcast channel, driven by
core.decoder). Front ends (CLI, HTTP server) and formatters consume the
decoded records. Each stage is independently testable.

RULES:
- Record schemas in core.records are the contract between prompt and decoder
- Decoders never touch the network; the client never parses records
- Adding a new output format = one new formatter module, no core changes
"""

__version__ = "0.1.0"
