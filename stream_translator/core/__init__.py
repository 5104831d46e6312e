"""Core decoding, record schemas, and prompt assembly.

WHY: The core package contains the stable heart of the translator —
the record schemas, the sentinel stream decoder, and the broadcast
channel readers subscribe to. Every outer layer (CLI, HTTP service,
formatters) consumes these and must stay in step with them.

HOW: records.py defines the schemas and frozen record types, scanner.py
cuts sentinel-terminated values out of the buffer, assembler.py maps
values onto records by position, broadcast.py notifies readers, and
decoder.py drives all of it from an async fragment stream. prompts.py
requests the wire format that the decoder expects.

RULES:
- Schemas are the contract — change with care
- Decoding is transport-agnostic — no HTTP in this package
- prompts.py only builds messages; it never calls the API
"""
