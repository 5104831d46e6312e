"""JSON formatter with schema validation.

WHY: Other tools (flashcard exporters, the web front end) consume the
records as JSON. The JSON must match the record layout exactly, so the
output is validated against a JSON Schema derived from the same
RecordSchema the decoder used.

HOW: Records are converted with to_dict(), wrapped in a top-level object
naming the record kind, and validated with jsonschema before returning.

RULES:
- Top level: {"kind": schema.name, "records": [...]}
- Every schema field plus "sequence" is required on every record
- "int" fields are JSON integers, all other fields are strings
- recommended_voice is not restricted to the voice enumeration
- Schema validation is mandatory — raises on invalid output
- Output suffix: "-options.json"
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Sequence

import jsonschema

from stream_translator.core.records import OPTION_SCHEMA, RecordSchema
from stream_translator.formatters.base import BaseFormatter, FormatterOutput


def record_json_schema(schema: RecordSchema) -> Dict[str, Any]:
    """Build the JSON Schema for the formatter output of a record schema."""
    properties: Dict[str, Any] = {
        "sequence": {"type": "integer", "minimum": 0},
    }
    for spec in schema.fields:
        properties[spec.name] = {"type": "integer" if spec.kind == "int" else "string"}

    return {
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        "type": "object",
        "required": ["kind", "records"],
        "additionalProperties": False,
        "properties": {
            "kind": {"const": schema.name},
            "records": {
                "type": "array",
                "items": {
                    "type": "object",
                    "required": sorted(properties),
                    "additionalProperties": False,
                    "properties": properties,
                },
            },
        },
    }


class JSONRecordsFormatter(BaseFormatter):
    """Formatter that produces schema-validated JSON."""

    @property
    def name(self) -> str:
        return "JSON"

    def format(
        self,
        records: Sequence[Any],
        schema: RecordSchema = OPTION_SCHEMA,
    ) -> List[FormatterOutput]:
        """Convert records into validated JSON.

        Raises:
            jsonschema.ValidationError: If a record does not match the
                schema (e.g. a record of the other kind was passed).
        """
        output = {
            "kind": schema.name,
            "records": [record.to_dict() for record in records],
        }
        jsonschema.validate(instance=output, schema=record_json_schema(schema))

        return [
            FormatterOutput(
                suffix="-options.json",
                content=json.dumps(output, indent=2, ensure_ascii=False),
                media_type="application/json",
            )
        ]
