"""Chat completion request and response dataclasses.

WHY: The generation service speaks the OpenAI-compatible chat completions
JSON format, both as one full response and as a stream of "chunk" events.
Typed dataclasses make these structures explicit and keep raw dict
digging out of the client and pipeline code.

HOW: Each dataclass maps 1:1 to a JSON object. Factory methods
(from_dict) parse raw API responses; ChatMessage.to_dict() produces the
request form.

RULES:
- Only the fields this package reads are modelled; the rest is ignored
- A chunk's content is "" when the delta carries no text (role-only,
  finish events)
- finish_reason is None until the final chunk
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ChatMessage:
    """One message in a chat completion request.

    RULES:
    - role is "system", "user", or "assistant"
    """

    role: str
    content: str

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content}


@dataclass
class ChatCompletionChunk:
    """One server-sent event from a streaming chat completion.

    WHY: Streamed responses arrive as many small JSON events, each carrying
    a text delta. The decoder only wants the text.

    HOW: Reads choices[0].delta.content, tolerating absent keys.

    RULES:
    - content defaults to "" (role-only and final chunks have none)
    - An event with no choices (usage-only) has content "" and no reason
    """

    id: str
    content: str
    finish_reason: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> ChatCompletionChunk:
        choices = data.get("choices") or [{}]
        choice = choices[0]
        delta = choice.get("delta") or {}
        return cls(
            id=data.get("id", ""),
            content=delta.get("content") or "",
            finish_reason=choice.get("finish_reason"),
        )


@dataclass
class ChatCompletion:
    """A complete, non-streamed chat completion response.

    RULES:
    - content is choices[0].message.content ("" if missing)
    """

    id: str
    model: str
    content: str
    finish_reason: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> ChatCompletion:
        choice = (data.get("choices") or [{}])[0]
        message = choice.get("message") or {}
        return cls(
            id=data.get("id", ""),
            model=data.get("model", ""),
            content=message.get("content") or "",
            finish_reason=choice.get("finish_reason"),
        )
