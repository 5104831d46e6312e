"""Shared test fixtures for the stream_translator test suite.

WHY: Most test modules need the same sample streams (the canonical
single-option reply, a three-option reply, a full explanation) and the
same stand-in for the generation service. Centralizing them here keeps
every test working from identical input.

HOW: Module-level constants hold the sample wire text. Fixtures expose
them, plus a FakeGenerationClient class that replays scripted fragment
lists instead of calling the network.

RULES:
- Sample replies follow the "value||||\\n" wire format exactly
- FakeGenerationClient mirrors GenerationClient's public methods
- chunk() splits text at fixed sizes, deliberately ignoring sentinels
"""

from typing import Any, List, Optional

import pytest


# ---------------------------------------------------------------------------
# Sample replies
# ---------------------------------------------------------------------------

SINGLE_OPTION_TEXT = "5||||Hello||||common||||common||||Annyeong||||A greeting||||alloy||||"

THREE_OPTIONS_TEXT = (
    "1||||\n안녕하세요||||\nvery common||||\nvery common||||\nannyeonghaseyo||||\n"
    "The standard polite greeting.||||\nnova||||\n"
    "2||||\n안녕||||\ncommon||||\ncommon||||\nannyeong||||\n"
    "Casual; only with friends or younger people.||||\nalloy||||\n"
    "3||||\n안녕하십니까||||\nuncommon||||\nuncommon||||\nannyeonghasimnikka||||\n"
    "Very formal, used in speeches and the military.||||\nonyx||||\n"
)

EXPLANATION_TEXT = (
    "1||||\n안녕하세요||||\nno||||\nvery common||||\nvery common||||\n"
    "annyeonghaseyo||||\nLiterally asks whether you are at peace.||||\nshimmer||||\n"
)


def chunk(text: str, size: int) -> List[str]:
    """Split text into fragments of at most size characters."""
    return [text[i:i + size] for i in range(0, len(text), size)]


# ---------------------------------------------------------------------------
# Fake generation service
# ---------------------------------------------------------------------------


class FakeGenerationClient:
    """Replays scripted fragment lists in place of the generation service.

    Each stream_chat() call consumes the next script. If error is set, it
    is raised after the script's fragments have been yielded.
    """

    def __init__(
        self,
        *scripts: List[str],
        error: Optional[BaseException] = None,
        audio: bytes = b"ID3fake-audio",
    ) -> None:
        self.scripts = list(scripts)
        self.error = error
        self.audio = audio
        self.requests: List[Any] = []
        self.speech_calls: List[tuple] = []
        self.entered = 0

    async def __aenter__(self) -> "FakeGenerationClient":
        self.entered += 1
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        return None

    async def stream_chat(self, messages, temperature=None):
        self.requests.append(messages)
        script = self.scripts.pop(0) if self.scripts else []
        for fragment in script:
            yield fragment
        if self.error is not None:
            raise self.error

    async def complete_chat(self, messages, temperature=None) -> str:
        self.requests.append(messages)
        script = self.scripts.pop(0) if self.scripts else []
        return "".join(script)

    async def synthesize_speech(self, text, voice, response_format="mp3") -> bytes:
        self.speech_calls.append((text, voice, response_format))
        return self.audio


@pytest.fixture
def single_option_text():
    return SINGLE_OPTION_TEXT


@pytest.fixture
def three_options_text():
    return THREE_OPTIONS_TEXT


@pytest.fixture
def explanation_text():
    return EXPLANATION_TEXT


@pytest.fixture
def fake_client_cls():
    """The FakeGenerationClient class, for tests that build their own."""
    return FakeGenerationClient


@pytest.fixture
def chunker():
    return chunk
