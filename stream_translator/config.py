"""Configuration constants, language names, voices, and .env loading.

WHY: Centralizes all configurable values so they are easy to find,
update, and override. Language names, the TTS voice enumeration, and
API defaults are plain data structures — not buried in logic — so both
humans and coding agents can modify them confidently.

HOW: python-dotenv loads the .env file on import. Constants are defined
as module-level dicts, tuples, and strings. The load_api_key() function
provides a clear error when the key is missing.

RULES:
- LANGUAGE_NAMES maps ISO 639-1 → English language name (used in prompts)
- Unmapped language codes fall back to the code itself
- VOICES is the documented enumeration for the recommended-voice field
- API key is loaded from .env via python-dotenv, never hardcoded
- All defaults can be overridden via environment variables
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

# Load .env from the project root (where the script is run from)
load_dotenv()

# ---------------------------------------------------------------------------
# Language names: ISO 639-1 → English name
# ---------------------------------------------------------------------------

LANGUAGE_NAMES: dict[str, str] = {
    "en": "English",
    "ko": "Korean",
    "ja": "Japanese",
    "zh": "Mandarin Chinese",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "ru": "Russian",
    "ar": "Arabic",
    "hi": "Hindi",
    "th": "Thai",
    "vi": "Vietnamese",
    "sv": "Swedish",
    "nl": "Dutch",
    "pl": "Polish",
    "tr": "Turkish",
}


def language_name(iso_code: str) -> str:
    """Map an ISO 639-1 code to the English language name.

    WHY: Prompts read better (and generation is more reliable) with
    "Korean" than with "ko".

    HOW: Direct lookup in LANGUAGE_NAMES with fallback to the code.

    RULES:
    - Lookup is case-insensitive on the code
    - Unknown codes are returned unchanged (the model usually copes)
    """
    return LANGUAGE_NAMES.get(iso_code.lower(), iso_code)


# ---------------------------------------------------------------------------
# Text-to-speech voices
# ---------------------------------------------------------------------------

VOICES: tuple[str, ...] = ("alloy", "echo", "fable", "onyx", "nova", "shimmer")
"""Voices the generation service can speak with (recommended_voice values)."""

DEFAULT_VOICE = os.getenv("DEFAULT_VOICE", "alloy")


def resolve_voice(voice: str | None) -> str:
    """Return voice if it is a known TTS voice, else DEFAULT_VOICE.

    WHY: The recommended-voice field is model output and is stored
    unvalidated. Anything that actually calls the speech endpoint needs
    a name the service accepts.

    RULES:
    - Comparison ignores case and surrounding whitespace
    - None, "", and unknown names all resolve to DEFAULT_VOICE
    """
    candidate = (voice or "").strip().lower()
    return candidate if candidate in VOICES else DEFAULT_VOICE

# ---------------------------------------------------------------------------
# API configuration defaults
# ---------------------------------------------------------------------------

GENERATION_BASE_URL = os.getenv("GENERATION_BASE_URL", "https://api.openai.com/v1")
GENERATION_MODEL = os.getenv("GENERATION_MODEL", "gpt-4o-mini")
SPEECH_MODEL = os.getenv("SPEECH_MODEL", "tts-1")
REQUEST_TIMEOUT_S = float(os.getenv("REQUEST_TIMEOUT_S", "120"))
DEFAULT_TARGET_LANGUAGE = os.getenv("DEFAULT_TARGET_LANGUAGE", "ko")
DEFAULT_NATIVE_LANGUAGE = os.getenv("DEFAULT_NATIVE_LANGUAGE", "en")
DEFAULT_OPTION_COUNT = int(os.getenv("DEFAULT_OPTION_COUNT", "3"))


def load_api_key() -> str:
    """Load the generation service API key from the environment.

    WHY: The API key is required for every chat and speech call. Loading
    it from the environment (via .env) keeps it out of source code.

    HOW: Reads OPENAI_API_KEY from os.environ (populated by python-dotenv).

    RULES:
    - Raises ValueError if the key is missing or empty
    - Never returns a default/placeholder value
    """
    key = os.getenv("OPENAI_API_KEY", "").strip()
    if not key:
        raise ValueError(
            "Generation API key not configured. "
            "Add OPENAI_API_KEY to the .env file in the app folder."
        )
    return key
