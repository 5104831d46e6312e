"""Generation API client package — async HTTP interface to the model service.

WHY: The translator needs to stream chat completions, request one-shot
completions, and synthesize speech. This package encapsulates all
service communication behind an async client class.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. The GenerationClient
class provides one method per call. Response data is parsed into typed
dataclasses defined in models.py.

RULES:
- All HTTP calls go through GenerationClient (no direct httpx usage elsewhere)
- Authentication is via Bearer token from config
- The client never retries; errors go straight to the caller
"""

from stream_translator.api.client import GenerationAPIError, GenerationClient
from stream_translator.api.models import ChatMessage

__all__ = ["ChatMessage", "GenerationAPIError", "GenerationClient"]
