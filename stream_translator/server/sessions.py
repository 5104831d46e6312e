"""In-memory translation session store with TTL cleanup.

WHY: The HTTP API lets several clients watch the same translation while
it streams: one may long-poll for the next option, another may read the
options decoded so far, a third may follow an NDJSON stream. Each of
them needs to find the same decoder by ID, so sessions are kept in a
store for as long as they are useful.

HOW: Three components work together:
  SessionStatus — enum of valid session states
  Session       — dataclass holding request config, status, and the
                  OptionStreamDecoder that owns the decoded options
  SessionStore  — lock-protected dict with create/get/list/update/delete
                  and TTL cleanup of finished sessions

RULES:
- All store mutations are protected by threading.Lock
- Each session owns exactly one OptionStreamDecoder, created with it
- TTL-based expiry removes completed/failed sessions only
- Session IDs are UUID4 hex strings generated at creation time
- Default TTL is 1 hour (3600 seconds)
"""

from __future__ import annotations

import enum
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from stream_translator.core.decoder import OptionStreamDecoder

logger = logging.getLogger(__name__)

# Default time-to-live for completed/failed sessions (seconds)
DEFAULT_TTL_SECONDS = 3600


class SessionStatus(str, enum.Enum):
    """Valid states for a translation session.

    RULES:
    - pending: session created, stream not yet opened
    - streaming: fragments are arriving and being decoded
    - completed: stream ended, decoder finished
    - failed: the transport raised; decoder abandoned
    """

    PENDING = "pending"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class Session:
    """Metadata and decoder for a single translation session.

    RULES:
    - id: UUID4 hex string, unique and immutable after creation
    - decoder: the single writer of this session's options
    - raw_text: every raw fragment received so far, concatenated
    - completed_at: set when the session reaches a terminal state
    - error: error message if status is FAILED, else None
    """

    id: str
    status: SessionStatus
    config: Dict[str, Any]
    decoder: OptionStreamDecoder
    created_at: float
    updated_at: float
    completed_at: Optional[float] = None
    error: Optional[str] = None
    raw_text: str = ""
    fragment_count: int = field(default=0)


class SessionStore:
    """Thread-safe in-memory store for translation sessions.

    WHY: Request handlers and the background decode task all look up
    sessions concurrently. A centralized store with locking keeps the
    session table consistent.

    HOW: Sessions are stored in a plain dict keyed by ID. Mutations
    acquire a threading.Lock. The decoder inside a session is only ever
    written by its decode task; the store never touches it.

    RULES:
    - get_session() returns None for missing IDs (no exceptions)
    - create_session() raises ValueError when max_sessions is reached
    - cleanup_expired() removes terminal sessions older than the TTL
    """

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        max_sessions: int = 100,
    ) -> None:
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()
        self._ttl_seconds = ttl_seconds
        self.max_sessions = max_sessions

    def create_session(self, config: Optional[Dict[str, Any]] = None) -> Session:
        """Create a new session in PENDING state with a fresh decoder."""
        with self._lock:
            if len(self._sessions) >= self.max_sessions:
                raise ValueError(
                    "Maximum number of concurrent sessions ({}) reached".format(
                        self.max_sessions
                    )
                )

            session_id = uuid.uuid4().hex
            now = time.time()
            session = Session(
                id=session_id,
                status=SessionStatus.PENDING,
                config=config or {},
                decoder=OptionStreamDecoder(),
                created_at=now,
                updated_at=now,
            )
            self._sessions[session_id] = session

        logger.info("Created translation session %s", session_id)
        return session

    def get_session(self, session_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(session_id)

    def list_sessions(self) -> List[Session]:
        """Return all sessions, oldest first."""
        with self._lock:
            return sorted(self._sessions.values(), key=lambda s: s.created_at)

    def update_session(
        self,
        session_id: str,
        status: Optional[SessionStatus] = None,
        error: Optional[str] = None,
        fragment: Optional[str] = None,
    ) -> Optional[Session]:
        """Update a session's mutable fields.

        RULES:
        - Returns the updated Session, or None if session_id not found
        - Only non-None arguments are applied
        - fragment is appended to raw_text and counted
        - completed_at is set when status becomes COMPLETED or FAILED
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None

            now = time.time()

            if status is not None:
                session.status = status
            if error is not None:
                session.error = error
            if fragment is not None:
                session.raw_text += fragment
                session.fragment_count += 1

            session.updated_at = now

            if session.status in (SessionStatus.COMPLETED, SessionStatus.FAILED):
                if session.completed_at is None:
                    session.completed_at = now

            return session

    def delete_session(self, session_id: str) -> bool:
        """Delete a session, releasing anyone still waiting on its decoder."""
        with self._lock:
            session = self._sessions.pop(session_id, None)

        if session is None:
            return False

        if not session.decoder.completed:
            session.decoder.abandon()
        logger.info("Deleted translation session %s", session_id)
        return True

    def cleanup_expired(self) -> int:
        """Remove terminal sessions whose completed_at is older than the TTL.

        RULES:
        - Only COMPLETED and FAILED sessions are candidates
        - TTL is measured from completed_at, not created_at
        - Returns the count of removed sessions
        """
        now = time.time()
        expired: List[Session] = []

        with self._lock:
            for session_id, session in list(self._sessions.items()):
                if session.status not in (SessionStatus.COMPLETED, SessionStatus.FAILED):
                    continue
                if session.completed_at is None:
                    continue
                if now - session.completed_at > self._ttl_seconds:
                    expired.append(self._sessions.pop(session_id))

        for session in expired:
            logger.info(
                "Expired session %s (completed %.0fs ago)",
                session.id,
                now - session.completed_at,
            )

        return len(expired)
