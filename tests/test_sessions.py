"""Unit tests for the in-memory translation session store.

WHY: The session store is the central state manager for the HTTP API.
Incorrect status transitions, missing cleanup, or a deleted session
whose readers are never released would leave requests hanging.

HOW: Tests are organized by class, one per SessionStore method or concern:
  - TestSessionCreation: create_session basics and limits
  - TestSessionRetrieval: get_session and list_sessions
  - TestSessionUpdate: status transitions, fragments, terminal states
  - TestSessionDeletion: delete releases decoder readers
  - TestTTLCleanup: expiry logic and boundary conditions
  - TestThreadSafety: concurrent access doesn't corrupt state

RULES:
- Each test creates its own SessionStore instance
- Time-dependent tests use monkeypatch to control time.time()
"""

from __future__ import annotations

import asyncio
import threading
import time

import pytest

from stream_translator.core.decoder import OptionStreamDecoder
from stream_translator.server.sessions import (
    DEFAULT_TTL_SECONDS,
    SessionStatus,
    SessionStore,
)

CONFIG = {
    "text": "Hello",
    "target_language": "ko",
    "native_language": "en",
    "option_count": 3,
    "situation": None,
}


# ---------------------------------------------------------------------------
# TestSessionCreation
# ---------------------------------------------------------------------------


class TestSessionCreation:
    """SessionStore.create_session() creates a session in PENDING state."""

    def test_creates_pending_session(self):
        session = SessionStore().create_session(CONFIG)
        assert session.status == SessionStatus.PENDING

    def test_assigns_unique_hex_id(self):
        store = SessionStore()
        first = store.create_session(CONFIG)
        second = store.create_session(CONFIG)
        assert first.id != second.id
        assert len(first.id) == 32
        int(first.id, 16)

    def test_owns_fresh_decoder(self):
        store = SessionStore()
        first = store.create_session(CONFIG)
        second = store.create_session(CONFIG)
        assert isinstance(first.decoder, OptionStreamDecoder)
        assert first.decoder is not second.decoder
        assert not first.decoder.completed

    def test_stores_config(self):
        session = SessionStore().create_session(CONFIG)
        assert session.config["text"] == "Hello"

    def test_defaults(self):
        session = SessionStore().create_session()
        assert session.config == {}
        assert session.error is None
        assert session.completed_at is None
        assert session.raw_text == ""
        assert session.fragment_count == 0

    def test_max_sessions_enforced(self):
        store = SessionStore(max_sessions=2)
        store.create_session(CONFIG)
        store.create_session(CONFIG)
        with pytest.raises(ValueError, match="Maximum number"):
            store.create_session(CONFIG)


# ---------------------------------------------------------------------------
# TestSessionRetrieval
# ---------------------------------------------------------------------------


class TestSessionRetrieval:
    """get_session() and list_sessions()."""

    def test_get_existing(self):
        store = SessionStore()
        session = store.create_session(CONFIG)
        assert store.get_session(session.id) is session

    def test_get_missing_returns_none(self):
        assert SessionStore().get_session("nope") is None

    def test_list_oldest_first(self):
        store = SessionStore()
        newer = store.create_session(CONFIG)
        older = store.create_session(CONFIG)
        older.created_at = newer.created_at - 60
        assert store.list_sessions() == [older, newer]


# ---------------------------------------------------------------------------
# TestSessionUpdate
# ---------------------------------------------------------------------------


class TestSessionUpdate:
    """update_session() applies only the given fields."""

    def test_status_transition(self):
        store = SessionStore()
        session = store.create_session(CONFIG)
        store.update_session(session.id, status=SessionStatus.STREAMING)
        assert session.status == SessionStatus.STREAMING
        assert session.completed_at is None

    def test_fragments_accumulate(self):
        store = SessionStore()
        session = store.create_session(CONFIG)
        store.update_session(session.id, fragment="5||")
        store.update_session(session.id, fragment="||Hel")
        assert session.raw_text == "5||||Hel"
        assert session.fragment_count == 2

    def test_completed_sets_completed_at(self):
        store = SessionStore()
        session = store.create_session(CONFIG)
        store.update_session(session.id, status=SessionStatus.COMPLETED)
        assert session.completed_at is not None

    def test_failed_records_error(self):
        store = SessionStore()
        session = store.create_session(CONFIG)
        store.update_session(session.id, status=SessionStatus.FAILED, error="reset")
        assert session.error == "reset"
        assert session.completed_at is not None

    def test_completed_at_not_overwritten(self, monkeypatch):
        store = SessionStore()
        session = store.create_session(CONFIG)
        monkeypatch.setattr(time, "time", lambda: 1000.0)
        store.update_session(session.id, status=SessionStatus.COMPLETED)
        monkeypatch.setattr(time, "time", lambda: 2000.0)
        store.update_session(session.id, error="late")
        assert session.completed_at == 1000.0
        assert session.updated_at == 2000.0

    def test_missing_session_returns_none(self):
        assert SessionStore().update_session("nope", fragment="x") is None


# ---------------------------------------------------------------------------
# TestSessionDeletion
# ---------------------------------------------------------------------------


class TestSessionDeletion:
    """delete_session() removes the session and releases its readers."""

    def test_delete_existing(self):
        store = SessionStore()
        session = store.create_session(CONFIG)
        assert store.delete_session(session.id) is True
        assert store.get_session(session.id) is None

    def test_delete_missing(self):
        assert SessionStore().delete_session("nope") is False

    def test_delete_abandons_running_decoder(self):
        store = SessionStore()
        session = store.create_session(CONFIG)

        async def scenario():
            waiter = asyncio.create_task(session.decoder.next_update())
            await asyncio.sleep(0)
            store.delete_session(session.id)
            return await waiter

        assert asyncio.run(scenario()) is None
        assert session.decoder.completed


# ---------------------------------------------------------------------------
# TestTTLCleanup
# ---------------------------------------------------------------------------


class TestTTLCleanup:
    """cleanup_expired() removes only old terminal sessions."""

    def test_default_ttl_is_one_hour(self):
        assert DEFAULT_TTL_SECONDS == 3600

    def test_expired_completed_removed(self, monkeypatch):
        store = SessionStore(ttl_seconds=10)
        session = store.create_session(CONFIG)
        monkeypatch.setattr(time, "time", lambda: 1000.0)
        store.update_session(session.id, status=SessionStatus.COMPLETED)
        monkeypatch.setattr(time, "time", lambda: 1011.0)
        assert store.cleanup_expired() == 1
        assert store.get_session(session.id) is None

    def test_recent_completed_kept(self, monkeypatch):
        store = SessionStore(ttl_seconds=10)
        session = store.create_session(CONFIG)
        monkeypatch.setattr(time, "time", lambda: 1000.0)
        store.update_session(session.id, status=SessionStatus.FAILED, error="x")
        monkeypatch.setattr(time, "time", lambda: 1010.0)
        assert store.cleanup_expired() == 0

    def test_streaming_never_expires(self, monkeypatch):
        store = SessionStore(ttl_seconds=10)
        session = store.create_session(CONFIG)
        store.update_session(session.id, status=SessionStatus.STREAMING)
        monkeypatch.setattr(time, "time", lambda: 10_000_000_000.0)
        assert store.cleanup_expired() == 0


# ---------------------------------------------------------------------------
# TestThreadSafety
# ---------------------------------------------------------------------------


class TestThreadSafety:
    """Concurrent fragment updates are all counted."""

    def test_concurrent_fragment_updates(self):
        store = SessionStore()
        session = store.create_session(CONFIG)

        def worker():
            for _ in range(100):
                store.update_session(session.id, fragment="x")

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert session.fragment_count == 800
        assert len(session.raw_text) == 800
