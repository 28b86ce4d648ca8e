"""Unit tests for auth/sessions.py -- the TTL'd session table.

Covers:
- put / get / overwrite / delete semantics (one record per user)
- Expiry judged by the injected clock; put() resets it
- purge_expired() removes only expired rows
- Storage failure surfaces as ServiceUnavailable
- Concurrent writers on one user leave exactly one of their values
"""

from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import text

from auth.errors import ServiceUnavailable
from auth.sessions import SessionStore

_DAY = 24 * 60 * 60


def test_get_absent_is_none(sessions):
    assert sessions.get("nobody") is None


def test_put_then_get(sessions):
    sessions.put("u1", "token-a", _DAY)
    assert sessions.get("u1") == "token-a"


def test_put_overwrites_previous_value(sessions):
    sessions.put("u1", "token-a", _DAY)
    sessions.put("u1", "token-b", _DAY)
    assert sessions.get("u1") == "token-b"
    with sessions.engine.connect() as conn:
        assert conn.execute(text("SELECT COUNT(*) FROM sessions WHERE user_id = 'u1'")).scalar() == 1


def test_users_are_independent(sessions):
    sessions.put("u1", "token-a", _DAY)
    sessions.put("u2", "token-b", _DAY)
    sessions.delete("u1")
    assert sessions.get("u1") is None
    assert sessions.get("u2") == "token-b"


def test_delete_is_idempotent(sessions):
    sessions.put("u1", "token-a", _DAY)
    sessions.delete("u1")
    sessions.delete("u1")
    sessions.delete("never-existed")
    assert sessions.get("u1") is None


def test_record_expires_after_ttl(sessions, clock):
    sessions.put("u1", "token-a", 60)
    clock.advance(seconds=59)
    assert sessions.get("u1") == "token-a"
    clock.advance(seconds=1)
    assert sessions.get("u1") is None


def test_put_resets_expiry(sessions, clock):
    sessions.put("u1", "token-a", 60)
    clock.advance(seconds=50)
    sessions.put("u1", "token-b", 60)
    clock.advance(seconds=50)
    assert sessions.get("u1") == "token-b"


def test_purge_expired_removes_only_expired(sessions, clock):
    sessions.put("short", "token-a", 60)
    sessions.put("long", "token-b", _DAY)
    clock.advance(seconds=120)
    assert sessions.purge_expired() == 1
    assert sessions.get("long") == "token-b"
    assert sessions.purge_expired() == 0


def test_storage_failure_is_service_unavailable(sessions):
    with sessions.engine.begin() as conn:
        conn.execute(text("DROP TABLE sessions"))
    with pytest.raises(ServiceUnavailable):
        sessions.get("u1")
    with pytest.raises(ServiceUnavailable):
        sessions.put("u1", "token-a", _DAY)
    with pytest.raises(ServiceUnavailable):
        sessions.delete("u1")


def test_ping(sessions):
    assert sessions.ping() is True


def test_concurrent_puts_leave_one_winner(tmp_path):
    store = SessionStore(f"sqlite:///{tmp_path / 'sessions.db'}")
    written = [f"token-{i}" for i in range(40)]
    try:
        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lambda t: store.put("u1", t, _DAY), written))
        assert store.get("u1") in written
        with store.engine.connect() as conn:
            assert conn.execute(text("SELECT COUNT(*) FROM sessions")).scalar() == 1
    finally:
        store.close()
