"""
auth/sessions.py -- TTL'd single-row-per-user session table.

The session record is the server-side source of truth for which token is
currently valid for a user. A signed token that is not the stored value is
treated as revoked, even when its signature and exp still check out.

Invariants:
  One row per user: user_id is the primary key. put() is a single
  INSERT ... ON CONFLICT DO UPDATE statement, so concurrent put/put or
  put/delete on the same user resolve to whichever statement commits last.
  There is no read-modify-write and nothing to merge.

  Expiry is store-managed: get() treats a row whose expires_at has passed as
  absent, so callers cannot tell natural expiry from logout. purge_expired()
  only reclaims space; correctness never depends on it running.

Storage errors (locked DB past the busy timeout, connection failures) are
raised as ServiceUnavailable so the caller answers "not authenticated right
now" instead of making a partial decision.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from sqlalchemy import Column, Float, MetaData, String, Table, Text, create_engine, delete, event, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from auth.errors import ServiceUnavailable

logger = logging.getLogger("sessionguard.auth")

_metadata = MetaData()

_sessions = Table(
    "sessions",
    _metadata,
    Column("user_id", String(64), primary_key=True),
    Column("token", Text, nullable=False),
    Column("expires_at", Float, nullable=False),  # epoch seconds
)


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block on the login writer."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore:
    """Repository for the current-session record of each user.

    Usage:
        sessions = SessionStore("sqlite:///sessions.db")
        sessions.put(user_id, token, ttl_seconds=86400)
        sessions.get(user_id)      # token or None
        sessions.delete(user_id)   # no-op if absent
        sessions.close()
    """

    def __init__(
        self,
        db_url: str,
        clock: Callable[[], datetime] = _utcnow,
        timeout_seconds: float = 5.0,
    ) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
            connect_args["timeout"] = timeout_seconds
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        self._clock = clock
        _metadata.create_all(self.engine)

    def put(self, user_id: str, token: str, ttl_seconds: int) -> None:
        """Replace the session record for user_id and reset its expiry."""
        expires_at = (self._clock() + timedelta(seconds=ttl_seconds)).timestamp()
        stmt = sqlite_insert(_sessions).values(user_id=user_id, token=token, expires_at=expires_at)
        stmt = stmt.on_conflict_do_update(
            index_elements=[_sessions.c.user_id],
            set_={"token": stmt.excluded.token, "expires_at": stmt.excluded.expires_at},
        )
        try:
            with self.engine.begin() as conn:
                conn.execute(stmt)
        except SQLAlchemyError as exc:
            logger.error("Session write failed for user %s: %s", user_id, exc)
            raise ServiceUnavailable() from exc

    def get(self, user_id: str) -> str | None:
        """Return the current token for user_id, or None if absent or expired."""
        try:
            with self.engine.connect() as conn:
                row = conn.execute(
                    select(_sessions.c.token, _sessions.c.expires_at).where(_sessions.c.user_id == user_id)
                ).fetchone()
        except SQLAlchemyError as exc:
            logger.error("Session read failed for user %s: %s", user_id, exc)
            raise ServiceUnavailable() from exc
        if row is None:
            return None
        if row.expires_at <= self._clock().timestamp():
            return None
        return row.token

    def delete(self, user_id: str) -> None:
        """Remove the session record for user_id. Absent keys are a no-op."""
        try:
            with self.engine.begin() as conn:
                conn.execute(delete(_sessions).where(_sessions.c.user_id == user_id))
        except SQLAlchemyError as exc:
            logger.error("Session delete failed for user %s: %s", user_id, exc)
            raise ServiceUnavailable() from exc

    def purge_expired(self) -> int:
        """Delete every expired record. Returns the number of rows removed."""
        try:
            with self.engine.begin() as conn:
                result = conn.execute(delete(_sessions).where(_sessions.c.expires_at <= self._clock().timestamp()))
        except SQLAlchemyError as exc:
            logger.error("Session purge failed: %s", exc)
            raise ServiceUnavailable() from exc
        return result.rowcount

    def ping(self) -> bool:
        """Return True if the backing database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(select(1))
        except SQLAlchemyError:
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()
