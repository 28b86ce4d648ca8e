"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper. UserStore is the repository; _row_to_user
is the mapper. Service, guard and route code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

Errors:
  UNIQUE(username) violations raise DuplicateUsername. Updates and deletes
  against a missing id raise UserNotFound. Any other SQLAlchemyError
  (locked database, connection loss) raises ServiceUnavailable so callers
  never act on a half-finished read.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import DuplicateUsername, ServiceUnavailable, UserNotFound
from auth.models import Role, User

logger = logging.getLogger("sessionguard.auth")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),  # uuid4 hex
    Column("username", String(255), nullable=False, unique=True),
    Column("password_digest", Text, nullable=False),
    Column("role", String(16), nullable=False, server_default=Role.USER.value),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore("sqlite:///auth.db")
        user = store.create("alice", credential.hash("secret1"))
        store.find_by_username("alice")
        store.close()
    """

    def __init__(self, db_url: str, timeout_seconds: float = 5.0) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
            connect_args["timeout"] = timeout_seconds
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find_by_id(self, user_id: str) -> User | None:
        """Look up a user by id. Returns None if not found."""
        return self._fetch_one(_users.select().where(_users.c.id == user_id))

    def find_by_username(self, username: str) -> User | None:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        return self._fetch_one(_users.select().where(_users.c.username == username))

    def count_users(self) -> int:
        try:
            with self.engine.connect() as conn:
                result = conn.execute(select(func.count()).select_from(_users)).scalar()
        except SQLAlchemyError as exc:
            raise self._unavailable("count users", exc) from exc
        return result or 0

    def list_users(
        self,
        username: str | None = None,
        role: Role | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[User], int]:
        """Return one page of users plus the total matching count.

        username filters by case-insensitive substring. Results are ordered by
        username so pages are stable.
        """
        conditions = []
        if username:
            conditions.append(func.lower(_users.c.username).like(f"%{_escape_like(username.lower())}%", escape="\\"))
        if role is not None:
            conditions.append(_users.c.role == Role(role).value)

        query = _users.select()
        count_query = select(func.count()).select_from(_users)
        for condition in conditions:
            query = query.where(condition)
            count_query = count_query.where(condition)
        query = query.order_by(_users.c.username).limit(page_size).offset((max(page, 1) - 1) * page_size)
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(query).fetchall()
                total = conn.execute(count_query).scalar() or 0
        except SQLAlchemyError as exc:
            raise self._unavailable("list users", exc) from exc
        return [_row_to_user(r) for r in rows], total

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, username: str, password_digest: str, role: Role = Role.USER) -> User:
        """Insert a new user and return it with its assigned id.

        Raises DuplicateUsername if the username is taken, including the case
        where a concurrent request inserted it after the caller's own check.
        """
        user = User(
            id=uuid.uuid4().hex,
            username=username,
            password_digest=password_digest,
            role=Role(role),
            created_at=_now_iso(),
        )
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    _users.insert().values(
                        id=user.id,
                        username=user.username,
                        password_digest=user.password_digest,
                        role=user.role.value,
                        created_at=user.created_at,
                    )
                )
        except IntegrityError as exc:
            raise DuplicateUsername() from exc
        except SQLAlchemyError as exc:
            raise self._unavailable("create user", exc) from exc
        return user

    def update_password_digest(self, user_id: str, password_digest: str) -> None:
        """Replace the stored digest. Raises UserNotFound if user_id is unknown."""
        self.update_user(user_id, password_digest=password_digest)

    def update_user(
        self,
        user_id: str,
        username: str | None = None,
        password_digest: str | None = None,
        role: Role | None = None,
    ) -> User:
        """Update the given fields and return the fresh record.

        Fields left as None are unchanged. Renaming onto an existing username
        raises DuplicateUsername; an unknown user_id raises UserNotFound.
        """
        fields: dict = {}
        if username is not None:
            fields["username"] = username
        if password_digest is not None:
            fields["password_digest"] = password_digest
        if role is not None:
            fields["role"] = Role(role).value

        if fields:
            try:
                with self.engine.begin() as conn:
                    result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
            except IntegrityError as exc:
                raise DuplicateUsername() from exc
            except SQLAlchemyError as exc:
                raise self._unavailable("update user", exc) from exc
            if result.rowcount == 0:
                raise UserNotFound()

        user = self.find_by_id(user_id)
        if user is None:
            raise UserNotFound()
        return user

    def delete_user(self, user_id: str) -> None:
        """Permanently delete a user record. Raises UserNotFound if absent."""
        try:
            with self.engine.begin() as conn:
                result = conn.execute(_users.delete().where(_users.c.id == user_id))
        except SQLAlchemyError as exc:
            raise self._unavailable("delete user", exc) from exc
        if result.rowcount == 0:
            raise UserNotFound()

    def ensure_default_admin(self, username: str, password_digest: str) -> User | None:
        """Seed an ADMIN account when the table is empty.

        Returns the created user, or None if any user already exists. Safe to
        call on every startup. A concurrent seeder losing the unique-username
        race is treated as "already seeded".
        """
        if self.count_users() > 0:
            return None
        try:
            return self.create(username, password_digest, role=Role.ADMIN)
        except DuplicateUsername:
            return None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _fetch_one(self, query) -> User | None:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(query).fetchone()
        except SQLAlchemyError as exc:
            raise self._unavailable("read user", exc) from exc
        return _row_to_user(row) if row is not None else None

    @staticmethod
    def _unavailable(operation: str, exc: Exception) -> ServiceUnavailable:
        logger.error("User store %s failed: %s", operation, exc)
        return ServiceUnavailable()

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


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        password_digest=row.password_digest,
        role=Role(row.role),
        created_at=row.created_at,
    )
