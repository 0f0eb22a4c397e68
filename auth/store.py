"""
auth/store.py -- Credential store interface and its SQLAlchemy Core implementation.

Pattern: Repository + Data Mapper. CredentialStore is the narrow interface the
auth flow depends on; UserStore is the repository that implements it;
_row_to_user is the mapper. Route and service code never touches SQL directly.

Contract:
  find_by_email / find_by_id / update / delete return None when no row
  matches. Mapping "absent" to NotFoundError is the caller's job -- the store
  never decides that an empty result is an error.

  Every SQLAlchemy failure is re-raised as StoreError. A UNIQUE violation is
  re-raised as ConstraintViolation (a StoreError subclass) so the auth flow
  can treat a lost check-then-insert race on users.email exactly like the
  pre-check failure.

Security:
  All queries use bound parameters. No f-strings in SQL.
  update() only accepts the column names in _UPDATABLE_FIELDS.

DB path: acquisitions.db at the repository root unless DATABASE_URL is set.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import ConstraintViolation, StoreError
from auth.models import Role, UserRecord

logger = logging.getLogger("acquisitions.store")

# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------


class CredentialStore(Protocol):
    """What the auth flow needs from user persistence. Backed externally."""

    def find_by_email(self, email: str) -> Optional[UserRecord]: ...

    def find_by_id(self, user_id: int) -> Optional[UserRecord]: ...

    def insert(self, fields: dict[str, Any]) -> UserRecord: ...

    def update(self, user_id: int, fields: dict[str, Any]) -> Optional[UserRecord]: ...

    def delete(self, user_id: int) -> Optional[UserRecord]: ...

    def list_all(self) -> list[UserRecord]: ...


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    # UNIQUE is the final authority on email uniqueness; the flow's pre-check
    # only produces a friendlier error in the common case.
    Column("email", String(255), nullable=False, unique=True),
    Column("password", Text, nullable=False),
    Column("role", String(20), nullable=False, server_default=Role.user.value),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_INSERT_FIELDS = {"name", "email", "role", "password_hash"}
_UPDATABLE_FIELDS = {"name", "email", "role", "password_hash"}


# ---------------------------------------------------------------------------
# SQLite connection setup
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Readers keep going while a sign-up is being written. Runs on every new pooled connection."""
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_columns(fields: dict[str, Any]) -> dict[str, Any]:
    """Translate domain field names to column values (password_hash -> password, Role -> str)."""
    values = dict(fields)
    if "password_hash" in values:
        values["password"] = values.pop("password_hash")
    if "role" in values:
        values["role"] = Role(values["role"]).value
    return values


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """SQLAlchemy Core implementation of CredentialStore.

    Usage:
        store = UserStore("sqlite:///:memory:")
        record = store.insert({"name": "Alice", "email": "alice@x.com", "role": "user", "password_hash": h})
        store.find_by_email("alice@x.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_by_email(self, email: str) -> Optional[UserRecord]:
        """Look up a user by exact email (case-sensitive). Returns None if not found."""
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        except SQLAlchemyError as exc:
            raise _store_error("find_by_email", exc) from exc
        return _row_to_user(row) if row is not None else None

    def find_by_id(self, user_id: int) -> Optional[UserRecord]:
        """Look up a user by primary key. Returns None if not found."""
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        except SQLAlchemyError as exc:
            raise _store_error("find_by_id", exc) from exc
        return _row_to_user(row) if row is not None else None

    def list_all(self) -> list[UserRecord]:
        """Return all users ordered by id."""
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(_users.select().order_by(_users.c.id)).fetchall()
        except SQLAlchemyError as exc:
            raise _store_error("list_all", exc) from exc
        return [_row_to_user(r) for r in rows]

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, fields: dict[str, Any]) -> UserRecord:
        """Insert a new user and return the stored record.

        Raises ConstraintViolation if the email already exists -- callers
        treat it as the authoritative duplicate signal.
        """
        unknown = set(fields) - _INSERT_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {unknown!r}")
        now = _now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(_users.insert().values(**_to_columns(fields), created_at=now, updated_at=now))
                conn.commit()
                user_id = result.inserted_primary_key[0]
                row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        except IntegrityError as exc:
            raise ConstraintViolation("users.email must be unique") from exc
        except SQLAlchemyError as exc:
            raise _store_error("insert", exc) from exc
        return _row_to_user(row)

    def update(self, user_id: int, fields: dict[str, Any]) -> Optional[UserRecord]:
        """Update mutable fields and stamp updated_at.

        Accepted fields: name, email, role, password_hash.
        Returns the updated record, or None if user_id was not found.
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {unknown!r}")
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.update().where(_users.c.id == user_id).values(**_to_columns(fields), updated_at=_now_iso())
                )
                conn.commit()
                if result.rowcount == 0:
                    return None
                row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        except IntegrityError as exc:
            raise ConstraintViolation("users.email must be unique") from exc
        except SQLAlchemyError as exc:
            raise _store_error("update", exc) from exc
        return _row_to_user(row)

    def delete(self, user_id: int) -> Optional[UserRecord]:
        """Permanently delete a user. Returns the deleted record, or None if not found."""
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
                if row is None:
                    return None
                conn.execute(_users.delete().where(_users.c.id == user_id))
                conn.commit()
        except SQLAlchemyError as exc:
            raise _store_error("delete", exc) from exc
        return _row_to_user(row)

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> UserRecord:
    return UserRecord(
        id=row.id,
        name=row.name,
        email=row.email,
        role=Role(row.role),
        password_hash=row.password,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _store_error(operation: str, exc: SQLAlchemyError) -> StoreError:
    logger.error("Store %s failed: %s", operation, exc)
    return StoreError(f"Credential store {operation} failed")
