"""
auth/store.py -- SQLAlchemy Core persistence layer for user credentials.

Pattern: Repository + Data Mapper.
CredentialStore is the repository; _row_to_user is the mapper.
Service and route code never touch SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  The password hash is written only through create_user(), set_password()
  and reset_password(), each of which hashes the plaintext with the injected
  PasswordHasher first. It is read only when a caller asks for the password
  projection (with_password=True); the default projection leaves it out.

  The reset digest and its expiry are written and cleared in the same
  statement, so a row never holds one without the other.

Timestamps are stored as fixed-width UTC strings (YYYY-MM-DDTHH:MM:SS.ffffffZ)
so string comparison in SQL orders them correctly.

DB path: auth/campusauth.db unless DATABASE_URL says otherwise.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, select, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, OperationalError

from auth.errors import DuplicateKey, StoreUnavailable
from auth.models import UserRecord
from auth.passwords import PasswordHasher

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'campusauth.db'}"

_TS_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("role", String(20), nullable=False, server_default="student"),
    Column("user_name", String(255)),
    Column("phone_number", String(30)),
    Column("branch_id", String(64)),
    Column("year", Integer),
    Column("student_code", String(64)),
    Column("password_reset_digest", String(64), index=True),  # sha256 hex
    Column("password_reset_expires_at", String(32)),
    Column("password_changed_at", String(32)),
    Column("created_at", String(32), nullable=False),
)

# Default projection: everything except the password hash.
_PUBLIC_COLUMNS = [c for c in _users.c if c.name != "password_hash"]


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


def _format_ts(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(_TS_FORMAT)


def _parse_ts(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.strptime(value, _TS_FORMAT).replace(tzinfo=timezone.utc)


def _now_ts() -> str:
    return _format_ts(datetime.now(timezone.utc))


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CredentialStore:
    """Repository for UserRecord entities.

    Usage:
        store = CredentialStore(PasswordHasher())
        user_id = store.create_user(UserRecord(email="a@x.com"), "Secret123")
        user = store.get_by_email("a@x.com", with_password=True)
        store.close()
    """

    def __init__(self, hasher: PasswordHasher, db_url: str = _DEFAULT_DB_URL) -> None:
        self._hasher = hasher
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        with self._connect() as conn:
            _metadata.create_all(conn)
            conn.commit()

    @contextmanager
    def _connect(self) -> Iterator[Connection]:
        """Open a connection, reporting an unreachable database as StoreUnavailable."""
        try:
            with self.engine.connect() as conn:
                yield conn
        except OperationalError as exc:
            raise StoreUnavailable() from exc

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self._connect() as conn:
                conn.execute(text("SELECT 1"))
        except StoreUnavailable:
            return False
        return True

    def get_by_email(self, email: str, with_password: bool = False) -> UserRecord | None:
        """Look up a user by email (stored lowercase). Returns None if not found."""
        query = self._select(with_password).where(_users.c.email == email.strip().lower())
        with self._connect() as conn:
            row = conn.execute(query).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int, with_password: bool = False) -> UserRecord | None:
        """Look up a user by primary key. Returns None if not found."""
        query = self._select(with_password).where(_users.c.id == user_id)
        with self._connect() as conn:
            row = conn.execute(query).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_by_reset_digest(self, digest: str, now: datetime) -> UserRecord | None:
        """Return the user holding this reset digest if it has not expired yet.

        Digest and expiry are checked in one query, so there is no window in
        which a matching digest is accepted after a separate expiry check.
        """
        query = self._select(with_password=False).where(
            (_users.c.password_reset_digest == digest) & (_users.c.password_reset_expires_at > _format_ts(now))
        )
        with self._connect() as conn:
            row = conn.execute(query).fetchone()
        return _row_to_user(row) if row is not None else None

    def count_users(self) -> int:
        with self._connect() as conn:
            result = conn.execute(text("SELECT COUNT(*) FROM users")).scalar()
        return result or 0

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(self, user: UserRecord, password: str) -> int:
        """Hash password, insert the user, and return its assigned database ID.

        Raises DuplicateKey if the email already exists.
        """
        password_hash = self._hasher.hash(password)
        now = _now_ts()
        try:
            with self._connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        email=user.email.strip().lower(),
                        password_hash=password_hash,
                        role=user.role,
                        user_name=user.user_name,
                        phone_number=user.phone_number,
                        branch_id=user.branch_id,
                        year=user.year,
                        student_code=user.student_code,
                        password_changed_at=now,
                        created_at=now,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise DuplicateKey("email") from exc
        return result.inserted_primary_key[0]

    def set_reset_token(self, user_id: int, digest: str, expires_at: datetime) -> bool:
        """Store a reset digest and its expiry, replacing any earlier pair.

        Returns True if a row was updated, False if user_id was not found.
        """
        with self._connect() as conn:
            result = conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(password_reset_digest=digest, password_reset_expires_at=_format_ts(expires_at))
            )
            conn.commit()
        return result.rowcount > 0

    def reset_password(self, user_id: int, digest: str, new_password: str) -> bool:
        """Set a new password and consume the reset digest in one statement.

        The WHERE clause requires the digest to still be present, so of two
        concurrent resets with the same token only one succeeds. Returns
        False if the digest was already consumed or replaced.
        """
        password_hash = self._hasher.hash(new_password)
        with self._connect() as conn:
            result = conn.execute(
                _users.update()
                .where((_users.c.id == user_id) & (_users.c.password_reset_digest == digest))
                .values(
                    password_hash=password_hash,
                    password_reset_digest=None,
                    password_reset_expires_at=None,
                    password_changed_at=_now_ts(),
                )
            )
            conn.commit()
        return result.rowcount > 0

    def set_password(self, user_id: int, new_password: str, clear_reset: bool = False) -> bool:
        """Hash and store a new password. Returns False if user_id was not found.

        clear_reset=True also drops any outstanding reset digest.
        """
        values: dict = {
            "password_hash": self._hasher.hash(new_password),
            "password_changed_at": _now_ts(),
        }
        if clear_reset:
            values["password_reset_digest"] = None
            values["password_reset_expires_at"] = None
        with self._connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**values))
            conn.commit()
        return result.rowcount > 0

    def purge_expired_reset_tokens(self, now: datetime) -> int:
        """Clear every reset digest whose expiry has passed. Returns rows touched."""
        with self._connect() as conn:
            result = conn.execute(
                _users.update()
                .where(
                    _users.c.password_reset_digest.is_not(None)
                    & (_users.c.password_reset_expires_at <= _format_ts(now))
                )
                .values(password_reset_digest=None, password_reset_expires_at=None)
            )
            conn.commit()
        return result.rowcount

    def close(self) -> None:
        self.engine.dispose()

    @staticmethod
    def _select(with_password: bool):
        return select(*_PUBLIC_COLUMNS, _users.c.password_hash) if with_password else select(*_PUBLIC_COLUMNS)


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> UserRecord:
    # password_hash is only present on rows fetched with the password projection.
    return UserRecord(
        id=row.id,
        email=row.email,
        role=row.role,
        user_name=row.user_name,
        phone_number=row.phone_number,
        branch_id=row.branch_id,
        year=row.year,
        student_code=row.student_code,
        password_hash=getattr(row, "password_hash", None),
        password_reset_digest=row.password_reset_digest,
        password_reset_expires_at=_parse_ts(row.password_reset_expires_at),
        password_changed_at=_parse_ts(row.password_changed_at),
        created_at=row.created_at,
    )
