"""SQLite-backed persistence for portal users and sessions."""
from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from .errors import ConflictError, StoreFailure
from .models import Identity, User, UserRecord


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the application database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "portal.sqlite3").resolve(strict=False)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _serialize_datetime(value: datetime) -> str:
    return value.isoformat()


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value)


class Database:
    """Simple wrapper around SQLite for persisting users.

    Emails are stored exactly as submitted and compared case-sensitively; the
    ``UNIQUE`` constraint on the column is what guarantees one row per email.
    """

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            raise StoreFailure(f"Unable to open user store at {self._path}") from exc
        try:
            with conn:
                yield conn
        except sqlite3.IntegrityError:
            raise
        except sqlite3.Error as exc:
            raise StoreFailure("User store operation failed") from exc
        finally:
            conn.close()

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        with self._transaction() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    email TEXT NOT NULL UNIQUE,
                    password_hash TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS sessions (
                    token TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    email TEXT NOT NULL,
                    expires_at REAL NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_sessions_expires_at ON sessions(expires_at);
                """
            )

    # ------------------------------------------------------------------
    # User management
    # ------------------------------------------------------------------
    def insert_user(self, name: str, email: str, password_hash: str) -> User:
        """Persist a new user; raises :class:`ConflictError` for a taken email."""

        created_at = _current_timestamp()
        try:
            with self._transaction() as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO users (name, email, password_hash, created_at)
                    VALUES (?, ?, ?, ?)
                    """,
                    (name, email, password_hash, _serialize_datetime(created_at)),
                )
                user_id = cursor.lastrowid
        except sqlite3.IntegrityError as exc:
            raise ConflictError("Email already registered.") from exc

        return User(id=int(user_id), name=name, email=email, created_at=created_at)

    def find_user_by_email(self, email: str) -> Optional[UserRecord]:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
        if row is None:
            return None
        return UserRecord(user=self._row_to_user(row), password_hash=str(row["password_hash"]))

    def list_users(self) -> List[User]:
        with self._transaction() as conn:
            rows = conn.execute("SELECT * FROM users ORDER BY id").fetchall()
        return [self._row_to_user(row) for row in rows]

    # ------------------------------------------------------------------
    # Session storage
    # ------------------------------------------------------------------
    def save_session(self, token: str, identity: Identity, expires_at: datetime) -> None:
        with self._transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO sessions (token, name, email, expires_at) VALUES (?, ?, ?, ?)",
                (token, identity.name, identity.email, expires_at.timestamp()),
            )

    def load_session(self, token: str) -> Optional[Tuple[Identity, datetime]]:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM sessions WHERE token = ?", (token,)).fetchone()
        if row is None:
            return None
        identity = Identity(name=str(row["name"]), email=str(row["email"]))
        return identity, datetime.fromtimestamp(float(row["expires_at"]), timezone.utc)

    def touch_session(self, token: str, expires_at: datetime) -> None:
        with self._transaction() as conn:
            conn.execute(
                "UPDATE sessions SET expires_at = ? WHERE token = ?",
                (expires_at.timestamp(), token),
            )

    def delete_session(self, token: str) -> None:
        with self._transaction() as conn:
            conn.execute("DELETE FROM sessions WHERE token = ?", (token,))

    def delete_expired_sessions(self, now: datetime) -> int:
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM sessions WHERE expires_at <= ?", (now.timestamp(),))
            return cursor.rowcount

    def count_sessions(self) -> int:
        with self._transaction() as conn:
            row = conn.execute("SELECT COUNT(*) AS total FROM sessions").fetchone()
        return int(row["total"])

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            id=int(row["id"]),
            name=str(row["name"]),
            email=str(row["email"]),
            created_at=_parse_datetime(str(row["created_at"])),
        )


__all__ = ["Database", "resolve_database_path"]
