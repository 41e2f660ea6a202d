from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from portal.database import Database, resolve_database_path
from portal.errors import ConflictError, StoreFailure
from portal.models import Identity


@pytest.fixture()
def database(tmp_path: Path) -> Database:
    db_path = tmp_path / "portal.sqlite3"
    db = Database(db_path)
    db.initialize()
    return db


def test_insert_and_find_user(database: Database) -> None:
    user = database.insert_user("Alice", "alice@x.com", "$2b$10$hash")

    record = database.find_user_by_email("alice@x.com")
    assert record is not None
    assert record.user == user
    assert record.password_hash == "$2b$10$hash"
    assert database.list_users() == [user]


def test_find_user_is_exact_match(database: Database) -> None:
    database.insert_user("Alice", "Alice@x.com", "hash")

    assert database.find_user_by_email("alice@x.com") is None
    assert database.find_user_by_email(" Alice@x.com") is None
    assert database.find_user_by_email("Alice@x.com") is not None


def test_duplicate_email_rejected_by_store(database: Database) -> None:
    database.insert_user("Alice", "alice@x.com", "hash")

    with pytest.raises(ConflictError):
        database.insert_user("Imposter", "alice@x.com", "other")

    assert [user.name for user in database.list_users()] == ["Alice"]


def test_initialize_is_repeatable(database: Database) -> None:
    database.insert_user("Alice", "alice@x.com", "hash")
    database.initialize()

    assert len(database.list_users()) == 1


def test_unreadable_store_raises_store_failure(tmp_path: Path) -> None:
    db_path = tmp_path / "corrupt.sqlite3"
    db_path.write_bytes(b"this is not a sqlite database" * 100)
    database = Database(db_path)

    with pytest.raises(StoreFailure):
        database.initialize()


def test_directory_path_raises_store_failure(tmp_path: Path) -> None:
    database = Database(tmp_path)

    with pytest.raises(StoreFailure):
        database.find_user_by_email("alice@x.com")


def test_resolve_database_path(tmp_path: Path) -> None:
    explicit = resolve_database_path(str(tmp_path / "custom.sqlite3"))
    assert explicit == (tmp_path / "custom.sqlite3").resolve()

    default = resolve_database_path(None)
    assert default.name == "portal.sqlite3"
    assert default.parent.name == "data"


def test_session_rows_round_trip(database: Database) -> None:
    expires_at = datetime(2024, 1, 1, 12, 30, tzinfo=timezone.utc)
    database.save_session("token-1", Identity(name="Alice", email="alice@x.com"), expires_at)

    loaded = database.load_session("token-1")

    assert loaded == (Identity(name="Alice", email="alice@x.com"), expires_at)
    assert database.load_session("missing") is None
    assert database.count_sessions() == 1


def test_touch_and_delete_session(database: Database) -> None:
    identity = Identity(name="Alice", email="alice@x.com")
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    database.save_session("token-1", identity, start)

    database.touch_session("token-1", start + timedelta(hours=1))
    assert database.load_session("token-1") == (identity, start + timedelta(hours=1))

    database.delete_session("token-1")
    database.delete_session("token-1")
    assert database.load_session("token-1") is None


def test_delete_expired_sessions(database: Database) -> None:
    identity = Identity(name="Alice", email="alice@x.com")
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    database.save_session("old", identity, now - timedelta(seconds=1))
    database.save_session("edge", identity, now)
    database.save_session("fresh", identity, now + timedelta(minutes=5))

    assert database.delete_expired_sessions(now) == 2
    assert database.count_sessions() == 1
    assert database.load_session("fresh") is not None
