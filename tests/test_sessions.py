from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from portal.database import Database
from portal.sessions import DEFAULT_SESSION_TTL, MemorySessionStore, SessionManager


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


def test_default_ttl_is_one_hour() -> None:
    manager = SessionManager()

    assert manager.ttl == DEFAULT_SESSION_TTL == timedelta(hours=1)
    assert manager.cookie_max_age == 3600


def test_create_and_get(clock: FakeClock) -> None:
    manager = SessionManager(clock=clock)

    session = manager.create("A", "a@x.com")
    fetched = manager.get(session.token)

    assert fetched is not None
    assert fetched.name == "A"
    assert fetched.email == "a@x.com"
    assert session.expires_at == clock.now + timedelta(hours=1)


def test_tokens_are_unique(clock: FakeClock) -> None:
    manager = SessionManager(clock=clock)

    tokens = {manager.create("A", "a@x.com").token for _ in range(20)}

    assert len(tokens) == 20


def test_expired_session_is_rejected_and_removed(clock: FakeClock) -> None:
    manager = SessionManager(ttl=timedelta(minutes=10), clock=clock)
    session = manager.create("A", "a@x.com")

    clock.advance(timedelta(minutes=10))

    assert manager.get(session.token) is None
    assert len(manager) == 0


def test_sliding_session_extends_on_access(clock: FakeClock) -> None:
    manager = SessionManager(ttl=timedelta(minutes=10), clock=clock)
    session = manager.create("A", "a@x.com")

    clock.advance(timedelta(minutes=8))
    refreshed = manager.get(session.token)
    assert refreshed is not None
    assert refreshed.expires_at == clock.now + timedelta(minutes=10)

    clock.advance(timedelta(minutes=8))
    assert manager.get(session.token) is not None


def test_fixed_session_does_not_slide(clock: FakeClock) -> None:
    manager = SessionManager(ttl=timedelta(minutes=10), sliding=False, clock=clock)
    session = manager.create("A", "a@x.com")

    clock.advance(timedelta(minutes=8))
    assert manager.get(session.token) is not None

    clock.advance(timedelta(minutes=3))
    assert manager.get(session.token) is None


def test_destroy_is_idempotent(clock: FakeClock) -> None:
    manager = SessionManager(clock=clock)
    session = manager.create("A", "a@x.com")

    manager.destroy(session.token)
    manager.destroy(session.token)
    manager.destroy(None)

    assert manager.get(session.token) is None


def test_purge_expired(clock: FakeClock) -> None:
    manager = SessionManager(ttl=timedelta(minutes=10), clock=clock)
    manager.create("A", "a@x.com")
    clock.advance(timedelta(minutes=5))
    fresh = manager.create("B", "b@x.com")
    clock.advance(timedelta(minutes=6))

    assert manager.purge_expired() == 1
    assert len(manager) == 1
    assert manager.get(fresh.token) is not None


def test_rejects_non_positive_ttl() -> None:
    with pytest.raises(ValueError):
        SessionManager(ttl=timedelta(0))


def test_create_reclaims_abandoned_sessions(clock: FakeClock) -> None:
    manager = SessionManager(ttl=timedelta(minutes=10), clock=clock)
    for index in range(20):
        manager.create("A", f"a{index}@x.com")
    assert len(manager) == 20

    clock.advance(timedelta(minutes=11))
    fresh = manager.create("B", "b@x.com")

    assert len(manager) == 1
    assert manager.get(fresh.token) is not None


def test_default_store_is_in_memory() -> None:
    store = MemorySessionStore()
    manager = SessionManager(store=store)

    session = manager.create("A", "a@x.com")

    assert store.count_sessions() == 1
    assert store.load_session(session.token) is not None


@pytest.fixture()
def database(tmp_path: Path) -> Database:
    db = Database(tmp_path / "portal.sqlite3")
    db.initialize()
    return db


def test_database_sessions_survive_new_manager(database: Database, clock: FakeClock) -> None:
    first = SessionManager(store=database, clock=clock)
    session = first.create("A", "a@x.com")

    restarted = SessionManager(store=database, clock=clock)
    fetched = restarted.get(session.token)

    assert fetched is not None
    assert fetched.name == "A"
    assert fetched.email == "a@x.com"

    restarted.destroy(session.token)
    assert first.get(session.token) is None


def test_database_sessions_expire_and_slide(database: Database, clock: FakeClock) -> None:
    manager = SessionManager(ttl=timedelta(minutes=10), store=database, clock=clock)
    session = manager.create("A", "a@x.com")

    clock.advance(timedelta(minutes=8))
    assert manager.get(session.token) is not None
    clock.advance(timedelta(minutes=8))
    assert manager.get(session.token) is not None

    clock.advance(timedelta(minutes=10))
    assert manager.get(session.token) is None
    assert len(manager) == 0


def test_database_store_reclaims_abandoned_sessions(database: Database, clock: FakeClock) -> None:
    manager = SessionManager(ttl=timedelta(minutes=10), store=database, clock=clock)
    for index in range(5):
        manager.create("A", f"a{index}@x.com")

    clock.advance(timedelta(minutes=11))
    manager.create("B", "b@x.com")

    assert database.count_sessions() == 1
