"""Session handling for the members portal.

:class:`SessionManager` owns token generation and expiry rules and keeps the
records in a session store. Two stores share the same method names:
:class:`MemorySessionStore` below, and :class:`portal.database.Database`,
whose ``sessions`` table lets sessions survive restarts and be shared by
several workers.
"""

from __future__ import annotations

import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional, Tuple

from .models import Identity, Session

DEFAULT_SESSION_TTL = timedelta(hours=1)


@dataclass
class _SessionRecord:
    identity: Identity
    expires_at: datetime


class MemorySessionStore:
    """Process-local session records guarded by a lock."""

    def __init__(self) -> None:
        self._sessions: Dict[str, _SessionRecord] = {}
        self._lock = threading.Lock()

    def save_session(self, token: str, identity: Identity, expires_at: datetime) -> None:
        with self._lock:
            self._sessions[token] = _SessionRecord(identity=identity, expires_at=expires_at)

    def load_session(self, token: str) -> Optional[Tuple[Identity, datetime]]:
        with self._lock:
            record = self._sessions.get(token)
            if record is None:
                return None
            return record.identity, record.expires_at

    def touch_session(self, token: str, expires_at: datetime) -> None:
        with self._lock:
            record = self._sessions.get(token)
            if record is not None:
                record.expires_at = expires_at

    def delete_session(self, token: str) -> None:
        with self._lock:
            self._sessions.pop(token, None)

    def delete_expired_sessions(self, now: datetime) -> int:
        with self._lock:
            expired = [token for token, record in self._sessions.items() if record.expires_at <= now]
            for token in expired:
                del self._sessions[token]
        return len(expired)

    def count_sessions(self) -> int:
        with self._lock:
            return len(self._sessions)


class SessionManager:
    """Generate, validate, and revoke browser sessions."""

    def __init__(
        self,
        *,
        ttl: timedelta = DEFAULT_SESSION_TTL,
        sliding: bool = True,
        store: Optional[Any] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        if ttl <= timedelta(0):
            raise ValueError("Session TTL must be positive")
        self._ttl = ttl
        self._sliding = sliding
        self._store = store if store is not None else MemorySessionStore()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    @property
    def sliding(self) -> bool:
        return self._sliding

    @property
    def cookie_max_age(self) -> int:
        return int(self._ttl.total_seconds())

    def create(self, name: str, email: str) -> Session:
        # Abandoned sessions are reclaimed whenever a new one is issued.
        self.purge_expired()
        token = secrets.token_urlsafe(32)
        identity = Identity(name=name, email=email)
        expires_at = self._clock() + self._ttl
        self._store.save_session(token, identity, expires_at)
        return Session(token=token, identity=identity, expires_at=expires_at)

    def get(self, token: Optional[str]) -> Optional[Session]:
        if not token:
            return None
        now = self._clock()
        loaded = self._store.load_session(token)
        if loaded is None:
            return None
        identity, expires_at = loaded
        if expires_at <= now:
            self._store.delete_session(token)
            return None
        if self._sliding:
            expires_at = now + self._ttl
            self._store.touch_session(token, expires_at)
        return Session(token=token, identity=identity, expires_at=expires_at)

    def destroy(self, token: Optional[str]) -> None:
        if not token:
            return
        self._store.delete_session(token)

    def purge_expired(self) -> int:
        return self._store.delete_expired_sessions(self._clock())

    def __len__(self) -> int:
        return self._store.count_sessions()


__all__ = ["DEFAULT_SESSION_TTL", "MemorySessionStore", "SessionManager"]
