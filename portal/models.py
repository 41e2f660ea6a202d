"""Domain models for the members portal."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class User:
    """Represents a user account stored in the portal database."""

    id: int
    name: str
    email: str
    created_at: datetime


@dataclass(frozen=True)
class UserRecord:
    """A stored user together with its password hash.

    Only the credential gateway handles this type; views receive :class:`User`.
    """

    user: User
    password_hash: str


@dataclass(frozen=True)
class Identity:
    """The identity fields carried by an authenticated session."""

    name: str
    email: str


@dataclass(frozen=True)
class Session:
    """A snapshot of a live session as seen at creation or lookup time."""

    token: str
    identity: Identity
    expires_at: datetime

    @property
    def name(self) -> str:
        return self.identity.name

    @property
    def email(self) -> str:
        return self.identity.email


__all__ = ["Identity", "Session", "User", "UserRecord"]
