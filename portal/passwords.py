"""Password hashing backed by passlib's bcrypt handler."""
from __future__ import annotations

from passlib.context import CryptContext

DEFAULT_BCRYPT_ROUNDS = 10


class PasswordHasher:
    """Salted one-way hashing with a fixed bcrypt cost factor."""

    def __init__(self, *, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> None:
        if not 4 <= rounds <= 31:
            raise ValueError("bcrypt rounds must be between 4 and 31")
        self._rounds = rounds
        self._context = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds,
        )

    @property
    def rounds(self) -> int:
        return self._rounds

    def hash(self, password: str) -> str:
        if not password:
            raise ValueError("Password must not be empty")
        return self._context.hash(password)

    def verify(self, password: str, hashed: str) -> bool:
        if not hashed:
            return False
        try:
            return self._context.verify(password, hashed)
        except (ValueError, TypeError):
            return False

    def dummy_verify(self) -> None:
        """Spend roughly the same time as :meth:`verify` against a real hash."""

        self._context.dummy_verify()


__all__ = ["DEFAULT_BCRYPT_ROUNDS", "PasswordHasher"]
