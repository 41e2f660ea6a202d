"""Exceptions raised by the members portal."""

from __future__ import annotations


class PortalError(Exception):
    """Base class for errors surfaced by the credential gateway and its stores."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(PortalError):
    """Submitted form data failed a shape rule."""


class ConflictError(PortalError):
    """A user with the submitted email is already registered."""


class AuthError(PortalError):
    """Credentials did not match a stored user."""

    GENERIC_MESSAGE = "Invalid email/password combination."

    def __init__(self, message: str = GENERIC_MESSAGE) -> None:
        super().__init__(message)


class Unauthenticated(PortalError):
    """No active session was presented."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class StoreFailure(PortalError):
    """The user store could not be reached or returned an I/O error."""


__all__ = [
    "AuthError",
    "ConflictError",
    "PortalError",
    "StoreFailure",
    "Unauthenticated",
    "ValidationError",
]
