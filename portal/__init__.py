"""Members portal: signup, login and a session-gated members page."""

from __future__ import annotations

from typing import Any

from .database import Database, resolve_database_path
from .gateway import CredentialGateway
from .sessions import SessionManager


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the portal web application."""

    from .service import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "CredentialGateway",
    "Database",
    "SessionManager",
    "create_app",
    "resolve_database_path",
]
