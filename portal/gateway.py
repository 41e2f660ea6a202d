"""Credential verification and session issuance for the members portal."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Type

import pydantic
from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, field_validator

from .database import Database
from .errors import AuthError, ConflictError, Unauthenticated, ValidationError
from .models import Identity, Session, User
from .passwords import PasswordHasher
from .sessions import SessionManager

logger = logging.getLogger("portal.gateway")


def _require_non_empty(value: str, field: str) -> str:
    if value == "":
        raise ValueError(f'"{field}" is not allowed to be empty')
    return value


def _require_email(value: str) -> str:
    _require_non_empty(value, "email")
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValueError('"email" must be a valid email') from exc
    # The stored address is the submitted string, not the normalised form.
    return value


class _CredentialForm(BaseModel):
    model_config = ConfigDict(extra="ignore", strict=True)


class SignupForm(_CredentialForm):
    name: str
    email: str
    password: str

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        return _require_non_empty(value, "name")

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        return _require_email(value)

    @field_validator("password")
    @classmethod
    def _check_password(cls, value: str) -> str:
        return _require_non_empty(value, "password")


class LoginForm(_CredentialForm):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        return _require_email(value)

    @field_validator("password")
    @classmethod
    def _check_password(cls, value: str) -> str:
        return _require_non_empty(value, "password")


def _first_error_message(exc: pydantic.ValidationError) -> str:
    error = exc.errors()[0]
    field = ".".join(str(part) for part in error.get("loc", ())) or "value"
    kind = error.get("type")
    if kind == "missing":
        return f'"{field}" is required'
    if kind == "string_type":
        return f'"{field}" must be a string'
    if kind == "value_error":
        ctx = error.get("ctx") or {}
        if "error" in ctx:
            return str(ctx["error"])
    return f'"{field}" {error.get("msg", "is invalid")}'


def _parse_form(model: Type[_CredentialForm], data: Mapping[str, Any]) -> Any:
    try:
        return model.model_validate(dict(data))
    except pydantic.ValidationError as exc:
        raise ValidationError(_first_error_message(exc)) from exc


class CredentialGateway:
    """Validate credentials against the user store and manage sessions.

    Both collaborators are injected; the gateway itself holds no state. Any
    :class:`~portal.errors.StoreFailure` raised by the store propagates to the
    caller untouched.
    """

    def __init__(
        self,
        database: Database,
        sessions: SessionManager,
        *,
        hasher: Optional[PasswordHasher] = None,
    ) -> None:
        self._database = database
        self._sessions = sessions
        self._hasher = hasher or PasswordHasher()

    @property
    def sessions(self) -> SessionManager:
        return self._sessions

    def register(self, data: Mapping[str, Any]) -> User:
        """Validate and store a new user without opening a session."""

        form = _parse_form(SignupForm, data)

        if self._database.find_user_by_email(form.email) is not None:
            logger.warning("Rejected signup for already registered email %s", form.email)
            raise ConflictError("Email already registered.")

        password_hash = self._hasher.hash(form.password)
        try:
            user = self._database.insert_user(form.name, form.email, password_hash)
        except ConflictError:
            logger.warning("Concurrent signup lost the race for %s", form.email)
            raise

        logger.info("User %s signed up", user.id)
        return user

    def signup(self, data: Mapping[str, Any], *, previous_token: Optional[str] = None) -> Session:
        user = self.register(data)
        return self._open_session(user, previous_token)

    def login(self, data: Mapping[str, Any], *, previous_token: Optional[str] = None) -> Session:
        form = _parse_form(LoginForm, data)

        record = self._database.find_user_by_email(form.email)
        if record is None:
            self._hasher.dummy_verify()
            logger.warning("Failed login attempt for %s", form.email)
            raise AuthError()

        if not self._hasher.verify(form.password, record.password_hash):
            logger.warning("Failed login attempt for %s", form.email)
            raise AuthError()

        logger.info("User %s signed in", record.user.id)
        return self._open_session(record.user, previous_token)

    def logout(self, token: Optional[str]) -> None:
        self._sessions.destroy(token)

    def require_session(self, token: Optional[str]) -> Identity:
        session = self._sessions.get(token)
        if session is None:
            raise Unauthenticated()
        return session.identity

    def _open_session(self, user: User, previous_token: Optional[str]) -> Session:
        """Issue a fresh session, revoking the one the browser held before."""

        session = self._sessions.create(user.name, user.email)
        self._sessions.destroy(previous_token)
        return session


__all__ = ["CredentialGateway", "LoginForm", "SignupForm"]
