"""Configuration management for the members portal."""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from datetime import timedelta
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

from .database import resolve_database_path
from .passwords import DEFAULT_BCRYPT_ROUNDS
from .sessions import DEFAULT_SESSION_TTL

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}
_SESSION_STORES = {"database", "memory"}


def _parse_flag(value: object, *, name: str) -> bool:
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")


def _parse_int(value: object, *, name: str, minimum: int = 1) -> int:
    try:
        parsed = int(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"Invalid integer value for {name}: {value!r}") from exc
    if parsed < minimum:
        raise ValueError(f"{name} must be at least {minimum}")
    return parsed


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the portal service."""

    database_path: Path
    session_ttl: timedelta = DEFAULT_SESSION_TTL
    session_sliding: bool = True
    secure_cookies: bool = True
    bcrypt_rounds: int = DEFAULT_BCRYPT_ROUNDS
    session_store: str = "database"
    trusted_proxies: Optional[str] = None
    host: str = "0.0.0.0"
    port: int = 3000

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "Settings":
        """Create :class:`Settings` from a raw mapping such as a parsed YAML file."""

        unknown = set(data.keys()) - _SETTING_KEYS
        if unknown:
            raise ValueError(f"Unknown portal configuration keys: {', '.join(sorted(unknown))}")

        raw_db = data.get("database_path")
        if raw_db:
            candidate = Path(str(raw_db)).expanduser()
            if not candidate.is_absolute() and base_path is not None:
                candidate = base_path / candidate
            database_path = candidate.resolve(strict=False)
        else:
            database_path = resolve_database_path(None)

        settings = Settings(database_path=database_path)
        return settings.with_overrides(data)

    def with_overrides(self, data: Mapping[str, object]) -> "Settings":
        changes: Dict[str, object] = {}
        if "session_ttl" in data:
            seconds = _parse_int(data["session_ttl"], name="session_ttl")
            changes["session_ttl"] = timedelta(seconds=seconds)
        if "session_sliding" in data:
            changes["session_sliding"] = _parse_flag(data["session_sliding"], name="session_sliding")
        if "secure_cookies" in data:
            changes["secure_cookies"] = _parse_flag(data["secure_cookies"], name="secure_cookies")
        if "bcrypt_rounds" in data:
            rounds = _parse_int(data["bcrypt_rounds"], name="bcrypt_rounds", minimum=4)
            if rounds > 31:
                raise ValueError("bcrypt_rounds must be at most 31")
            changes["bcrypt_rounds"] = rounds
        if "session_store" in data:
            store = str(data["session_store"]).strip().lower()
            if store not in _SESSION_STORES:
                raise ValueError(f"Invalid session_store: {data['session_store']!r}")
            changes["session_store"] = store
        if data.get("trusted_proxies"):
            changes["trusted_proxies"] = str(data["trusted_proxies"])
        if data.get("host"):
            changes["host"] = str(data["host"])
        if "port" in data:
            changes["port"] = _parse_int(data["port"], name="port")
        return replace(self, **changes) if changes else self


_SETTING_KEYS = {
    "database_path",
    "session_ttl",
    "session_sliding",
    "secure_cookies",
    "bcrypt_rounds",
    "session_store",
    "trusted_proxies",
    "host",
    "port",
}

_ENV_KEYS = {
    "PORTAL_SESSION_TTL": "session_ttl",
    "PORTAL_SESSION_SLIDING": "session_sliding",
    "PORTAL_SESSION_SECURE": "secure_cookies",
    "PORTAL_BCRYPT_ROUNDS": "bcrypt_rounds",
    "PORTAL_SESSION_STORE": "session_store",
    "PORTAL_TRUSTED_PROXIES": "trusted_proxies",
    "HOST": "host",
    "PORT": "port",
}


def load_config_file(config_path: Path) -> Settings:
    """Load settings from a YAML file with a top-level ``portal`` mapping."""

    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}

    if not isinstance(raw, dict):
        raise ValueError("Configuration file must contain a mapping")
    section = raw.get("portal", {})
    if not isinstance(section, dict):
        raise ValueError("The 'portal' configuration section must be a mapping")
    return Settings.from_dict(section, base_path=config_path.parent)


def load_settings(
    config_path: Optional[Path] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Build settings from defaults, an optional YAML file and the environment.

    Environment variables take precedence over values read from the file.
    """

    env = os.environ if environ is None else environ

    if config_path is None and env.get("PORTAL_CONFIG"):
        config_path = Path(env["PORTAL_CONFIG"]).expanduser()

    if config_path is not None:
        settings = load_config_file(config_path)
    else:
        settings = Settings(database_path=resolve_database_path(None))

    if env.get("PORTAL_DB_PATH"):
        settings = replace(settings, database_path=resolve_database_path(env["PORTAL_DB_PATH"]))

    overrides = {key: env[name] for name, key in _ENV_KEYS.items() if env.get(name)}
    return settings.with_overrides(overrides)


__all__ = ["Settings", "load_config_file", "load_settings"]
