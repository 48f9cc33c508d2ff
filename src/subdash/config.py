"""ABOUTME: Configuration management for the subdash login gate
ABOUTME: Loads environment variables and provides the injected auth policy and storage settings"""

import base64
import binascii
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from subdash.domain.value_objects import DEFAULT_MAX_CONCURRENT_SESSIONS, AuthPolicy

load_dotenv()


class InvalidConfig(Exception):
    """Error for when the config is not valid"""


SQLITE_DB_URI = "sqlite+aiosqlite:///subdash.db"


def to_bool(value: str | None, context_str: str = "") -> bool:
    """
    Convert string to boolean. Valid options (after stripping whitespace and making lower-case)
    - False: "false", "no", "off", "0", None, ""
    - True: "true", "yes", "on", "1"

    The `context_str` is there for the error message, to help find the issue.
    """
    if value is None:
        return False
    value = value.lower().strip()
    if value in ("false", "no", "off", "0", ""):
        return False
    if value in ("true", "yes", "on", "1"):
        return True
    raise ValueError(
        f"Cannot convert '{context_str}{value}' to boolean. Valid values are: true/false, 1/0, yes/no, on/off (case-insensitive)"
    )


def bool_environ_get(key: str, default: str = "") -> bool:
    return to_bool(os.environ.get(key, default), context_str=f"{key}=")


def _int_environ_get(key: str, default: int, minimum: int = 0) -> int:
    raw = os.environ.get(key, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as error:
        raise InvalidConfig(f"{key} must be an integer, got '{raw}'") from error
    if value < minimum:
        raise InvalidConfig(f"{key} must be at least {minimum}, got {value}")
    return value


def get_db_uri() -> str:
    return os.environ.get("DB_URI", SQLITE_DB_URI)


def is_development() -> bool:
    return os.environ.get("SUBDASH_ENV", "development").lower().strip() == "development"


def get_log_level() -> int:
    level_name = os.environ.get("LOG_LEVEL", "INFO").upper().strip()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        raise InvalidConfig(f"Unknown LOG_LEVEL '{level_name}'")
    return level


def get_allowed_emails() -> frozenset[str]:
    raw = os.environ.get("ALLOWED_EMAILS", "")
    return frozenset(email.strip().lower() for email in raw.split(",") if email.strip())


def get_max_concurrent_sessions() -> int:
    return _int_environ_get("MAX_CONCURRENT_SESSIONS", DEFAULT_MAX_CONCURRENT_SESSIONS, minimum=1)


def get_auth_policy() -> AuthPolicy:
    """Build the single-tenant login policy from the environment."""
    return AuthPolicy(
        allowed_emails=get_allowed_emails(),
        max_concurrent_sessions=get_max_concurrent_sessions(),
    )


def get_totp_encryption_key() -> bytes:
    """Get the master key used to encrypt TOTP secrets at rest.

    The key must be 32 random bytes, base64 encoded, in TOTP_ENCRYPTION_KEY.
    """
    raw = os.environ.get("TOTP_ENCRYPTION_KEY", "")
    if not raw:
        raise ValueError("TOTP_ENCRYPTION_KEY environment variable must be set")
    try:
        key = base64.b64decode(raw, validate=True)
    except binascii.Error as error:
        raise ValueError("TOTP_ENCRYPTION_KEY must be valid base64") from error
    if len(key) != 32:
        raise ValueError("TOTP_ENCRYPTION_KEY must decode to exactly 32 bytes")
    return key


@dataclass(slots=True, kw_only=True)
class ProviderCfg:
    mfa_issuer: str
    challenge_ttl_seconds: int
    session_ttl_hours: int

    @classmethod
    def from_env(cls) -> "ProviderCfg":
        return ProviderCfg(
            mfa_issuer=os.environ.get("MFA_ISSUER", "Subdash"),
            # 300 is seconds - so 5 minutes
            challenge_ttl_seconds=_int_environ_get("MFA_CHALLENGE_TTL_SECONDS", 300, minimum=1),
            session_ttl_hours=_int_environ_get("SESSION_TTL_HOURS", 24, minimum=1),
        )


def get_state_dir() -> Path:
    return Path(os.environ.get("SUBDASH_STATE_DIR", "~/.subdash")).expanduser()


def get_storage_path() -> Path:
    return get_state_dir() / "storage.json"
