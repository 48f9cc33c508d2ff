"""ABOUTME: SQLAlchemy table definitions and imperative mapping types for subdash
ABOUTME: Defines the authorized_devices relation and the local auth provider's tables"""

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from sqlalchemy import (
    TIMESTAMP,
    Boolean,
    Column,
    ForeignKey,
    Index,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID as PostgresUUID
from sqlalchemy.engine.interfaces import Dialect
from sqlalchemy.orm import registry
from sqlalchemy.sql.sqltypes import String as SQLString

from subdash.domain.value_objects import FactorStatus


def aware_utcnow() -> datetime:  # pragma: no cover
    return datetime.now(UTC)


class EnumAsString(TypeDecorator):
    """Custom type for storing Python Enums as strings."""

    impl = String
    cache_ok = True

    def __init__(self, enum_class: type[Enum], *args: Any, **kwargs: Any) -> None:
        self.enum_class = enum_class
        super().__init__(*args, **kwargs)

    def process_bind_param(self, value: Any, dialect: Dialect) -> str | None:
        if value is None:  # pragma: no cover
            return value
        return value.value if hasattr(value, "value") else str(value)

    def process_result_value(self, value: Any, dialect: Dialect) -> Any:
        if value is None:  # pragma: no cover
            return value
        return self.enum_class(value)


class TZAwareDatetime(TypeDecorator):
    """Custom type for timezone-aware datetime objects."""

    impl = TIMESTAMP
    cache_ok = True

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        # Ensure timezone=True for PostgreSQL
        kwargs.setdefault("timezone", True)
        super().__init__(*args, **kwargs)

    def process_result_value(self, value: Any, dialect: Dialect) -> datetime | None:
        if value is None:
            return value

        # If the datetime is naive, assume it's UTC and make it aware
        if isinstance(value, datetime) and value.tzinfo is None:
            return value.replace(tzinfo=UTC)

        return value


class CrossDatabaseUUID(TypeDecorator):
    """Cross-database UUID type that works with both PostgreSQL and SQLite."""

    impl = SQLString
    cache_ok = True

    def load_dialect_impl(self, dialect: Dialect) -> Any:
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PostgresUUID(as_uuid=True))
        # SQLite and friends store the canonical 36 character form
        return dialect.type_descriptor(SQLString(36))

    def process_bind_param(self, value: Any, dialect: Dialect) -> str | None:
        if value is None:
            return value

        if isinstance(value, uuid.UUID):
            return str(value)
        elif isinstance(value, str):
            try:
                return str(uuid.UUID(value))
            except ValueError as e:
                raise ValueError(f"Invalid UUID string: {value}") from e
        else:
            raise TypeError(f"Expected UUID or string, got {type(value)}")

    def process_result_value(self, value: Any, dialect: Dialect) -> uuid.UUID | None:
        if value is None:
            return value
        if isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(str(value))


# Create a registry for imperative mapping
mapper_registry = registry()
metadata = mapper_registry.metadata

# Devices a user has signed in from. user_id has no foreign key, accounts may live
# in an external auth provider.
authorized_devices = Table(
    "authorized_devices",
    metadata,
    Column("id", CrossDatabaseUUID(), primary_key=True, default=uuid.uuid4),
    Column("user_id", CrossDatabaseUUID(), nullable=False),
    Column("device_id", String(64), nullable=False, default=""),
    Column("device_fingerprint", String(64), nullable=False),
    Column("device_name", String(255), nullable=False, default=""),
    Column("browser", String(100), nullable=False, default=""),
    Column("os", String(100), nullable=False, default=""),
    Column("platform", String(50), nullable=False, default=""),
    Column("is_active", Boolean, nullable=False, default=False),
    Column("session_id", Text, nullable=True),
    Column("last_used_at", TZAwareDatetime(), nullable=False, default=aware_utcnow),
    Column("created_at", TZAwareDatetime(), nullable=False, default=aware_utcnow),
    UniqueConstraint("user_id", "device_fingerprint", name="uq_authorized_devices_user_fingerprint"),
)

# Tables below belong to the local auth provider
users = Table(
    "users",
    metadata,
    Column("id", CrossDatabaseUUID(), primary_key=True, default=uuid.uuid4),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", String(255), nullable=False),
    Column("created_at", TZAwareDatetime(), nullable=False, default=aware_utcnow),
)

auth_sessions = Table(
    "auth_sessions",
    metadata,
    Column("id", CrossDatabaseUUID(), primary_key=True, default=uuid.uuid4),
    Column("user_id", CrossDatabaseUUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("access_token", String(128), nullable=False, unique=True),
    Column("mfa_verified", Boolean, nullable=False, default=False),
    Column("created_at", TZAwareDatetime(), nullable=False, default=aware_utcnow),
    Column("expires_at", TZAwareDatetime(), nullable=False),
    Column("revoked_at", TZAwareDatetime(), nullable=True),
)

mfa_factors = Table(
    "mfa_factors",
    metadata,
    Column("id", CrossDatabaseUUID(), primary_key=True, default=uuid.uuid4),
    Column("user_id", CrossDatabaseUUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
    Column("friendly_name", String(255), nullable=False, default=""),
    Column("factor_type", String(20), nullable=False, default="totp"),
    Column("status", EnumAsString(FactorStatus, 20), nullable=False),
    Column("secret_encrypted", Text, nullable=False),
    Column("created_at", TZAwareDatetime(), nullable=False, default=aware_utcnow),
    Column("verified_at", TZAwareDatetime(), nullable=True),
)

mfa_challenges = Table(
    "mfa_challenges",
    metadata,
    Column("id", CrossDatabaseUUID(), primary_key=True, default=uuid.uuid4),
    Column("factor_id", CrossDatabaseUUID(), ForeignKey("mfa_factors.id", ondelete="CASCADE"), nullable=False),
    Column("created_at", TZAwareDatetime(), nullable=False, default=aware_utcnow),
    Column("expires_at", TZAwareDatetime(), nullable=False),
    Column("verified_at", TZAwareDatetime(), nullable=True),
)

Index("ix_authorized_devices_user_active", authorized_devices.c.user_id, authorized_devices.c.is_active)
Index("ix_authorized_devices_session_id", authorized_devices.c.session_id)
Index("ix_auth_sessions_user_id", auth_sessions.c.user_id)
Index("ix_mfa_factors_user_id", mfa_factors.c.user_id)
