"""ABOUTME: Domain models for TOTP second factors as seen from the application
ABOUTME: The auth provider owns the secret; we only hold factor ids, statuses and challenges"""

from dataclasses import dataclass, field
from datetime import UTC, datetime

from .value_objects import FactorStatus


@dataclass(frozen=True, slots=True)
class MfaFactor:
    factor_id: str
    status: FactorStatus
    friendly_name: str = ""
    factor_type: str = "totp"
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_verified(self) -> bool:
        return self.status == FactorStatus.VERIFIED


@dataclass(frozen=True, slots=True)
class MfaChallenge:
    challenge_id: str
    factor_id: str
    expires_at: datetime

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or datetime.now(UTC)) >= self.expires_at


@dataclass(frozen=True, slots=True)
class EnrollmentTicket:
    """What the provider hands back when a new TOTP factor is registered."""

    factor_id: str
    qr_code: str
    secret: str
    uri: str = ""
