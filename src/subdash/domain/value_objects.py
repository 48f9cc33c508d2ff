"""ABOUTME: Value objects and enums for subdash domain models
ABOUTME: Defines the login policy, factor and stage enums, and email validation"""

from dataclasses import dataclass, field
from enum import Enum

from django.core.exceptions import ValidationError
from django.core.validators import EmailValidator

DEFAULT_MAX_CONCURRENT_SESSIONS = 3


class FactorStatus(Enum):
    VERIFIED = "verified"
    UNVERIFIED = "unverified"


class LoginOutcome(Enum):
    DENIED = "denied"
    MFA_REQUIRED = "mfa_required"
    SUCCESS = "success"


class LoginStage(Enum):
    IDLE = "idle"
    ALLOW_LIST_CHECK = "allow_list_check"
    CREDENTIAL_CHECK = "credential_check"
    FINGERPRINTING = "fingerprinting"
    SESSION_LIMIT_CHECK = "session_limit_check"
    DEVICE_AUTHORIZATION = "device_authorization"
    MFA_CHECK = "mfa_check"
    MFA_PENDING = "mfa_pending"
    SUCCESS = "success"


@dataclass(frozen=True, slots=True)
class AuthPolicy:
    """Single-tenant login policy: who may sign in, and from how many devices at once."""

    allowed_emails: frozenset[str] = field(default_factory=frozenset)
    max_concurrent_sessions: int = DEFAULT_MAX_CONCURRENT_SESSIONS

    def __post_init__(self) -> None:
        if self.max_concurrent_sessions < 1:
            raise ValueError("max_concurrent_sessions must be at least 1")
        # normalise so callers can pass any iterable in any case
        object.__setattr__(self, "allowed_emails", frozenset(e.strip().lower() for e in self.allowed_emails))

    def permits(self, email: str) -> bool:
        """An empty allow-list permits nobody."""
        return email.strip().lower() in self.allowed_emails


def validate_email(email: str) -> None:
    """Basic email validation."""
    # we use the well-tested and maintained Django EmailValidator
    # Note that passing in the message is important - if we don't do that then
    # the validator will try to use the default message, which will trigger the
    # auto localisation of the string which then blows up.
    validator = EmailValidator(message="Invalid email address")
    try:
        validator(email)
    except ValidationError as error:
        raise ValueError("Invalid email address") from error
