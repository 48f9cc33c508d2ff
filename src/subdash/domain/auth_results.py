"""ABOUTME: Result types returned across the login gate boundary
ABOUTME: Sessions, login outcomes and the success/error results of MFA and settings operations"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .mfa import MfaFactor
from .value_objects import LoginOutcome, LoginStage


@dataclass(frozen=True, slots=True)
class AuthSession:
    """A session issued by the auth provider after a password check."""

    access_token: str
    user_id: uuid.UUID
    email: str
    expires_at: datetime
    mfa_verified: bool = False


@dataclass(frozen=True, slots=True)
class LoginResult:
    outcome: LoginOutcome
    stage: LoginStage
    error: str = ""
    error_type: str = ""
    factor_id: str = ""
    session: AuthSession | None = None

    @classmethod
    def denied(cls, error: Exception, stage: LoginStage) -> "LoginResult":
        return cls(
            outcome=LoginOutcome.DENIED,
            stage=stage,
            error=str(error) or "Unknown error",
            error_type=type(error).__name__,
        )

    @classmethod
    def mfa_required(cls, factor_id: str, session: AuthSession) -> "LoginResult":
        return cls(
            outcome=LoginOutcome.MFA_REQUIRED,
            stage=LoginStage.MFA_PENDING,
            factor_id=factor_id,
            session=session,
        )

    @classmethod
    def succeeded(cls, session: AuthSession) -> "LoginResult":
        return cls(outcome=LoginOutcome.SUCCESS, stage=LoginStage.SUCCESS, session=session)

    @property
    def is_denied(self) -> bool:
        return self.outcome == LoginOutcome.DENIED

    @property
    def mfa_pending(self) -> bool:
        return self.outcome == LoginOutcome.MFA_REQUIRED

    @property
    def is_success(self) -> bool:
        return self.outcome == LoginOutcome.SUCCESS

    def as_dict(self) -> dict[str, Any]:
        """The shape the UI layer branches on."""
        if self.is_denied:
            return {"error": {"message": self.error}}
        if self.mfa_pending:
            return {"mfa_required": True, "factor_id": self.factor_id}
        return {"error": None}


@dataclass(frozen=True, slots=True)
class OperationResult:
    success: bool
    error: str = ""
    message: str = ""

    @classmethod
    def ok(cls, message: str = "") -> "OperationResult":
        return cls(success=True, message=message)

    @classmethod
    def failed(cls, error: str) -> "OperationResult":
        return cls(success=False, error=error or "Unknown error")


@dataclass(frozen=True, slots=True)
class EnrollmentResult:
    success: bool
    error: str = ""
    qr_code: str = ""
    secret: str = ""
    factor_id: str = ""


@dataclass(frozen=True, slots=True)
class FactorListResult:
    success: bool
    error: str = ""
    factors: list[MfaFactor] = field(default_factory=list)

    @property
    def has_enabled_mfa(self) -> bool:
        return len(self.factors) > 0

    @property
    def active_factor(self) -> MfaFactor | None:
        return self.factors[0] if self.factors else None
