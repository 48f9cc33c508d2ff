"""ABOUTME: TOTP second factor gateway over the auth provider
ABOUTME: Sequences enroll/challenge/verify/unenroll calls and keeps abandoned enrollments cleaned up"""

import re
from datetime import UTC, datetime

import structlog

from subdash.domain.auth_results import EnrollmentResult, FactorListResult, OperationResult
from subdash.service_layer.auth_provider import (
    CHALLENGE_EXPIRED,
    VERIFICATION_FAILED,
    AbstractAuthProvider,
    AuthProviderError,
)
from subdash.service_layer.exceptions import InvalidMFACode

logger = structlog.get_logger(__name__)

UNKNOWN_ERROR = "Unknown error"
TOTP_CODE_PATTERN = re.compile(r"^\d{6}$")


def _error_message(error: Exception) -> str:
    """Provider errors keep their message, anything else is reported as unknown."""
    if isinstance(error, AuthProviderError):
        if error.code == VERIFICATION_FAILED:
            return str(InvalidMFACode())
        if error.code == CHALLENGE_EXPIRED:
            return str(InvalidMFACode("This code has expired. Please try again."))
        return error.message or UNKNOWN_ERROR
    return UNKNOWN_ERROR


class MfaGateway:
    """Every method returns a result with `success` set; nothing here raises."""

    def __init__(self, provider: AbstractAuthProvider) -> None:
        self.provider = provider

    async def begin_enrollment(self) -> EnrollmentResult:
        """Register a fresh TOTP factor, discarding any earlier unverified attempts first."""
        try:
            factors = await self.provider.mfa_list_factors()
            for factor in factors:
                if not factor.is_verified:
                    logger.info("removing abandoned mfa enrollment", factor_id=factor.factor_id)
                    await self.provider.mfa_unenroll(factor.factor_id)

            friendly_name = f"Authenticator {datetime.now(UTC).isoformat(timespec='seconds')}"
            ticket = await self.provider.mfa_enroll(friendly_name)
        except Exception as error:
            logger.exception("mfa enrollment failed")
            return EnrollmentResult(success=False, error=_error_message(error))

        return EnrollmentResult(
            success=True,
            qr_code=ticket.qr_code,
            secret=ticket.secret,
            factor_id=ticket.factor_id,
        )

    async def _challenge_and_verify(self, factor_id: str, code: str) -> None:
        code = code.strip()
        if not TOTP_CODE_PATTERN.match(code):
            raise InvalidMFACode("Please enter a 6-digit code")
        challenge = await self.provider.mfa_challenge(factor_id)
        await self.provider.mfa_verify(factor_id, challenge.challenge_id, code)

    async def confirm_enrollment(self, factor_id: str, code: str) -> OperationResult:
        """Verify the first code from the authenticator app, which makes the factor active."""
        try:
            await self._challenge_and_verify(factor_id, code)
        except InvalidMFACode as error:
            return OperationResult.failed(str(error))
        except Exception as error:
            logger.warning("mfa enrollment verification failed", factor_id=factor_id, error=str(error))
            return OperationResult.failed(_error_message(error))

        logger.info("mfa enabled", factor_id=factor_id)
        return OperationResult.ok("2FA has been successfully enabled!")

    async def verify_challenge(self, factor_id: str, code: str) -> OperationResult:
        """Check a code against a freshly issued challenge.

        Used for the second step of login and to re-confirm identity before MFA is
        turned off.
        """
        try:
            await self._challenge_and_verify(factor_id, code)
        except InvalidMFACode as error:
            return OperationResult.failed(str(error))
        except Exception as error:
            logger.warning("mfa challenge failed", factor_id=factor_id, error=str(error))
            return OperationResult.failed(_error_message(error))

        return OperationResult.ok()

    async def unenroll(self, factor_id: str) -> OperationResult:
        """Remove a factor. Callers must have passed verify_challenge first."""
        try:
            await self.provider.mfa_unenroll(factor_id)
        except Exception as error:
            logger.exception("mfa unenroll failed", factor_id=factor_id)
            return OperationResult.failed(_error_message(error))

        logger.info("mfa disabled", factor_id=factor_id)
        return OperationResult.ok("2FA has been disabled.")

    async def list_factors(self) -> FactorListResult:
        """Usable (verified) factors of the current user."""
        try:
            factors = await self.provider.mfa_list_factors()
        except Exception as error:
            logger.exception("listing mfa factors failed")
            return FactorListResult(success=False, error=_error_message(error))

        return FactorListResult(success=True, factors=[factor for factor in factors if factor.is_verified])

    async def is_enabled(self) -> bool:
        result = await self.list_factors()
        return result.has_enabled_mfa
