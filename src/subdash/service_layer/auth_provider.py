"""ABOUTME: Abstract interface to the external authentication provider
ABOUTME: Password sign-in, session lifecycle and TOTP enroll/challenge/verify primitives"""

from __future__ import annotations

import abc

from subdash.domain.auth_results import AuthSession
from subdash.domain.mfa import EnrollmentTicket, MfaChallenge, MfaFactor


class AuthProviderError(Exception):
    """Any failure reported by the auth provider.

    `code` is a short machine readable reason, `message` is safe to show to the user.
    """

    def __init__(self, message: str = "", code: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.code = code


# codes shared by provider implementations
INVALID_CREDENTIALS = "invalid_credentials"
USER_ALREADY_EXISTS = "user_already_exists"
NOT_AUTHENTICATED = "not_authenticated"
FACTOR_NOT_FOUND = "factor_not_found"
CHALLENGE_NOT_FOUND = "challenge_not_found"
CHALLENGE_EXPIRED = "mfa_challenge_expired"
VERIFICATION_FAILED = "mfa_verification_failed"


class AbstractAuthProvider(abc.ABC):
    """The operations the login gate needs from an auth backend.

    MFA operations act on the user of the current session.
    """

    @abc.abstractmethod
    async def sign_up(self, email: str, password: str) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        """Check the password and make the new session current."""
        raise NotImplementedError

    @abc.abstractmethod
    async def sign_out(self) -> None:
        """Invalidate the current session. Does nothing if there is none."""
        raise NotImplementedError

    @abc.abstractmethod
    async def get_session(self) -> AuthSession | None:
        raise NotImplementedError

    @abc.abstractmethod
    async def mfa_enroll(self, friendly_name: str) -> EnrollmentTicket:
        raise NotImplementedError

    @abc.abstractmethod
    async def mfa_challenge(self, factor_id: str) -> MfaChallenge:
        raise NotImplementedError

    @abc.abstractmethod
    async def mfa_verify(self, factor_id: str, challenge_id: str, code: str) -> None:
        """Raises AuthProviderError with VERIFICATION_FAILED if the code is wrong."""
        raise NotImplementedError

    @abc.abstractmethod
    async def mfa_unenroll(self, factor_id: str) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def mfa_list_factors(self) -> list[MfaFactor]:
        """All factors of the current user, verified or not."""
        raise NotImplementedError
