"""ABOUTME: Login orchestration for the single-operator dashboard
ABOUTME: Sequences allow-list, password, device fingerprint, session limit, device registration and MFA checks"""

import asyncio
import uuid
from datetime import UTC, datetime

import structlog

from subdash.adapters.storage import KeyValueStorage
from subdash.domain.auth_results import AuthSession, LoginResult, OperationResult
from subdash.domain.devices import AuthorizedDevice
from subdash.domain.value_objects import AuthPolicy, LoginStage
from subdash.service_layer import device_fingerprint, session_policy
from subdash.service_layer.auth_provider import AbstractAuthProvider, AuthProviderError
from subdash.service_layer.device_fingerprint import DeviceEnvironment, DeviceInfo
from subdash.service_layer.exceptions import (
    AccessDenied,
    CredentialRejected,
    DeviceRegistrationFailed,
    InvalidMFACode,
    ServiceLayerError,
    SessionLimitReached,
    StoreUnavailable,
)
from subdash.service_layer.mfa_gateway import MfaGateway
from subdash.service_layer.repositories import DeviceRepository

logger = structlog.get_logger(__name__)


class LoginService:
    """Drives one login attempt from credentials to a session bound to a device.

    Every failure comes back as a denied LoginResult. Once the provider has issued a
    session, any later failure signs it out again before returning, so a refused
    login never leaves an authenticated session behind.
    """

    def __init__(
        self,
        provider: AbstractAuthProvider,
        devices: DeviceRepository,
        policy: AuthPolicy,
        environment: DeviceEnvironment,
        storage: KeyValueStorage,
        mfa: MfaGateway | None = None,
    ) -> None:
        self.provider = provider
        self.devices = devices
        self.policy = policy
        self.environment = environment
        self.storage = storage
        self.mfa = mfa or MfaGateway(provider)

    def _identify_device(self) -> tuple[str, str, DeviceInfo]:
        return (
            device_fingerprint.generate_fingerprint(self.environment),
            device_fingerprint.get_or_create_device_id(self.storage),
            device_fingerprint.get_device_info(self.environment),
        )

    async def _identify_device_async(self) -> tuple[str, str, DeviceInfo]:
        return self._identify_device()

    async def sign_in(self, email: str, password: str) -> LoginResult:
        log = logger.bind(email=email)

        if not self.policy.permits(email):
            log.warning("login refused, email not on allow-list")
            return LoginResult.denied(AccessDenied(), LoginStage.ALLOW_LIST_CHECK)

        # fingerprinting needs no I/O, so let it run while the password check is in flight
        identity_task = asyncio.create_task(self._identify_device_async())
        try:
            try:
                session = await self.provider.sign_in_with_password(email, password)
            except AuthProviderError as error:
                log.info("login refused by auth provider", code=error.code)
                return LoginResult.denied(CredentialRejected(error.message), LoginStage.CREDENTIAL_CHECK)
            except Exception as error:
                log.exception("auth provider failed during password check")
                return LoginResult.denied(CredentialRejected(str(error) or "Unknown error"), LoginStage.CREDENTIAL_CHECK)

            log = log.bind(user_id=str(session.user_id))
            try:
                fingerprint, device_id, info = await identity_task
            except Exception as error:
                log.exception("device fingerprinting failed")
                await self._compensate(session)
                return LoginResult.denied(DeviceRegistrationFailed(str(error) or ""), LoginStage.FINGERPRINTING)

            return await self._authorize_device(session, fingerprint, device_id, info, log)
        finally:
            if not identity_task.done():
                identity_task.cancel()

    async def _authorize_device(
        self,
        session: AuthSession,
        fingerprint: str,
        device_id: str,
        info: DeviceInfo,
        log: structlog.stdlib.BoundLogger,
    ) -> LoginResult:
        stage = LoginStage.SESSION_LIMIT_CHECK
        try:
            verdict = await session_policy.evaluate_session_limit(
                self.devices, session.user_id, fingerprint, self.policy.max_concurrent_sessions
            )
            if verdict.limit_reached:
                raise SessionLimitReached(verdict.device_names())

            stage = LoginStage.DEVICE_AUTHORIZATION
            existing = await self.devices.find_by_fingerprint(session.user_id, fingerprint)
            if existing is None:
                await self._register_device(session, fingerprint, device_id, info)
                log.info("registered new device", device_name=info.display_name)
            else:
                reactivated = await self.devices.update_last_used_and_activate(
                    session.user_id, existing.id, session.access_token
                )
                if reactivated is None:
                    raise DeviceRegistrationFailed()
                log.info("reactivated known device", device_name=existing.device_name)

            stage = LoginStage.MFA_CHECK
            factors = await self.mfa.list_factors()
            if not factors.success:
                raise StoreUnavailable(f"Could not check two-factor status: {factors.error}")
        except ServiceLayerError as error:
            log.warning("login denied", stage=stage.value, reason=type(error).__name__)
            await self._compensate(session)
            return LoginResult.denied(error, stage)
        except Exception as error:
            log.exception("device authorization failed", stage=stage.value)
            await self._compensate(session)
            return LoginResult.denied(StoreUnavailable(str(error) or ""), stage)

        active_factor = factors.active_factor
        if active_factor is not None:
            log.info("password accepted, waiting for second factor")
            return LoginResult.mfa_required(active_factor.factor_id, session)

        log.info("login succeeded")
        return LoginResult.succeeded(session)

    async def _register_device(
        self, session: AuthSession, fingerprint: str, device_id: str, info: DeviceInfo
    ) -> None:
        device = AuthorizedDevice(
            user_id=session.user_id,
            device_id=device_id,
            device_fingerprint=fingerprint,
            device_name=info.display_name,
            browser=info.browser,
            os=info.os,
            platform=info.platform,
            is_active=True,
            session_token=session.access_token,
            last_used_at=datetime.now(UTC),
        )
        try:
            await self.devices.add(device)
        except StoreUnavailable as error:
            raise DeviceRegistrationFailed() from error

    async def _compensate(self, session: AuthSession) -> None:
        """Undo the session created by a login that is being refused."""
        try:
            await self.devices.deactivate_by_session_token(session.user_id, session.access_token)
        except Exception:
            logger.exception("could not release device row for refused login", user_id=str(session.user_id))
        try:
            await self.provider.sign_out()
        except Exception:
            logger.exception("could not sign out refused login", user_id=str(session.user_id))

    async def complete_mfa(self, factor_id: str, code: str) -> LoginResult:
        """Second step of a login that came back with mfa_required."""
        try:
            session = await self.provider.get_session()
        except Exception as error:
            logger.exception("could not read current session")
            return LoginResult.denied(StoreUnavailable(str(error) or ""), LoginStage.MFA_PENDING)
        if session is None:
            return LoginResult.denied(CredentialRejected("Your session has expired. Please log in again."), LoginStage.MFA_PENDING)

        result = await self.mfa.verify_challenge(factor_id, code)
        if not result.success:
            logger.info("second factor rejected", user_id=str(session.user_id))
            return LoginResult.denied(InvalidMFACode(result.error), LoginStage.MFA_PENDING)

        logger.info("login succeeded after second factor", user_id=str(session.user_id))
        try:
            verified_session = await self.provider.get_session()
        except Exception:
            logger.exception("could not reload session after second factor", user_id=str(session.user_id))
            verified_session = None
        return LoginResult.succeeded(verified_session or session)

    async def sign_out(self) -> OperationResult:
        """Release the device slot held by the current session, then end the session."""
        try:
            session = await self.provider.get_session()
        except Exception as error:
            logger.exception("could not read current session")
            return OperationResult.failed(str(error))
        if session is None:
            return OperationResult.ok("Already signed out.")

        error_message = ""
        try:
            await self.devices.deactivate_by_session_token(session.user_id, session.access_token)
        except StoreUnavailable as error:
            logger.exception("could not release device row on sign out", user_id=str(session.user_id))
            error_message = str(error)

        try:
            await self.provider.sign_out()
        except Exception as error:
            logger.exception("auth provider sign out failed", user_id=str(session.user_id))
            return OperationResult.failed(str(error))

        logger.info("signed out", user_id=str(session.user_id))
        if error_message:
            return OperationResult.failed(error_message)
        return OperationResult.ok("Signed out.")

    async def sign_up(self, email: str, password: str) -> OperationResult:
        if not self.policy.permits(email):
            return OperationResult.failed(
                str(AccessDenied("Registration is restricted. Only authorized emails can create an account."))
            )
        try:
            await self.provider.sign_up(email, password)
        except AuthProviderError as error:
            return OperationResult.failed(error.message)
        except Exception:
            logger.exception("auth provider failed during sign up")
            return OperationResult.failed("Unknown error")
        logger.info("account created", email=email)
        return OperationResult.ok("Account created.")

    async def current_user_id(self) -> uuid.UUID | None:
        session = await self.provider.get_session()
        return session.user_id if session else None
