"""ABOUTME: Fake repository and auth provider implementations for testing
ABOUTME: In-memory versions of the ports, with switches to simulate store and provider failures"""

import uuid
from datetime import UTC, datetime, timedelta

from subdash.domain.auth_results import AuthSession
from subdash.domain.devices import AuthorizedDevice
from subdash.domain.mfa import EnrollmentTicket, MfaChallenge, MfaFactor
from subdash.domain.value_objects import FactorStatus
from subdash.service_layer.auth_provider import (
    CHALLENGE_NOT_FOUND,
    FACTOR_NOT_FOUND,
    INVALID_CREDENTIALS,
    NOT_AUTHENTICATED,
    USER_ALREADY_EXISTS,
    VERIFICATION_FAILED,
    AbstractAuthProvider,
    AuthProviderError,
)
from subdash.service_layer.exceptions import StoreUnavailable
from subdash.service_layer.repositories import DeviceRepository

VALID_CODE = "123456"


class FakeDeviceRepository(DeviceRepository):
    """In-memory device registry.

    Put method names in `failing` to make those calls raise StoreUnavailable, or
    map them to any exception in `errors`. Every call is recorded in `calls`;
    rows placed with `seed` are not.
    """

    def __init__(self, items: list[AuthorizedDevice] | None = None):
        self._items = list(items) if items else []
        self.failing: set[str] = set()
        self.errors: dict[str, Exception] = {}
        self.calls: list[str] = []

    def _record(self, operation: str) -> None:
        self.calls.append(operation)
        if operation in self.errors:
            raise self.errors[operation]
        if operation in self.failing:
            raise StoreUnavailable(operation=operation)

    def seed(self, *devices: AuthorizedDevice) -> None:
        self._items.extend(devices)

    def _for_user(self, user_id: uuid.UUID) -> list[AuthorizedDevice]:
        return [device for device in self._items if device.user_id == user_id]

    def all(self) -> list[AuthorizedDevice]:
        return list(self._items)

    async def list_active_sessions(self, user_id: uuid.UUID) -> list[AuthorizedDevice]:
        self._record("list_active_sessions")
        return [device for device in self._for_user(user_id) if device.is_active]

    async def list_devices(self, user_id: uuid.UUID) -> list[AuthorizedDevice]:
        self._record("list_devices")
        return self._for_user(user_id)

    async def get(self, user_id: uuid.UUID, device_id: uuid.UUID) -> AuthorizedDevice | None:
        self._record("get")
        for device in self._for_user(user_id):
            if device.id == device_id:
                return device
        return None

    async def find_by_fingerprint(self, user_id: uuid.UUID, fingerprint: str) -> AuthorizedDevice | None:
        self._record("find_by_fingerprint")
        for device in self._for_user(user_id):
            if device.device_fingerprint == fingerprint:
                return device
        return None

    async def add(self, device: AuthorizedDevice) -> None:
        self._record("add")
        self._items.append(device)

    async def update_last_used_and_activate(
        self, user_id: uuid.UUID, device_id: uuid.UUID, session_token: str
    ) -> AuthorizedDevice | None:
        self._record("update_last_used_and_activate")
        for device in self._for_user(user_id):
            if device.id == device_id:
                device.activate(session_token)
                return device
        return None

    async def deactivate_by_session_token(self, user_id: uuid.UUID, session_token: str) -> int:
        self._record("deactivate_by_session_token")
        matching = [device for device in self._for_user(user_id) if device.session_token == session_token]
        for device in matching:
            device.deactivate()
        return len(matching)

    async def deactivate(self, user_id: uuid.UUID, device_id: uuid.UUID) -> bool:
        self._record("deactivate")
        for device in self._for_user(user_id):
            if device.id == device_id:
                device.deactivate()
                return True
        return False

    async def touch(self, user_id: uuid.UUID, fingerprint: str) -> int:
        self._record("touch")
        matching = [
            device
            for device in self._for_user(user_id)
            if device.device_fingerprint == fingerprint and device.is_active
        ]
        for device in matching:
            device.touch()
        return len(matching)

    async def delete(self, user_id: uuid.UUID, device_id: uuid.UUID) -> bool:
        self._record("delete")
        for device in self._for_user(user_id):
            if device.id == device_id:
                self._items.remove(device)
                return True
        return False


class FakeAuthProvider(AbstractAuthProvider):
    """In-memory auth provider with one account and a fixed valid TOTP code."""

    def __init__(self, email: str = "admin@example.com", password: str = "correct-horse"):
        self.user_id = uuid.uuid4()
        self.accounts: dict[str, str] = {email: password}
        self.current: AuthSession | None = None
        self.factors: dict[str, MfaFactor] = {}
        self.challenges: dict[str, MfaChallenge] = {}
        self.valid_code = VALID_CODE
        self.fail_list_factors = False
        self.fail_sign_in_with: Exception | None = None
        self.sign_in_calls = 0
        self.sign_out_calls = 0
        self.unenrolled: list[str] = []

    def add_factor(self, status: FactorStatus = FactorStatus.VERIFIED, friendly_name: str = "Phone") -> MfaFactor:
        factor = MfaFactor(factor_id=str(uuid.uuid4()), status=status, friendly_name=friendly_name)
        self.factors[factor.factor_id] = factor
        return factor

    def _require_session(self) -> AuthSession:
        if self.current is None:
            raise AuthProviderError("Auth session missing!", code=NOT_AUTHENTICATED)
        return self.current

    async def sign_up(self, email: str, password: str) -> None:
        if email in self.accounts:
            raise AuthProviderError("User already registered", code=USER_ALREADY_EXISTS)
        self.accounts[email] = password

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        self.sign_in_calls += 1
        if self.fail_sign_in_with is not None:
            raise self.fail_sign_in_with
        if self.accounts.get(email) != password:
            raise AuthProviderError("Invalid login credentials", code=INVALID_CREDENTIALS)
        self.current = AuthSession(
            access_token=f"token-{uuid.uuid4()}",
            user_id=self.user_id,
            email=email,
            expires_at=datetime.now(UTC) + timedelta(hours=1),
        )
        return self.current

    async def sign_out(self) -> None:
        self.sign_out_calls += 1
        self.current = None

    async def get_session(self) -> AuthSession | None:
        return self.current

    async def mfa_enroll(self, friendly_name: str) -> EnrollmentTicket:
        self._require_session()
        factor = self.add_factor(FactorStatus.UNVERIFIED, friendly_name)
        return EnrollmentTicket(
            factor_id=factor.factor_id,
            qr_code="data:image/png;base64,iVBORw0KGgo=",
            secret="JBSWY3DPEHPK3PXP",  # pragma: allowlist secret
            uri="otpauth://totp/Subdash:admin%40example.com?secret=JBSWY3DPEHPK3PXP",
        )

    async def mfa_challenge(self, factor_id: str) -> MfaChallenge:
        self._require_session()
        if factor_id not in self.factors:
            raise AuthProviderError(f"Factor {factor_id} not found", code=FACTOR_NOT_FOUND)
        challenge = MfaChallenge(
            challenge_id=str(uuid.uuid4()),
            factor_id=factor_id,
            expires_at=datetime.now(UTC) + timedelta(minutes=5),
        )
        self.challenges[challenge.challenge_id] = challenge
        return challenge

    async def mfa_verify(self, factor_id: str, challenge_id: str, code: str) -> None:
        session = self._require_session()
        if self.challenges.pop(challenge_id, None) is None:
            raise AuthProviderError(f"Challenge {challenge_id} not found", code=CHALLENGE_NOT_FOUND)
        if code != self.valid_code:
            raise AuthProviderError("Invalid TOTP code entered", code=VERIFICATION_FAILED)
        factor = self.factors[factor_id]
        self.factors[factor_id] = MfaFactor(
            factor_id=factor.factor_id,
            status=FactorStatus.VERIFIED,
            friendly_name=factor.friendly_name,
            created_at=factor.created_at,
        )
        self.current = AuthSession(
            access_token=session.access_token,
            user_id=session.user_id,
            email=session.email,
            expires_at=session.expires_at,
            mfa_verified=True,
        )

    async def mfa_unenroll(self, factor_id: str) -> None:
        self._require_session()
        if self.factors.pop(factor_id, None) is None:
            raise AuthProviderError(f"Factor {factor_id} not found", code=FACTOR_NOT_FOUND)
        self.unenrolled.append(factor_id)

    async def mfa_list_factors(self) -> list[MfaFactor]:
        self._require_session()
        if self.fail_list_factors:
            raise AuthProviderError("Service unavailable", code="service_unavailable")
        return list(self.factors.values())
