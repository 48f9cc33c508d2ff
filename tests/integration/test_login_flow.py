"""ABOUTME: End to end login gate tests against the SQLite stores
ABOUTME: Wires the real provider and repository through bootstrap and walks full login journeys"""

import pyotp
import pytest

from subdash.adapters.storage import MemoryStorage
from subdash.bootstrap import bootstrap
from subdash.domain.value_objects import LoginStage
from subdash.service_layer.device_fingerprint import DeviceEnvironment

pytestmark = pytest.mark.integration

EMAIL = "admin@example.com"
PASSWORD = "correct-horse"  # pragma: allowlist secret


def _environment(version: int) -> DeviceEnvironment:
    return DeviceEnvironment(
        user_agent=f"Mozilla/5.0 (X11; Linux x86_64; rv:{version}.0) Gecko/20100101 Firefox/{version}.0",
        language="en-GB",
        screen_width=1920,
        screen_height=1080,
        timezone="Europe/London",
        cookie_enabled=True,
        hardware_concurrency=8,
    )


@pytest.fixture
def make_services(sqlite_session_factory, temp_env_vars, totp_encryption_key):
    temp_env_vars(ALLOWED_EMAILS=EMAIL, MAX_CONCURRENT_SESSIONS="3")

    def _make(version: int = 120):
        # each device keeps its own local storage
        return bootstrap(
            start_orm=False,
            session_factory=sqlite_session_factory,
            storage=MemoryStorage(),
            environment=_environment(version),
        )

    return _make


async def test_device_limit_across_devices(make_services):
    first = make_services(120)
    assert (await first.login.sign_up(EMAIL, PASSWORD)).success

    for version in (120, 121, 122):
        result = await make_services(version).login.sign_in(EMAIL, PASSWORD)
        assert result.is_success, result.error

    refused = await make_services(123).login.sign_in(EMAIL, PASSWORD)

    assert refused.is_denied
    assert refused.stage == LoginStage.SESSION_LIMIT_CHECK
    assert refused.error.count("Firefox on Linux") == 3

    # signing out one device frees a slot
    await first.login.sign_out()
    assert (await make_services(123).login.sign_in(EMAIL, PASSWORD)).is_success


async def test_relogin_on_same_device_reuses_row(make_services):
    services = make_services()
    await services.login.sign_up(EMAIL, PASSWORD)

    first = await services.login.sign_in(EMAIL, PASSWORD)
    second = await services.login.sign_in(EMAIL, PASSWORD)

    assert first.is_success and second.is_success
    [device] = await services.devices.list_devices(second.session.user_id)
    assert device.is_active
    assert device.session_token == second.session.access_token


async def test_mfa_journey(make_services):
    services = make_services()
    await services.login.sign_up(EMAIL, PASSWORD)
    await services.login.sign_in(EMAIL, PASSWORD)

    enrollment = await services.mfa.begin_enrollment()
    assert enrollment.success
    totp = pyotp.TOTP(enrollment.secret)
    assert (await services.mfa.confirm_enrollment(enrollment.factor_id, totp.now())).success
    await services.login.sign_out()

    pending = await services.login.sign_in(EMAIL, PASSWORD)
    assert pending.mfa_pending
    assert pending.factor_id == enrollment.factor_id

    completed = await services.login.complete_mfa(pending.factor_id, totp.now())
    assert completed.is_success
    assert completed.session.mfa_verified
