"""ABOUTME: Account settings operations for the signed-in operator
ABOUTME: Device and session management, plus turning two-factor authentication off safely"""

import uuid

import structlog

from subdash.domain.auth_results import FactorListResult, OperationResult
from subdash.domain.devices import AuthorizedDevice
from subdash.service_layer.exceptions import DeviceNotFound, DeviceStillActive
from subdash.service_layer.mfa_gateway import MfaGateway
from subdash.service_layer.repositories import DeviceRepository

logger = structlog.get_logger(__name__)


async def list_active_sessions(devices: DeviceRepository, user_id: uuid.UUID) -> list[AuthorizedDevice]:
    return await devices.list_active_sessions(user_id)


async def list_devices(devices: DeviceRepository, user_id: uuid.UUID) -> list[AuthorizedDevice]:
    return await devices.list_devices(user_id)


async def terminate_session(devices: DeviceRepository, user_id: uuid.UUID, device_id: uuid.UUID) -> AuthorizedDevice:
    """Log a device out remotely, freeing its session slot.

    Raises:
        DeviceNotFound: If the user has no such device
    """
    device = await devices.get(user_id, device_id)
    if device is None:
        raise DeviceNotFound(device_id)

    await devices.deactivate(user_id, device_id)
    logger.info("session terminated", user_id=str(user_id), device_id=str(device_id))
    device.deactivate()
    return device


async def delete_device(devices: DeviceRepository, user_id: uuid.UUID, device_id: uuid.UUID) -> None:
    """Forget a device. Only devices that are logged out can be removed.

    Raises:
        DeviceNotFound: If the user has no such device
        DeviceStillActive: If the device still holds a session
    """
    device = await devices.get(user_id, device_id)
    if device is None:
        raise DeviceNotFound(device_id)
    if not device.can_be_deleted():
        raise DeviceStillActive(device.device_name)

    await devices.delete(user_id, device_id)
    logger.info("device removed", user_id=str(user_id), device_id=str(device_id))


async def record_session_activity(devices: DeviceRepository, user_id: uuid.UUID, fingerprint: str) -> bool:
    """Heartbeat for the current device. Returns False if it holds no active session."""
    return await devices.touch(user_id, fingerprint) > 0


async def get_mfa_status(gateway: MfaGateway) -> FactorListResult:
    return await gateway.list_factors()


async def disable_mfa(gateway: MfaGateway, factor_id: str, code: str) -> OperationResult:
    """Turn MFA off, but only after the user proves they still hold the factor."""
    verification = await gateway.verify_challenge(factor_id, code)
    if not verification.success:
        return verification
    return await gateway.unenroll(factor_id)
