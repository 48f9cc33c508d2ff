"""ABOUTME: Concurrent session limit policy for new logins
ABOUTME: Decides whether a login from a given device fingerprint may take another session slot"""

import uuid
from dataclasses import dataclass, field

import structlog

from subdash.domain.devices import AuthorizedDevice
from subdash.domain.value_objects import DEFAULT_MAX_CONCURRENT_SESSIONS
from subdash.service_layer.repositories import DeviceRepository

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class SessionLimitVerdict:
    limit_reached: bool
    active_sessions: list[AuthorizedDevice] = field(default_factory=list)
    is_reauth_of_existing_device: bool = False

    def device_names(self) -> list[str]:
        return [device.device_name or "Unknown device" for device in self.active_sessions]


async def evaluate_session_limit(
    devices: DeviceRepository,
    user_id: uuid.UUID,
    candidate_fingerprint: str,
    max_sessions: int = DEFAULT_MAX_CONCURRENT_SESSIONS,
) -> SessionLimitVerdict:
    """Check whether a login from candidate_fingerprint would breach the session ceiling.

    A device that already holds an active session is logging in again, so it never
    breaches the ceiling itself. Store errors propagate: if the active sessions cannot
    be counted the caller has to refuse the login.
    """
    active_sessions = await devices.list_active_sessions(user_id)

    if any(session.device_fingerprint == candidate_fingerprint for session in active_sessions):
        logger.debug("re-login from an already active device", user_id=str(user_id))
        return SessionLimitVerdict(
            limit_reached=False,
            active_sessions=active_sessions,
            is_reauth_of_existing_device=True,
        )

    limit_reached = len(active_sessions) >= max_sessions
    if limit_reached:
        logger.info(
            "session limit reached",
            user_id=str(user_id),
            active_sessions=len(active_sessions),
            max_sessions=max_sessions,
        )
    return SessionLimitVerdict(limit_reached=limit_reached, active_sessions=active_sessions)
