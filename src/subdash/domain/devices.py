"""ABOUTME: AuthorizedDevice domain model for device authorization and session tracking
ABOUTME: One registration of a device for a user, active while a session is bound to it"""

import uuid
from datetime import UTC, datetime


class AuthorizedDevice:
    """A device a user has signed in from.

    The pair (user_id, device_fingerprint) identifies the device. The row counts
    against the concurrent session ceiling while is_active is set, and
    session_token is present exactly when the row is active.
    """

    def __init__(
        self,
        user_id: uuid.UUID,
        device_fingerprint: str,
        device_id: str = "",
        device_name: str = "",
        browser: str = "",
        os: str = "",
        platform: str = "",
        is_active: bool = False,
        session_token: str | None = None,
        last_used_at: datetime | None = None,
        created_at: datetime | None = None,
        authorized_device_id: uuid.UUID | None = None,
    ):
        if not device_fingerprint:
            raise ValueError("Device fingerprint is required")
        if is_active != bool(session_token):
            raise ValueError("An active device needs a session token, an inactive one must not have one")

        self.id = authorized_device_id or uuid.uuid4()
        self.user_id = user_id
        self.device_id = device_id
        self.device_fingerprint = device_fingerprint
        self.device_name = device_name
        self.browser = browser
        self.os = os
        self.platform = platform
        self.is_active = is_active
        self.session_token = session_token
        self.created_at = created_at or datetime.now(UTC)
        self.last_used_at = last_used_at or self.created_at

    def activate(self, session_token: str, now: datetime | None = None) -> None:
        """Bind a new login session to this device."""
        if not session_token:
            raise ValueError("Cannot activate a device without a session token")
        self.is_active = True
        self.session_token = session_token
        self.last_used_at = now or datetime.now(UTC)

    def deactivate(self) -> None:
        self.is_active = False
        self.session_token = None

    def touch(self, now: datetime | None = None) -> None:
        self.last_used_at = now or datetime.now(UTC)

    def can_be_deleted(self) -> bool:
        return not self.is_active

    def __repr__(self) -> str:
        return (
            f"AuthorizedDevice(id={self.id}, user_id={self.user_id}, "
            f"device_name={self.device_name!r}, is_active={self.is_active})"
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AuthorizedDevice):  # pragma: no cover
            return False
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)
