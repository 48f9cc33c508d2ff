"""ABOUTME: Abstract repository interface for authorized device records
ABOUTME: Every operation is scoped by user id so callers never see another user's devices"""

from __future__ import annotations

import abc
import uuid

from subdash.domain.devices import AuthorizedDevice


class DeviceRepository(abc.ABC):
    """Repository interface for AuthorizedDevice domain objects.

    Implementations raise StoreUnavailable when the store fails. A missing row
    is reported as None/False/0, never as an error.
    """

    @abc.abstractmethod
    async def list_active_sessions(self, user_id: uuid.UUID) -> list[AuthorizedDevice]:
        """Active devices for the user, most recently used first."""
        raise NotImplementedError

    @abc.abstractmethod
    async def list_devices(self, user_id: uuid.UUID) -> list[AuthorizedDevice]:
        """All devices for the user, most recently used first."""
        raise NotImplementedError

    @abc.abstractmethod
    async def get(self, user_id: uuid.UUID, device_id: uuid.UUID) -> AuthorizedDevice | None:
        raise NotImplementedError

    @abc.abstractmethod
    async def find_by_fingerprint(self, user_id: uuid.UUID, fingerprint: str) -> AuthorizedDevice | None:
        """The canonical row for (user_id, fingerprint), if any."""
        raise NotImplementedError

    @abc.abstractmethod
    async def add(self, device: AuthorizedDevice) -> None:
        raise NotImplementedError

    @abc.abstractmethod
    async def update_last_used_and_activate(
        self, user_id: uuid.UUID, device_id: uuid.UUID, session_token: str
    ) -> AuthorizedDevice | None:
        """Bind session_token to the device and bump last_used_at. Returns the updated device."""
        raise NotImplementedError

    @abc.abstractmethod
    async def deactivate_by_session_token(self, user_id: uuid.UUID, session_token: str) -> int:
        """Deactivate the device(s) bound to session_token. Returns how many rows changed."""
        raise NotImplementedError

    @abc.abstractmethod
    async def deactivate(self, user_id: uuid.UUID, device_id: uuid.UUID) -> bool:
        """Deactivate one device. Returns True if the device was found."""
        raise NotImplementedError

    @abc.abstractmethod
    async def touch(self, user_id: uuid.UUID, fingerprint: str) -> int:
        """Bump last_used_at on the active device with this fingerprint."""
        raise NotImplementedError

    @abc.abstractmethod
    async def delete(self, user_id: uuid.UUID, device_id: uuid.UUID) -> bool:
        """Delete one device. Returns True if the device was found."""
        raise NotImplementedError
