"""ABOUTME: SQLAlchemy implementation of the device repository
ABOUTME: Each call runs in its own short transaction and reports store failures as StoreUnavailable"""

from __future__ import annotations

import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import Select, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from subdash.adapters import orm
from subdash.domain.devices import AuthorizedDevice
from subdash.service_layer.exceptions import StoreUnavailable
from subdash.service_layer.repositories import DeviceRepository

devices_table = orm.authorized_devices


class SqlAlchemyDeviceRepository(DeviceRepository):
    """SQLAlchemy implementation of DeviceRepository."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self.session_factory() as session:
                yield session
        except SQLAlchemyError as error:
            raise StoreUnavailable(operation=operation) from error

    def _for_user(self, user_id: uuid.UUID) -> Select[tuple[AuthorizedDevice]]:
        return select(AuthorizedDevice).where(devices_table.c.user_id == user_id)

    async def list_active_sessions(self, user_id: uuid.UUID) -> list[AuthorizedDevice]:
        async with self._session("list active sessions") as session:
            result = await session.execute(
                self._for_user(user_id)
                .where(devices_table.c.is_active.is_(True))
                .order_by(devices_table.c.last_used_at.desc())
            )
            return list(result.scalars().all())

    async def list_devices(self, user_id: uuid.UUID) -> list[AuthorizedDevice]:
        async with self._session("list devices") as session:
            result = await session.execute(self._for_user(user_id).order_by(devices_table.c.last_used_at.desc()))
            return list(result.scalars().all())

    async def get(self, user_id: uuid.UUID, device_id: uuid.UUID) -> AuthorizedDevice | None:
        async with self._session("load device") as session:
            result = await session.execute(self._for_user(user_id).where(devices_table.c.id == device_id))
            return result.scalars().first()

    async def find_by_fingerprint(self, user_id: uuid.UUID, fingerprint: str) -> AuthorizedDevice | None:
        async with self._session("look up device") as session:
            result = await session.execute(
                self._for_user(user_id)
                .where(devices_table.c.device_fingerprint == fingerprint)
                .order_by(devices_table.c.last_used_at.desc())
                .limit(1)
            )
            return result.scalars().first()

    async def add(self, device: AuthorizedDevice) -> None:
        async with self._session("register device") as session:
            session.add(device)
            await session.commit()

    async def update_last_used_and_activate(
        self, user_id: uuid.UUID, device_id: uuid.UUID, session_token: str
    ) -> AuthorizedDevice | None:
        async with self._session("activate device") as session:
            result = await session.execute(self._for_user(user_id).where(devices_table.c.id == device_id))
            device = result.scalars().first()
            if device is None:
                return None
            device.activate(session_token)
            await session.commit()
            return device

    async def deactivate_by_session_token(self, user_id: uuid.UUID, session_token: str) -> int:
        async with self._session("release device") as session:
            result = await session.execute(
                self._for_user(user_id).where(devices_table.c.session_id == session_token)
            )
            matching = list(result.scalars().all())
            for device in matching:
                device.deactivate()
            await session.commit()
            return len(matching)

    async def deactivate(self, user_id: uuid.UUID, device_id: uuid.UUID) -> bool:
        async with self._session("terminate session") as session:
            result = await session.execute(self._for_user(user_id).where(devices_table.c.id == device_id))
            device = result.scalars().first()
            if device is None:
                return False
            device.deactivate()
            await session.commit()
            return True

    async def touch(self, user_id: uuid.UUID, fingerprint: str) -> int:
        async with self._session("record session activity") as session:
            result = await session.execute(
                self._for_user(user_id)
                .where(devices_table.c.device_fingerprint == fingerprint)
                .where(devices_table.c.is_active.is_(True))
            )
            matching = list(result.scalars().all())
            for device in matching:
                device.touch()
            await session.commit()
            return len(matching)

    async def delete(self, user_id: uuid.UUID, device_id: uuid.UUID) -> bool:
        async with self._session("delete device") as session:
            result = await session.execute(self._for_user(user_id).where(devices_table.c.id == device_id))
            device = result.scalars().first()
            if device is None:
                return False
            await session.delete(device)
            await session.commit()
            return True
