from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from subdash.adapters import database
from subdash.adapters.local_auth import LocalAuthProvider
from subdash.adapters.sql_repository import SqlAlchemyDeviceRepository
from subdash.adapters.storage import KeyValueStorage, SafeStorage
from subdash.config import get_auth_policy, get_db_uri, get_storage_path
from subdash.service_layer.auth_provider import AbstractAuthProvider
from subdash.service_layer.device_fingerprint import DeviceEnvironment
from subdash.service_layer.login_service import LoginService
from subdash.service_layer.mfa_gateway import MfaGateway
from subdash.service_layer.repositories import DeviceRepository


@dataclass
class Services:
    login: LoginService
    mfa: MfaGateway
    devices: DeviceRepository
    provider: AbstractAuthProvider
    environment: DeviceEnvironment
    engine: AsyncEngine | None = None

    async def dispose(self) -> None:
        if self.engine is not None:
            await self.engine.dispose()


def bootstrap(
    start_orm: bool = True,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    storage: KeyValueStorage | None = None,
    provider: AbstractAuthProvider | None = None,
    devices: DeviceRepository | None = None,
    environment: DeviceEnvironment | None = None,
) -> Services:
    if start_orm:
        database.start_mappers()

    engine = None
    if session_factory is None:
        engine = database.create_engine(get_db_uri())
        session_factory = database.create_session_factory(engine=engine)

    if storage is None:
        storage = SafeStorage(get_storage_path())

    if provider is None:
        provider = LocalAuthProvider(session_factory, storage)

    if devices is None:
        devices = SqlAlchemyDeviceRepository(session_factory)

    if environment is None:
        environment = DeviceEnvironment.from_host()

    mfa = MfaGateway(provider)
    login = LoginService(
        provider=provider,
        devices=devices,
        policy=get_auth_policy(),
        environment=environment,
        storage=storage,
        mfa=mfa,
    )
    return Services(
        login=login, mfa=mfa, devices=devices, provider=provider, environment=environment, engine=engine
    )
