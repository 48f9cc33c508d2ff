"""ABOUTME: Database connection setup and imperative mapping for subdash
ABOUTME: Configures async SQLAlchemy sessions and maps domain objects to tables"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import clear_mappers as sqla_clear_mappers
from sqlalchemy.pool import StaticPool

from subdash.adapters import orm
from subdash.config import bool_environ_get, get_db_uri
from subdash.domain import devices


class DatabaseError(Exception):
    """Base exception for database-related errors."""

    pass


def create_engine(database_url: str = "", echo: bool = False) -> AsyncEngine:
    database_url = database_url or get_db_uri()
    echo = bool_environ_get("DB_ECHO") or echo
    extra_args: dict[str, object] = {}
    if database_url.startswith("postgresql"):
        extra_args = {
            "pool_pre_ping": True,  # Verify connections before use
            "pool_recycle": 3600,  # Recycle connections after 1 hour
            "pool_size": 10,
            "max_overflow": 20,
        }
    elif ":memory:" in database_url:
        # every connection to an in-memory sqlite database is a new empty database
        extra_args = {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    return create_async_engine(database_url, echo=echo, **extra_args)


def create_session_factory(
    database_url: str = "", echo: bool = False, engine: AsyncEngine | None = None
) -> async_sessionmaker[AsyncSession]:
    """Create an async SQLAlchemy session factory with proper configuration."""
    engine = engine or create_engine(database_url, echo=echo)
    return async_sessionmaker(bind=engine, expire_on_commit=False)


async def create_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(orm.metadata.create_all)


async def drop_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(orm.metadata.drop_all)


# Track if mappers have been started
_mappers_started = False


def start_mappers() -> None:
    """Start imperative mapping between domain objects and database tables.

    The mapping is done imperatively to keep domain objects independent of SQLAlchemy.
    """
    global _mappers_started

    if _mappers_started:
        return

    try:
        # the store column is called session_id, the domain calls it session_token
        orm.mapper_registry.map_imperatively(
            devices.AuthorizedDevice,
            orm.authorized_devices,
            properties={"session_token": orm.authorized_devices.c.session_id},
        )

        _mappers_started = True

    except Exception as e:  # pragma: no cover
        raise DatabaseError(f"Failed to start mappers: {e}") from e


def clear_mappers() -> None:
    sqla_clear_mappers()

    global _mappers_started
    _mappers_started = False
