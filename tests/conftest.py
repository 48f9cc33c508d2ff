"""ABOUTME: Pytest configuration and fixtures for subdash tests
ABOUTME: Provides environment helpers, an encryption key and an in-memory async SQLite database"""

import base64
import os
import secrets

import pytest

from subdash.adapters import database


@pytest.fixture(autouse=True)
def set_test_env():
    """Automatically set test environment for all tests."""
    original_env = os.environ.get("SUBDASH_ENV")
    os.environ["SUBDASH_ENV"] = "testing"
    yield
    if original_env is not None:
        os.environ["SUBDASH_ENV"] = original_env
    else:
        os.environ.pop("SUBDASH_ENV", None)


@pytest.fixture
def clear_env_vars():
    """Fixture to temporarily remove environment variables for testing."""
    original_vars = {}

    def _clear_env_vars(*args):
        for key in args:
            original_vars[key] = os.environ.get(key)
            os.environ.pop(key, None)

    yield _clear_env_vars

    # Restore original environment variables
    for key, value in original_vars.items():
        if value is not None:
            os.environ[key] = value


@pytest.fixture
def temp_env_vars():
    """Fixture to temporarily set environment variables for testing."""
    original_vars = {}

    def _set_env_vars(**kwargs):
        for key, value in kwargs.items():
            original_vars[key] = os.environ.get(key)
            os.environ[key] = value

    yield _set_env_vars

    # Restore original environment variables
    for key, value in original_vars.items():
        if value is not None:
            os.environ[key] = value
        else:
            os.environ.pop(key, None)


@pytest.fixture
def totp_encryption_key(temp_env_vars):
    """A fresh master key for TOTP secret encryption."""
    test_key = base64.b64encode(secrets.token_bytes(32)).decode()
    temp_env_vars(TOTP_ENCRYPTION_KEY=test_key)
    return test_key


@pytest.fixture
def mappers():
    database.start_mappers()
    yield
    database.clear_mappers()


@pytest.fixture
async def sqlite_engine():
    engine = database.create_engine("sqlite+aiosqlite:///:memory:")
    await database.create_tables(engine)
    yield engine
    await database.drop_tables(engine)
    await engine.dispose()


@pytest.fixture
def sqlite_session_factory(sqlite_engine, mappers):
    return database.create_session_factory(engine=sqlite_engine)
