"""ABOUTME: Shared plumbing for the async CLI commands
ABOUTME: Builds the services, runs a coroutine against them and disposes the engine afterwards"""

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from typing import TypeVar

import click

from subdash.bootstrap import Services, bootstrap
from subdash.service_layer.auth_provider import AuthProviderError

T = TypeVar("T")


def run_with_services(func: Callable[[Services], Awaitable[T]]) -> T:
    async def _main() -> T:
        services = bootstrap()
        try:
            return await func(services)
        finally:
            await services.dispose()

    return asyncio.run(_main())


async def require_user_id(services: Services) -> uuid.UUID:
    try:
        user_id = await services.login.current_user_id()
    except AuthProviderError as e:
        raise click.ClickException(e.message or "Could not read the current session") from e
    if user_id is None:
        raise click.ClickException("Not logged in. Run 'subdash auth login' first.")
    return user_id


def echo_success(message: str) -> None:
    click.echo(click.style(f"✓ {message}", "green"))


def echo_error(message: str) -> None:
    click.echo(click.style(f"✗ Error: {message}", "red"))
