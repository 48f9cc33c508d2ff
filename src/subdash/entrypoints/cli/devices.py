"""ABOUTME: CLI commands for managing the devices and sessions of the logged in operator
ABOUTME: Lists devices, terminates sessions remotely and forgets logged out devices"""

import uuid

import click

from subdash.bootstrap import Services
from subdash.domain.devices import AuthorizedDevice
from subdash.service_layer import account_service
from subdash.service_layer.exceptions import ServiceLayerError

from .helpers import echo_error, echo_success, require_user_id, run_with_services


@click.group()
def devices() -> None:
    """Device and session management commands."""
    pass


def _format_device(device: AuthorizedDevice) -> str:
    state = click.style("active", "green") if device.is_active else click.style("logged out", "yellow")
    last_used = device.last_used_at.strftime("%Y-%m-%d %H:%M")
    return f"  {device.id}  {device.device_name or 'Unknown device'}  [{state}]  last used {last_used}"


@devices.command("list")
@click.option("--all", "show_all", is_flag=True, help="Include devices that are logged out")
def list_devices(show_all: bool) -> None:
    """List devices with an active session."""

    async def _list(services: Services) -> list[AuthorizedDevice]:
        user_id = await require_user_id(services)
        if show_all:
            return await account_service.list_devices(services.devices, user_id)
        return await account_service.list_active_sessions(services.devices, user_id)

    try:
        found = run_with_services(_list)
    except ServiceLayerError as e:
        echo_error(str(e))
        raise click.Abort() from e

    if not found:
        click.echo("No devices found.")
        return

    click.echo(f"Found {len(found)} device(s):")
    for device in found:
        click.echo(_format_device(device))


@devices.command("terminate")
@click.argument("device_id", type=click.UUID)
def terminate(device_id: uuid.UUID) -> None:
    """Log out DEVICE_ID remotely."""

    async def _terminate(services: Services) -> AuthorizedDevice:
        user_id = await require_user_id(services)
        return await account_service.terminate_session(services.devices, user_id, device_id)

    try:
        device = run_with_services(_terminate)
    except ServiceLayerError as e:
        echo_error(str(e))
        raise click.Abort() from e
    echo_success(f"Session on {device.device_name or 'Unknown device'} terminated")


@devices.command("delete")
@click.argument("device_id", type=click.UUID)
def delete(device_id: uuid.UUID) -> None:
    """Forget DEVICE_ID. The device has to be logged out first."""

    async def _delete(services: Services) -> None:
        user_id = await require_user_id(services)
        await account_service.delete_device(services.devices, user_id, device_id)

    try:
        run_with_services(_delete)
    except ServiceLayerError as e:
        echo_error(str(e))
        raise click.Abort() from e
    echo_success(f"Device {device_id} removed")
