"""ABOUTME: CLI commands for two-factor authentication settings
ABOUTME: Enrolls an authenticator app, confirms it, shows status and turns 2FA off after a code check"""

import base64
from pathlib import Path

import click

from subdash.bootstrap import Services
from subdash.domain.auth_results import EnrollmentResult, FactorListResult, OperationResult
from subdash.service_layer import account_service

from .helpers import echo_error, echo_success, require_user_id, run_with_services

DATA_URL_PREFIX = "data:image/png;base64,"


@click.group()
def mfa() -> None:
    """Two-factor authentication commands."""
    pass


@mfa.command("enroll")
@click.option("--qr-file", type=click.Path(dir_okay=False, path_type=Path), help="Write the QR code PNG here")
def enroll(qr_file: Path | None) -> None:
    """Start setting up an authenticator app."""

    async def _enroll(services: Services) -> EnrollmentResult:
        await require_user_id(services)
        return await services.mfa.begin_enrollment()

    result = run_with_services(_enroll)
    if not result.success:
        echo_error(result.error)
        raise click.Abort()

    click.echo("Add this secret to your authenticator app:")
    click.echo(f"  {result.secret}")
    if qr_file is not None and result.qr_code.startswith(DATA_URL_PREFIX):
        qr_file.write_bytes(base64.b64decode(result.qr_code[len(DATA_URL_PREFIX) :]))
        click.echo(f"QR code written to {qr_file}")
    click.echo("")
    click.echo("Then confirm it with:")
    click.echo(f"  subdash mfa confirm --factor-id {result.factor_id} --code <code>")


@mfa.command("confirm")
@click.option("--factor-id", required=True, help="Factor id printed by 'mfa enroll'")
@click.option("--code", required=True, help="6-digit authenticator code")
def confirm(factor_id: str, code: str) -> None:
    """Confirm a new authenticator with its first code."""

    async def _confirm(services: Services) -> OperationResult:
        await require_user_id(services)
        return await services.mfa.confirm_enrollment(factor_id, code)

    result = run_with_services(_confirm)
    if not result.success:
        echo_error(result.error)
        raise click.Abort()
    echo_success(result.message)


@mfa.command("status")
def status() -> None:
    """Show whether two-factor authentication is on."""

    async def _status(services: Services) -> FactorListResult:
        await require_user_id(services)
        return await account_service.get_mfa_status(services.mfa)

    result = run_with_services(_status)
    if not result.success:
        echo_error(result.error)
        raise click.Abort()

    factor = result.active_factor
    if factor is None:
        click.echo("Two-factor authentication is disabled.")
        return
    click.echo(click.style("Two-factor authentication is enabled.", "green"))
    click.echo(f"  Factor: {factor.friendly_name} ({factor.factor_id})")


@mfa.command("disable")
@click.option("--code", required=True, help="Current 6-digit authenticator code")
def disable(code: str) -> None:
    """Turn off two-factor authentication."""

    async def _disable(services: Services) -> OperationResult:
        await require_user_id(services)
        factors = await account_service.get_mfa_status(services.mfa)
        if not factors.success:
            return OperationResult.failed(factors.error)
        if factors.active_factor is None:
            return OperationResult.failed("Two-factor authentication is not enabled.")
        return await account_service.disable_mfa(services.mfa, factors.active_factor.factor_id, code)

    result = run_with_services(_disable)
    if not result.success:
        echo_error(result.error)
        raise click.Abort()
    echo_success(result.message)
