"""ABOUTME: CLI commands for signing in and out of the dashboard
ABOUTME: Runs the full login gate, including the second factor step when one is enrolled"""

import click

from subdash.bootstrap import Services
from subdash.domain.auth_results import AuthSession, LoginResult, OperationResult

from .helpers import echo_error, echo_success, run_with_services


@click.group()
def auth() -> None:
    """Sign in, sign out and session status."""
    pass


def _report_login(result: LoginResult) -> None:
    if result.is_denied:
        echo_error(result.error)
        raise click.Abort()
    if result.is_success and result.session is not None:
        echo_success(f"Logged in as {result.session.email}")


@auth.command("login")
@click.option("--email", required=True, help="Operator email address")
@click.option("--password", help="Password (will prompt if not provided)")
@click.option("--code", help="Authenticator code, if two-factor authentication is enabled")
def login(email: str, password: str | None, code: str | None) -> None:
    """Log in from this device."""
    if not password:
        password = click.prompt("Password", hide_input=True)

    async def _sign_in(services: Services) -> LoginResult:
        return await services.login.sign_in(email, password)

    result = run_with_services(_sign_in)
    if not result.mfa_pending:
        _report_login(result)
        return

    click.echo("Two-factor authentication is enabled for this account.")
    if not code:
        code = click.prompt("Enter the 6-digit code from your authenticator app")
    factor_id = result.factor_id

    async def _complete(services: Services) -> LoginResult:
        return await services.login.complete_mfa(factor_id, code)

    mfa_result = run_with_services(_complete)
    if mfa_result.is_denied:
        echo_error(mfa_result.error)
        click.echo(f"Retry with: subdash auth mfa-verify --factor-id {factor_id} --code <code>")
        raise click.Abort()
    _report_login(mfa_result)


@auth.command("mfa-verify")
@click.option("--factor-id", required=True, help="Factor id shown by 'auth login'")
@click.option("--code", required=True, help="6-digit authenticator code")
def mfa_verify(factor_id: str, code: str) -> None:
    """Finish a login that is waiting for its second factor."""

    async def _complete(services: Services) -> LoginResult:
        return await services.login.complete_mfa(factor_id, code)

    _report_login(run_with_services(_complete))


@auth.command("logout")
def logout() -> None:
    """Log out and free this device's session slot."""

    async def _sign_out(services: Services) -> OperationResult:
        return await services.login.sign_out()

    result = run_with_services(_sign_out)
    if not result.success:
        echo_error(result.error)
        raise click.Abort()
    echo_success(result.message)


@auth.command("status")
def status() -> None:
    """Show who is logged in on this device."""

    async def _session(services: Services) -> AuthSession | None:
        return await services.provider.get_session()

    session = run_with_services(_session)
    if session is None:
        click.echo("Not logged in.")
        return
    click.echo(f"Logged in as {session.email}")
    click.echo(f"  User id: {session.user_id}")
    click.echo(f"  Two-factor verified: {'yes' if session.mfa_verified else 'no'}")
    click.echo(f"  Session expires: {session.expires_at.strftime('%Y-%m-%d %H:%M %Z')}")
