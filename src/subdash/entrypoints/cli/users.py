"""ABOUTME: CLI commands for operator account management
ABOUTME: Creates the operator account, subject to the email allow-list"""

import click

from subdash.bootstrap import Services
from subdash.domain.auth_results import OperationResult

from .helpers import echo_error, echo_success, run_with_services


@click.group()
def users() -> None:
    """Operator account commands."""
    pass


@users.command("add")
@click.option("--email", required=True, help="Operator email address (must be on ALLOWED_EMAILS)")
@click.option("--password", help="Password (will prompt if not provided)")
def add_user(email: str, password: str | None) -> None:
    """Create the operator account."""
    if not password:
        password = click.prompt("Password", hide_input=True, confirmation_prompt=True)

    async def _sign_up(services: Services) -> OperationResult:
        return await services.login.sign_up(email, password)

    result = run_with_services(_sign_up)
    if not result.success:
        echo_error(result.error)
        raise click.Abort()
    echo_success(f"Account created for {email}")
