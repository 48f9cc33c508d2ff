"""ABOUTME: Main CLI entry point using Click for the subdash login gate
ABOUTME: Provides subcommands for login/logout, device management, MFA and database setup"""

import click

from subdash import __version__
from subdash.config import get_log_level
from subdash.logging import logging_setup


@click.group()
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Subscription dashboard login gate."""
    ctx.ensure_object(dict)
    logging_setup(get_log_level())


@cli.command()
def version() -> None:
    """Show subdash version."""
    click.echo(f"subdash {__version__}")


# Import subcommands to register them
from .auth import auth  # noqa: E402
from .database import database  # noqa: E402
from .devices import devices  # noqa: E402
from .mfa import mfa  # noqa: E402
from .users import users  # noqa: E402

cli.add_command(auth)
cli.add_command(database)
cli.add_command(devices)
cli.add_command(mfa)
cli.add_command(users)


if __name__ == "__main__":
    cli()
