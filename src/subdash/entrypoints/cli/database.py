"""ABOUTME: CLI commands for database management operations
ABOUTME: Provides commands to create and reset the subdash tables"""

import asyncio
import os

import click

from subdash.adapters import database as db


@click.group()
def database() -> None:
    """Database management commands."""
    pass


@database.command("init")
def init_db() -> None:
    """Create any missing tables."""
    try:
        asyncio.run(_create())
        click.echo(click.style("✓ Database tables created.", "green"))
    except Exception as e:
        click.echo(click.style(f"✗ Error creating tables: {e}", "red"))
        raise click.Abort() from e


async def _create() -> None:
    engine = db.create_engine()
    try:
        await db.create_tables(engine)
    finally:
        await engine.dispose()


@database.command("reset")
def reset_db() -> None:
    """Reset the database (drop all tables and recreate)."""
    if os.environ.get("ALLOW_RESET_DB", "") != "DANGEROUS":
        click.echo("Resetting the database is a dangerous operation. In order to enable it set the")
        click.echo("environment variable ALLOW_RESET_DB to DANGEROUS.")
        return

    click.echo(click.style("⚠️  WARNING: This will destroy ALL accounts, sessions and devices!", "red"))
    delete_confirm = click.prompt("Type 'delete everything' if you want to continue.")
    if delete_confirm != "delete everything":
        click.echo("Operation cancelled.")
        return

    try:
        asyncio.run(_reset())
        click.echo(click.style("✓ Database reset successfully.", "green"))
    except Exception as e:
        click.echo(click.style(f"✗ Error resetting database: {e}", "red"))
        raise click.Abort() from e


async def _reset() -> None:
    engine = db.create_engine()
    try:
        await db.drop_tables(engine)
        await db.create_tables(engine)
    finally:
        await engine.dispose()
