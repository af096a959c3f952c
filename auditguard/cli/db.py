"""Database commands."""

import click

from auditguard.cli._runtime import run_with_container


@click.group()
def db():
    """Manage the audit database."""
    pass


@db.command("init")
def init():
    """Create all tables from the ORM metadata (idempotent)."""
    async def action(container):
        await container.create_schema()
        return container.config.database_url

    url = run_with_container(action)
    click.echo(f"Tables created on {url.split('@')[-1]}")
