"""
AuditGuard CLI - Main entry point
"""
import click

from auditguard import __version__
from auditguard.cli import db, outbox, workflow
from auditguard.cli.serve import serve


@click.group()
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx):
    """
    AuditGuard - compliance audit pipeline

    Operational commands for the API, the database and the workflow relay.

    TYPICAL SETUP:

    1. Create the tables:
       auditguard db init

    2. Start the API:
       auditguard serve --port 8000

    3. Start a worker (separate process):
       celery -A auditguard.api.tasks worker -B

    4. Trigger an event-initiated audit:
       auditguard workflow request --job-id JOB --company-id COMPANY
    """
    ctx.ensure_object(dict)


# Register subcommands
cli.add_command(serve)
cli.add_command(db.db)
cli.add_command(outbox.outbox)
cli.add_command(workflow.workflow)


if __name__ == '__main__':
    cli()
