"""Outbox relay commands."""

import click

from auditguard.cli._runtime import run_with_container


@click.group()
def outbox():
    """Deliver pending workflow signals."""
    pass


@outbox.command("sweep")
def sweep():
    """Deliver one batch of undelivered signals and exit."""
    async def action(container):
        return await container.outbox_processor().sweep()

    delivered = run_with_container(action)
    click.echo(f"Delivered {delivered} signal(s)")


@outbox.command("run")
def run():
    """Poll the outbox until interrupted."""
    async def action(container):
        processor = container.outbox_processor()
        try:
            await processor.start()
        finally:
            await processor.stop()

    click.echo("Outbox relay running, press Ctrl+C to stop")
    try:
        run_with_container(action)
    except KeyboardInterrupt:
        click.echo("Stopped")
