"""Workflow commands."""

import json

import click

from auditguard.api.application.dtos import WorkflowEnvelope
from auditguard.cli._runtime import run_with_container


@click.group()
def workflow():
    """Event-initiated audits."""
    pass


@workflow.command("request")
@click.option("--job-id", required=True, help="Job to audit")
@click.option("--company-id", required=True, help="Company that owns the job")
@click.option("--event-id", default=None, help="Triggering event id (re-use it to de-duplicate)")
@click.option("--telemetry", default="{}", help="Telemetry as a JSON object")
@click.option("--inline", is_flag=True, help="Run the audit in this process instead of queueing it")
def request(job_id: str, company_id: str, event_id: str, telemetry: str, inline: bool):
    """Request a compliance audit run for a job.

    Example:
        auditguard workflow request --job-id job-1 --company-id acme
        auditguard workflow request --job-id job-1 --company-id acme --inline
    """
    try:
        telemetry_data = json.loads(telemetry)
    except ValueError:
        raise click.BadParameter("must be a JSON object", param_hint="--telemetry")
    if not isinstance(telemetry_data, dict):
        raise click.BadParameter("must be a JSON object", param_hint="--telemetry")

    envelope = WorkflowEnvelope(
        job_id=job_id,
        company_id=company_id,
        telemetry=telemetry_data,
        event_id=event_id,
    )

    if inline:
        async def run_inline(container):
            return await container.execute_audit_workflow_use_case().execute(envelope)

        result = run_with_container(run_inline)
        click.echo(json.dumps(result.to_dict()))
        if not result.is_success:
            raise SystemExit(1)
        return

    async def enqueue(container):
        result = await container.request_audit_workflow_use_case().execute(envelope)
        if result.is_success:
            await container.outbox_processor().deliver([result.data["messageId"]])
        return result

    result = run_with_container(enqueue)
    if not result.is_success:
        raise click.ClickException("; ".join(result.errors) or result.message)
    click.echo(f"Queued audit for job {job_id} (event {result.data['eventId']})")
