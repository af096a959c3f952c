"""
AuditGuard - Celery Worker Tasks

The workflow engine side of the pipeline:

    auditguard.workflow.dispatch_event  -> routes a delivered signal by name
    auditguard.workflow.run_audit       -> event-initiated audit run
    auditguard.outbox.sweep             -> periodic outbox relay (beat)

Tasks drive the async use cases with ``asyncio.run``; loop-bound client
handles are released after every run.
"""

import asyncio
from typing import Any, Dict

from celery import Celery
from celery.utils.log import get_task_logger

from .application.dtos import WorkflowEnvelope
from .config import ServiceConfig, get_service_config
from .container import get_container
from .domain.events import WorkflowSignal

logger = get_task_logger(__name__)

WORKFLOW_QUEUE = 'auditguard.workflow'


def configure_celery(app: Celery, config: ServiceConfig) -> None:
    """Configure Celery app settings."""
    app.conf.update(
        broker_url=config.broker_url,
        result_backend=config.result_backend,

        # Serialization
        task_serializer='json',
        accept_content=['json'],
        result_serializer='json',

        # Timezone
        timezone='UTC',
        enable_utc=True,

        # Task tracking
        task_track_started=True,
        task_time_limit=600,
        task_soft_time_limit=540,

        # Reliability settings
        worker_prefetch_multiplier=1,
        task_acks_late=True,
        task_reject_on_worker_lost=True,

        # Broker connection resilience
        broker_connection_retry_on_startup=True,
        broker_connection_retry=True,
        broker_connection_max_retries=10,

        task_default_queue=WORKFLOW_QUEUE,
        task_routes={
            'auditguard.workflow.*': {'queue': WORKFLOW_QUEUE},
            'auditguard.outbox.*': {'queue': WORKFLOW_QUEUE},
        },

        result_expires=86400,
    )

    # Celery Beat schedule for periodic tasks
    app.conf.beat_schedule = {
        'sweep-outbox': {
            'task': 'auditguard.outbox.sweep',
            'schedule': config.outbox_sweep_interval_seconds,
        },
    }


def create_celery_app(config: ServiceConfig) -> Celery:
    """Build the worker app from the service configuration."""
    app = Celery('auditguard')
    configure_celery(app, config)
    return app


celery_app = create_celery_app(get_service_config())


def _run(coro) -> Any:
    """Run one coroutine in a fresh event loop and release loop-bound handles."""
    async def runner():
        try:
            return await coro
        finally:
            await get_container().aclose()

    return asyncio.run(runner())


def retry_countdown(retries: int, base_seconds: int = 5) -> int:
    """Exponential backoff: 5s, 10s, 20s, ..."""
    return base_seconds * (2 ** retries)


@celery_app.task(bind=True, name='auditguard.workflow.run_audit', max_retries=3)
def run_audit(self, envelope: Dict[str, Any]) -> Dict[str, Any]:
    """
    Event-initiated audit run.

    Retryable failures (bad model output, upstream unavailable) are retried
    with exponential countdown; when retries are exhausted the task reports
    ``{"success": false}`` instead of raising.
    """
    container = get_container()
    max_retries = container.config.workflow_max_retries

    request = WorkflowEnvelope.from_dict(envelope or {})
    logger.info(f"Workflow audit run for job {request.job_id} (attempt {self.request.retries + 1})")

    use_case = container.execute_audit_workflow_use_case()
    result = _run(use_case.execute(request))

    if result.is_success or not result.retryable:
        if not result.is_success:
            logger.warning(f"Workflow audit run for job {request.job_id} ended: {result.message}")
        return result.to_dict()

    if self.request.retries >= max_retries:
        logger.error(
            f"Workflow audit run for job {request.job_id} failed after "
            f"{self.request.retries + 1} attempts: {result.message}"
        )
        return result.to_dict()

    countdown = retry_countdown(self.request.retries)
    logger.warning(f"Retrying workflow audit run for job {request.job_id} in {countdown}s: {result.message}")
    raise self.retry(countdown=countdown, max_retries=max_retries)


@celery_app.task(name='auditguard.workflow.dispatch_event')
def dispatch_event(name: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Route one delivered workflow signal to its handler."""
    if name == WorkflowSignal.AUDIT_REQUESTED:
        async_result = run_audit.apply_async(kwargs={'envelope': data}, queue=WORKFLOW_QUEUE)
        logger.info(f"Routed {name} for job {data.get('jobId')} to run_audit ({async_result.id})")
        return {'acknowledged': True, 'routed': 'run_audit', 'taskId': async_result.id}

    if name == WorkflowSignal.AUDIT_COMPLETED:
        logger.info(
            f"Audit completed for job {data.get('jobId')}: "
            f"{len(data.get('auditIds') or [])} audits (company {data.get('companyId')})"
        )
        return {'acknowledged': True}

    logger.warning(f"No handler for workflow signal {name}")
    return {'acknowledged': False}


@celery_app.task(name='auditguard.outbox.sweep')
def sweep_outbox() -> Dict[str, Any]:
    """Periodic task delivering whatever is left in the outbox."""
    processor = get_container().outbox_processor()
    delivered = _run(processor.sweep())
    return {'delivered': delivered}

