"""
Application Layer - Use Cases

Use cases orchestrate the flow of data to and from entities,
and direct those entities to use their domain logic to achieve
the goals of the use case.

The request path (RunAutomatedAuditUseCase and the read/record use cases)
raises DomainError subclasses; the workflow path
(ExecuteAuditWorkflowUseCase) reports through Result instead.
"""

from typing import List, Optional, Tuple
import logging

from .ports import RateLimiter, UnitOfWork
from .pipeline import AuditInvoker, AuditRecorder, EventEmitter
from .dtos import (
    AutomatedAuditRequest, WorkflowEnvelope, RecordManualAuditRequest, ListJobAuditsRequest,
    AuditDTO, RequirementDTO, AuditRunResult, Result,
)
from ..domain.entities import Finding, IdempotencyRecord, Job, User
from ..domain.events import WorkflowSignal
from ..domain.exceptions import (
    DomainError, UnauthorizedError, ForbiddenError, JobNotFoundError,
    RequirementNotFoundError, RateLimitedError, InvalidModelOutputError,
    UpstreamUnavailableError, IdempotencyConflictError, IdempotencyInProgressError,
    InvalidRequestError,
)
from ..domain.value_objects import AuditStatus, RunId


logger = logging.getLogger(__name__)


async def _resolve_member(uow: UnitOfWork, user_id: Optional[str]) -> User:
    """Caller identity -> tenant membership. Must be called inside ``async with uow``."""
    if not user_id:
        raise UnauthorizedError()
    user = await uow.users.get_by_id(user_id)
    if user is None or not user.company_id:
        raise ForbiddenError("User not onboarded")
    return user


async def _load_owned_job(uow: UnitOfWork, job_id: str, company_id: str) -> Job:
    """Fetch a job and enforce tenant ownership. Must be called inside ``async with uow``."""
    job = await uow.jobs.get_by_id(job_id)
    if job is None:
        raise JobNotFoundError(job_id)
    if not job.belongs_to(company_id):
        raise ForbiddenError()
    return job


class RunAutomatedAuditUseCase:
    """
    Human-initiated automated audit of one job.

    Flow:
    1. Resolve the caller's company
    2. Count the request against the per-user quota
    3. Load the job and check tenant ownership
    4. Replay a previous result for a known idempotency key, or reserve it
    5. Invoke the reasoning service, persist the findings, emit the event
    6. Attach the result to the reserved key

    Nothing reaches the reasoning service before steps 1-4 pass. A second
    request arriving while the reservation is open gets a 409 instead of a
    second reasoning call. A reservation is dropped when the run fails before
    any row is stored; one left behind by a crashed process keeps its key
    blocked until the row is deleted.
    """

    def __init__(
        self,
        uow: UnitOfWork,
        rate_limiter: RateLimiter,
        invoker: AuditInvoker,
        recorder: AuditRecorder,
        emitter: EventEmitter,
        rate_limit: int = 5,
        rate_window_seconds: int = 3600,
    ):
        self.uow = uow
        self.rate_limiter = rate_limiter
        self.invoker = invoker
        self.recorder = recorder
        self.emitter = emitter
        self.rate_limit = rate_limit
        self.rate_window_seconds = rate_window_seconds

    async def execute(self, request: AutomatedAuditRequest) -> AuditRunResult:
        """Execute the use case."""
        if not request.user_id:
            raise UnauthorizedError()

        async with self.uow:
            user = await _resolve_member(self.uow, request.user_id)

        rate_key = f"audit:{user.id}"
        if not await self.rate_limiter.check(rate_key, self.rate_limit, self.rate_window_seconds):
            logger.warning(f"Rate limit hit for {rate_key}")
            raise RateLimitedError(rate_key, self.rate_limit, self.rate_window_seconds)

        async with self.uow:
            job = await _load_owned_job(self.uow, request.job_id, user.company_id)
            previous = None
            if request.idempotency_key:
                previous = await self.uow.idempotency.get(user.id, request.idempotency_key)

        reserved = False
        if request.idempotency_key and previous is None:
            reserved, previous = await self._reserve(user.id, request.idempotency_key, job.id)

        if previous is not None:
            if previous.job_id != job.id:
                raise IdempotencyConflictError(request.idempotency_key, previous.job_id)
            if not previous.completed:
                raise IdempotencyInProgressError(request.idempotency_key)
            logger.info(
                f"Replaying audit result for job {job.id} "
                f"(idempotency key {request.idempotency_key})"
            )
            return AuditRunResult(
                job_id=job.id,
                company_id=job.company_id,
                audit_ids=list(previous.audit_ids),
                replayed=True,
            )

        telemetry = {"force": True} if request.force else {}
        try:
            result = await self.invoker.evaluate(job.id, job.summary, telemetry)

            outcome = await self.recorder.persist(
                company_id=job.company_id,
                job_id=job.id,
                auditor_id=user.id,
                findings=result.findings,
                idempotency_key=request.idempotency_key,
            )
        except Exception:
            if reserved:
                await self._release(user.id, request.idempotency_key)
            raise

        persisted = result.findings[:len(outcome.inserted_ids)]
        high_risk = sum(1 for f in persisted if f.is_high_risk)

        message_id = await self.emitter.emit(
            company_id=job.company_id,
            job_id=job.id,
            audit_ids=outcome.inserted_ids,
            high_risk=high_risk,
            source="request",
        )

        if reserved:
            await self._complete(user.id, request.idempotency_key, outcome.inserted_ids)

        logger.info(
            f"Automated audit of job {job.id} stored {len(outcome.inserted_ids)} audits "
            f"({high_risk} high risk)"
        )

        return AuditRunResult(
            job_id=job.id,
            company_id=job.company_id,
            audit_ids=outcome.inserted_ids,
            high_risk=high_risk,
            outbox_message_id=message_id,
            failed_count=outcome.failed_count,
        )

    async def _reserve(
        self, user_id: str, key: str, job_id: str
    ) -> Tuple[bool, Optional[IdempotencyRecord]]:
        """
        Claim the idempotency key before the reasoning call.

        Returns ``(reserved, existing)``. ``existing`` is the record of a
        request that got there first. When neither is set the key could not be
        stored and the run goes ahead unprotected.
        """
        try:
            async with self.uow:
                await self.uow.idempotency.save(IdempotencyRecord(user_id=user_id, key=key, job_id=job_id))
                await self.uow.commit()
            return True, None
        except Exception as e:
            async with self.uow:
                existing = await self.uow.idempotency.get(user_id, key)
            if existing is None:
                logger.warning(f"Could not reserve idempotency key {key} for user {user_id}: {e}")
            return False, existing

    async def _complete(self, user_id: str, key: str, audit_ids: List[str]) -> None:
        try:
            async with self.uow:
                await self.uow.idempotency.complete(user_id, key, audit_ids)
                await self.uow.commit()
        except Exception as e:
            logger.warning(f"Could not store result for idempotency key {key} (user {user_id}): {e}")
            await self._release(user_id, key)

    async def _release(self, user_id: str, key: str) -> None:
        try:
            async with self.uow:
                await self.uow.idempotency.delete(user_id, key)
                await self.uow.commit()
        except Exception as e:
            logger.error(f"Could not release idempotency key {key} for user {user_id}: {e}")


class ExecuteAuditWorkflowUseCase:
    """
    Event-initiated audit run (called by the Celery worker).

    Never raises: the outcome is a Result whose status is the success flag.
    Runs triggered by the same event carry the same run id, so a re-delivered
    event returns the rows of the first delivery without a new reasoning call.
    The completion event is written without a workflow signal.
    """

    RETRYABLE_ERRORS = (InvalidModelOutputError, UpstreamUnavailableError)

    def __init__(
        self,
        uow: UnitOfWork,
        invoker: AuditInvoker,
        recorder: AuditRecorder,
        emitter: EventEmitter,
    ):
        self.uow = uow
        self.invoker = invoker
        self.recorder = recorder
        self.emitter = emitter

    async def execute(self, envelope: WorkflowEnvelope) -> Result:
        """Execute the workflow run."""
        errors = []
        if not envelope.job_id:
            errors.append("jobId is required")
        if not envelope.company_id:
            errors.append("companyId is required")
        if not isinstance(envelope.telemetry, dict):
            errors.append("telemetry must be an object")
        if errors:
            return Result.validation_error(errors)

        run_id = RunId.derive(envelope.job_id, envelope.event_id) if envelope.event_id else RunId.new()

        try:
            job, existing = await self._load(envelope, str(run_id))
        except DomainError as e:
            logger.error(f"Workflow run for job {envelope.job_id} failed: {e.message}")
            return Result.failure(e.message, errors=[e.code], retryable=e.retryable)
        except Exception as e:
            logger.error(f"Workflow run for job {envelope.job_id} could not read storage: {e}")
            return Result.failure("Storage unavailable", errors=["UPSTREAM_UNAVAILABLE"], retryable=True)

        if job is None:
            logger.warning(f"Workflow run skipped: job {envelope.job_id} not found")
            return Result.not_found(f"Job {envelope.job_id} not found")

        if not job.belongs_to(envelope.company_id):
            logger.warning(
                f"Workflow run rejected: job {job.id} does not belong to company {envelope.company_id}"
            )
            return Result.forbidden(f"Job {job.id} does not belong to company {envelope.company_id}")

        if existing:
            logger.info(f"Workflow run {run_id} already recorded {len(existing)} audits, skipping")
            return Result.success(
                data=AuditRunResult(
                    job_id=job.id,
                    company_id=job.company_id,
                    audit_ids=[a.id for a in existing],
                    run_id=str(run_id),
                    replayed=True,
                ),
                message="Already processed",
            )

        try:
            result = await self.invoker.evaluate(job.id, job.summary, envelope.telemetry)
            outcome = await self.recorder.persist(
                company_id=job.company_id,
                job_id=job.id,
                auditor_id=envelope.user_id,
                findings=result.findings,
                run_id=str(run_id),
            )
        except self.RETRYABLE_ERRORS as e:
            logger.warning(f"Workflow run {run_id} for job {job.id} failed, retryable: {e.message}")
            return Result.failure(e.message, errors=[e.code], retryable=True)
        except DomainError as e:
            logger.error(f"Workflow run {run_id} for job {job.id} failed: {e.message}")
            return Result.failure(e.message, errors=[e.code])
        except Exception as e:
            logger.exception(f"Unexpected error in workflow run {run_id} for job {job.id}: {e}")
            return Result.failure("Internal error", errors=["INTERNAL_ERROR"])

        persisted = result.findings[:len(outcome.inserted_ids)]
        high_risk = sum(1 for f in persisted if f.is_high_risk)

        await self.emitter.emit(
            company_id=job.company_id,
            job_id=job.id,
            audit_ids=outcome.inserted_ids,
            high_risk=high_risk,
            source="workflow",
            run_id=str(run_id),
            signal=False,
        )

        return Result.success(
            data=AuditRunResult(
                job_id=job.id,
                company_id=job.company_id,
                audit_ids=outcome.inserted_ids,
                run_id=str(run_id),
                high_risk=high_risk,
                failed_count=outcome.failed_count,
            ),
            message=f"Recorded {len(outcome.inserted_ids)} audits",
        )

    async def _load(self, envelope: WorkflowEnvelope, run_id: str) -> Tuple[Optional[Job], list]:
        async with self.uow:
            job = await self.uow.jobs.get_by_id(envelope.job_id)
            existing = []
            if job is not None and envelope.event_id:
                existing = await self.uow.audits.get_by_run_id(run_id)
        return job, existing


class RecordManualAuditUseCase:
    """A compliance officer records the outcome of one requirement by hand."""

    def __init__(self, uow: UnitOfWork, recorder: AuditRecorder):
        self.uow = uow
        self.recorder = recorder

    async def execute(self, request: RecordManualAuditRequest) -> AuditRunResult:
        """Execute the use case."""
        status = AuditStatus.from_value(request.status)
        if status is None:
            raise InvalidRequestError(f"Unknown audit status: {request.status}")

        async with self.uow:
            user = await _resolve_member(self.uow, request.user_id)
            job = await _load_owned_job(self.uow, request.job_id, user.company_id)

            requirement = await self.uow.requirements.get_by_id(request.requirement_id)
            if requirement is None:
                by_regulation = await self.uow.requirements.get_by_regulation_ids([request.requirement_id])
                requirement = by_regulation.get(request.requirement_id)
            if requirement is None:
                raise RequirementNotFoundError(request.requirement_id)

        finding = Finding(
            requirement_id=requirement.id,
            regulation_id=requirement.regulation_id,
            status=status,
            raw={
                "requirementId": requirement.id,
                "regulationId": requirement.regulation_id,
                "status": status.value,
                "evidence": list(request.evidence),
                "source": "manual",
            },
        )

        outcome = await self.recorder.persist(
            company_id=job.company_id,
            job_id=job.id,
            auditor_id=user.id,
            findings=[finding],
        )

        logger.info(f"User {user.id} recorded {status.value} for requirement {requirement.id} on job {job.id}")

        return AuditRunResult(
            job_id=job.id,
            company_id=job.company_id,
            audit_ids=outcome.inserted_ids,
        )


class ListJobAuditsUseCase:
    """Tenant-scoped listing of a job's audit rows, newest first."""

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def execute(self, request: ListJobAuditsRequest) -> List[AuditDTO]:
        async with self.uow:
            user = await _resolve_member(self.uow, request.user_id)
            job = await _load_owned_job(self.uow, request.job_id, user.company_id)
            audits = await self.uow.audits.get_by_job(
                job.id, job.company_id, skip=request.skip, limit=request.limit
            )
        return [AuditDTO.from_entity(a) for a in audits]


class ListRequirementsUseCase:
    """Requirement catalog lookup."""

    MAX_ROWS = 50

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def execute(
        self,
        user_id: Optional[str],
        industry: Optional[str] = None,
        limit: int = MAX_ROWS,
    ) -> List[RequirementDTO]:
        if not user_id:
            raise UnauthorizedError()
        limit = max(1, min(limit, self.MAX_ROWS))
        async with self.uow:
            requirements = await self.uow.requirements.search(industry=industry, limit=limit)
        return [RequirementDTO.from_entity(r) for r in requirements]


class RequestAuditWorkflowUseCase:
    """
    Queue an event-initiated audit.

    The ``compliance/audit.requested`` signal goes through the outbox like any
    other signal; its event id is what makes re-delivery of the run a no-op.
    """

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def execute(self, envelope: WorkflowEnvelope) -> Result:
        errors = []
        if not envelope.job_id:
            errors.append("jobId is required")
        if not envelope.company_id:
            errors.append("companyId is required")
        if not isinstance(envelope.telemetry, dict):
            errors.append("telemetry must be an object")
        if errors:
            return Result.validation_error(errors)

        signal = WorkflowSignal.audit_requested(
            company_id=envelope.company_id,
            job_id=envelope.job_id,
            telemetry=envelope.telemetry,
            event_id=envelope.event_id,
        )
        if envelope.user_id:
            signal.data['userId'] = envelope.user_id

        async with self.uow:
            message_id = await self.uow.outbox.save(signal)
            await self.uow.commit()

        logger.info(f"Queued {signal.name} for job {envelope.job_id} (event {signal.data['eventId']})")
        return Result.success(
            data={"messageId": message_id, "eventId": signal.data['eventId']},
            message="Audit requested",
        )
