"""
Job audit endpoints.

Thin controllers that delegate to use cases. Domain errors propagate to
the application's exception handler.
"""

from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Body, Depends, Header, Query, Response

from ..container import Container
from ..dependencies import deliver_signal, get_container_dep, get_current_user
from ..application.dtos import AutomatedAuditRequest, ListJobAuditsRequest
from ..domain.exceptions import InvalidRequestError
from ..schemas import AuditIdsResponse, AuditListResponse, AuditResponse, AutomatedAuditBody


router = APIRouter(tags=["Audits"])


@router.post(
    "/jobs/{job_id}/compliance/automated",
    response_model=AuditIdsResponse,
    summary="Run an automated compliance audit",
    description=(
        "Evaluates the job with the reasoning service, stores one audit per finding "
        "and emits compliance.audit.completed. Limited per user; send an "
        "Idempotency-Key header to make retries safe."
    ),
)
async def run_automated_audit(
    job_id: str,
    response: Response,
    background_tasks: BackgroundTasks,
    body: Optional[AutomatedAuditBody] = Body(None),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    user_id: Optional[str] = Depends(get_current_user),
    container: Container = Depends(get_container_dep),
):
    body = body or AutomatedAuditBody()
    if body.job_id and body.job_id != job_id:
        raise InvalidRequestError("jobId does not match the path")

    result = await container.run_automated_audit_use_case().execute(
        AutomatedAuditRequest(
            job_id=job_id,
            user_id=user_id,
            force=body.force,
            idempotency_key=(idempotency_key or "").strip() or None,
        )
    )

    if result.replayed:
        response.headers["Idempotent-Replayed"] = "true"

    if result.outbox_message_id:
        background_tasks.add_task(deliver_signal, container, result.outbox_message_id)

    return AuditIdsResponse(auditIds=result.audit_ids)


@router.get(
    "/jobs/{job_id}/compliance/audits",
    response_model=AuditListResponse,
    summary="List a job's audits",
)
async def list_job_audits(
    job_id: str,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    user_id: Optional[str] = Depends(get_current_user),
    container: Container = Depends(get_container_dep),
):
    """Newest first. Polling fallback for clients without the change feed."""
    audits = await container.list_job_audits_use_case().execute(
        ListJobAuditsRequest(job_id=job_id, user_id=user_id, skip=skip, limit=limit)
    )
    return AuditListResponse(
        items=[AuditResponse(**vars(a)) for a in audits],
        count=len(audits),
        skip=skip,
        limit=limit,
    )
