"""Requirement catalog and manual audit endpoints."""

from typing import Optional
from fastapi import APIRouter, Depends, Query

from ..container import Container
from ..dependencies import get_container_dep, get_current_user
from ..application.dtos import RecordManualAuditRequest
from ..schemas import AuditIdsResponse, ManualAuditBody, RequirementListResponse, RequirementResponse


router = APIRouter(prefix="/compliance", tags=["Compliance"])


@router.post(
    "/audits",
    status_code=201,
    response_model=AuditIdsResponse,
    summary="Record a manual audit",
)
async def record_manual_audit(
    body: ManualAuditBody,
    user_id: Optional[str] = Depends(get_current_user),
    container: Container = Depends(get_container_dep),
):
    result = await container.record_manual_audit_use_case().execute(
        RecordManualAuditRequest(
            user_id=user_id,
            requirement_id=body.requirement_id,
            job_id=body.job_id,
            status=body.status.value,
            evidence=body.evidence,
        )
    )
    return AuditIdsResponse(auditIds=result.audit_ids)


@router.get(
    "/requirements",
    response_model=RequirementListResponse,
    summary="List compliance requirements",
)
async def list_requirements(
    industry: Optional[str] = Query(None, description="Only requirements for this industry"),
    limit: int = Query(50, ge=1, le=50),
    user_id: Optional[str] = Depends(get_current_user),
    container: Container = Depends(get_container_dep),
):
    requirements = await container.list_requirements_use_case().execute(
        user_id=user_id, industry=industry, limit=limit
    )
    return RequirementListResponse(
        items=[RequirementResponse(**vars(r)) for r in requirements],
        count=len(requirements),
    )
