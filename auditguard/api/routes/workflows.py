"""Event-initiated audit trigger, for internal callers."""

import hmac
from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Depends, Header

from ..container import Container
from ..dependencies import deliver_signal, get_container_dep
from ..application.dtos import WorkflowEnvelope
from ..domain.exceptions import InvalidRequestError, UnauthorizedError
from ..schemas import WorkflowAcceptedResponse, WorkflowRequestBody


router = APIRouter(prefix="/workflows", tags=["Workflows"])


def _check_token(expected: Optional[str], authorization: Optional[str]) -> None:
    if not expected:
        return
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not hmac.compare_digest(token.strip(), expected):
        raise UnauthorizedError("Invalid internal token")


@router.post(
    "/compliance-audit",
    status_code=202,
    response_model=WorkflowAcceptedResponse,
    summary="Queue a compliance audit run",
    description="Emits compliance/audit.requested; the worker runs the audit.",
)
async def request_compliance_audit(
    body: WorkflowRequestBody,
    background_tasks: BackgroundTasks,
    authorization: Optional[str] = Header(None),
    container: Container = Depends(get_container_dep),
):
    _check_token(container.config.internal_api_token, authorization)

    result = await container.request_audit_workflow_use_case().execute(
        WorkflowEnvelope(
            job_id=body.job_id,
            company_id=body.company_id,
            telemetry=body.telemetry,
            event_id=body.event_id,
            user_id=body.user_id,
        )
    )
    if not result.is_success:
        raise InvalidRequestError("; ".join(result.errors) or result.message)

    background_tasks.add_task(deliver_signal, container, result.data["messageId"])
    return WorkflowAcceptedResponse(**result.data)
