"""Pydantic schemas for API requests and responses."""

from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class AuditStatusName(str, Enum):
    """Audit statuses accepted on the manual audit endpoint."""
    compliant = "compliant"
    non_compliant = "non_compliant"
    pending = "pending"
    waived = "waived"


# Request schemas
class AutomatedAuditBody(BaseModel):
    """Body of an automated audit request. Both fields are optional."""
    job_id: Optional[str] = Field(None, alias="jobId", description="Must match the path job id when given")
    force: bool = Field(False, description="Passed to the reasoning service as telemetry")

    class Config:
        populate_by_name = True


class ManualAuditBody(BaseModel):
    """Body of a manually recorded audit."""
    requirement_id: str = Field(..., alias="requirementId", min_length=1)
    job_id: str = Field(..., alias="jobId", min_length=1)
    status: AuditStatusName
    evidence: List[str] = Field(default_factory=list)

    class Config:
        populate_by_name = True


class WorkflowRequestBody(BaseModel):
    """Envelope of an event-initiated audit."""
    job_id: str = Field(..., alias="jobId", min_length=1)
    company_id: str = Field(..., alias="companyId", min_length=1)
    telemetry: Dict[str, Any] = Field(default_factory=dict)
    event_id: Optional[str] = Field(None, alias="eventId")
    user_id: Optional[str] = Field(None, alias="userId")

    class Config:
        populate_by_name = True


# Response schemas
class AuditIdsResponse(BaseModel):
    """Ids of the audit rows written by a request."""
    auditIds: List[str]


class AuditResponse(BaseModel):
    """One compliance audit row."""
    id: str
    company_id: str
    requirement_id: str
    job_id: str
    status: str
    audit_data: Dict[str, Any]
    auditor_user_id: Optional[str] = None
    run_id: Optional[str] = None
    risk_score: Optional[float] = None
    created_at: str

    class Config:
        from_attributes = True


class AuditListResponse(BaseModel):
    items: List[AuditResponse]
    count: int
    skip: int
    limit: int


class RequirementResponse(BaseModel):
    """One catalog requirement."""
    id: str
    regulation_id: str
    title: str
    description: str
    industry_types: List[str]
    risk_level: str

    class Config:
        from_attributes = True


class RequirementListResponse(BaseModel):
    items: List[RequirementResponse]
    count: int


class WorkflowAcceptedResponse(BaseModel):
    """The audit was queued."""
    eventId: str
    messageId: str


class ErrorResponse(BaseModel):
    """Error body. ``detail`` is only present for client errors."""
    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float
