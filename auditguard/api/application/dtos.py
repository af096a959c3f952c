"""
Application Layer - DTOs (Data Transfer Objects)

DTOs are used to transfer data between layers.
They decouple the API layer from the domain layer.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any
from enum import Enum


# ==================== Request DTOs ====================

@dataclass
class AutomatedAuditRequest:
    """Human-initiated request to audit a job."""
    job_id: str
    user_id: Optional[str]
    force: bool = False
    idempotency_key: Optional[str] = None


@dataclass
class WorkflowEnvelope:
    """Event-initiated audit trigger delivered by the workflow engine."""
    job_id: str
    company_id: str
    telemetry: Dict[str, Any] = field(default_factory=dict)
    event_id: Optional[str] = None
    user_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'WorkflowEnvelope':
        """Build from the camelCase wire envelope; the use case validates the shape."""
        if not isinstance(data, dict):
            data = {}
        return cls(
            job_id=str(data.get('jobId') or data.get('job_id') or ''),
            company_id=str(data.get('companyId') or data.get('company_id') or ''),
            telemetry=data.get('telemetry') or {},
            event_id=data.get('eventId') or data.get('event_id'),
            user_id=data.get('userId') or data.get('user_id'),
        )


@dataclass
class RecordManualAuditRequest:
    """A compliance officer records one audit by hand."""
    user_id: Optional[str]
    requirement_id: str
    job_id: str
    status: str
    evidence: List[str] = field(default_factory=list)


@dataclass
class ListJobAuditsRequest:
    """Request to list the audits of one job."""
    job_id: str
    user_id: Optional[str]
    skip: int = 0
    limit: int = 100


# ==================== Response DTOs ====================

@dataclass
class AuditDTO:
    """DTO for a compliance audit row."""
    id: str
    company_id: str
    requirement_id: str
    job_id: str
    status: str
    audit_data: Dict[str, Any]
    auditor_user_id: Optional[str]
    run_id: Optional[str]
    created_at: str
    risk_score: Optional[float] = None

    @classmethod
    def from_entity(cls, entity) -> 'AuditDTO':
        """Create DTO from domain entity."""
        return cls(
            id=entity.id,
            company_id=entity.company_id,
            requirement_id=entity.requirement_id,
            job_id=entity.job_id,
            status=entity.status.value,
            audit_data=entity.audit_data,
            auditor_user_id=entity.auditor_user_id,
            run_id=entity.run_id,
            created_at=entity.created_at.isoformat(),
            risk_score=entity.risk_score,
        )


@dataclass
class RequirementDTO:
    """DTO for a catalog requirement."""
    id: str
    regulation_id: str
    title: str
    description: str
    industry_types: List[str]
    risk_level: str

    @classmethod
    def from_entity(cls, entity) -> 'RequirementDTO':
        return cls(**entity.to_dict())


@dataclass
class AuditRunResult:
    """Outcome of one audit run."""
    job_id: str
    company_id: str
    audit_ids: List[str] = field(default_factory=list)
    run_id: Optional[str] = None
    high_risk: int = 0
    outbox_message_id: Optional[str] = None
    failed_count: int = 0
    replayed: bool = False


# ==================== Result DTOs ====================

class ResultStatus(str, Enum):
    """Status of a use case result."""
    SUCCESS = "success"
    FAILURE = "failure"
    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    VALIDATION_ERROR = "validation_error"


@dataclass
class Result:
    """
    Generic result wrapper for use case responses.

    The workflow path reports through this instead of raising, so that
    its caller only ever sees a success flag.
    """
    status: ResultStatus
    message: str = ""
    data: Any = None
    errors: List[str] = field(default_factory=list)
    retryable: bool = False

    @property
    def is_success(self) -> bool:
        return self.status == ResultStatus.SUCCESS

    @property
    def is_failure(self) -> bool:
        return self.status != ResultStatus.SUCCESS

    @classmethod
    def success(cls, data: Any = None, message: str = "Success") -> 'Result':
        """Create a success result."""
        return cls(status=ResultStatus.SUCCESS, message=message, data=data)

    @classmethod
    def failure(cls, message: str, errors: List[str] = None, retryable: bool = False) -> 'Result':
        """Create a failure result."""
        return cls(
            status=ResultStatus.FAILURE,
            message=message,
            errors=errors or [],
            retryable=retryable,
        )

    @classmethod
    def not_found(cls, message: str = "Resource not found") -> 'Result':
        """Create a not found result."""
        return cls(status=ResultStatus.NOT_FOUND, message=message)

    @classmethod
    def forbidden(cls, message: str = "Access denied") -> 'Result':
        """Create a forbidden result."""
        return cls(status=ResultStatus.FORBIDDEN, message=message)

    @classmethod
    def validation_error(cls, errors: List[str]) -> 'Result':
        """Create a validation error result."""
        return cls(
            status=ResultStatus.VALIDATION_ERROR,
            message="Validation failed",
            errors=errors,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Flag-style summary returned to the workflow engine."""
        audit_ids = getattr(self.data, 'audit_ids', []) if self.data is not None else []
        return {
            'success': self.is_success,
            'status': self.status.value,
            'message': self.message,
            'auditIds': list(audit_ids),
            'retryable': self.retryable,
        }
