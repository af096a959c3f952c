"""
Domain Entities

Entities are objects with a unique identity that runs through time.
Jobs and requirements are read by the pipeline; compliance audits are
created by it and never mutated afterwards.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Any
import uuid

from .value_objects import AuditStatus, JobStatus, RiskLevel, RiskScore, UserRole
from .events import utcnow


@dataclass
class User:
    """Tenant membership of an authenticated identity."""
    id: str
    company_id: str
    role: UserRole = UserRole.FIELD_WORKER
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Job:
    """Tenant-owned unit of work under audit."""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    company_id: str = ""
    name: str = ""
    status: JobStatus = JobStatus.DRAFT
    location: Dict[str, Any] = field(default_factory=dict)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    estimated_value: Optional[float] = None
    created_at: datetime = field(default_factory=utcnow)

    def belongs_to(self, company_id: Optional[str]) -> bool:
        return bool(company_id) and self.company_id == company_id

    @property
    def summary(self) -> str:
        """Context handed to the reasoning service."""
        return self.name


@dataclass
class ComplianceRequirement:
    """Regulatory catalog entry."""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    regulation_id: str = ""
    title: str = ""
    description: str = ""
    industry_types: List[str] = field(default_factory=list)
    risk_level: RiskLevel = RiskLevel.MEDIUM

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'regulation_id': self.regulation_id,
            'title': self.title,
            'description': self.description,
            'industry_types': list(self.industry_types),
            'risk_level': self.risk_level.value,
        }


@dataclass
class Finding:
    """
    One requirement-level result returned by the reasoning service.

    ``raw`` keeps the finding exactly as the model returned it; it becomes the
    audit payload.
    """
    requirement_id: Optional[str] = None
    regulation_id: Optional[str] = None
    status: AuditStatus = AuditStatus.PENDING
    risk_score: Optional[RiskScore] = None
    remediation: List[str] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def requirement_ref(self) -> Optional[str]:
        """Catalog id when the model gave one, otherwise the regulation identifier."""
        return self.requirement_id or self.regulation_id

    @property
    def is_high_risk(self) -> bool:
        return self.risk_score is not None and self.risk_score.is_high


@dataclass
class AuditResult:
    """Parsed reasoning-service answer for one job."""
    job_id: str
    findings: List[Finding] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict)

    @property
    def high_risk_count(self) -> int:
        return sum(1 for f in self.findings if f.is_high_risk)


@dataclass
class ComplianceAudit:
    """
    One evaluation of one requirement against one job.

    Immutable after creation - a new audit run appends rows.
    """
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    company_id: str = ""
    requirement_id: str = ""
    job_id: str = ""
    status: AuditStatus = AuditStatus.PENDING
    audit_data: Dict[str, Any] = field(default_factory=dict)
    auditor_user_id: Optional[str] = None
    run_id: Optional[str] = None
    idempotency_key: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    @classmethod
    def create(
        cls,
        company_id: str,
        job_id: str,
        requirement_id: str,
        status: Optional[AuditStatus] = None,
        audit_data: Optional[Dict[str, Any]] = None,
        auditor_user_id: Optional[str] = None,
        run_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> 'ComplianceAudit':
        """Factory method to create an audit row; status defaults to pending."""
        return cls(
            company_id=company_id,
            job_id=job_id,
            requirement_id=requirement_id,
            status=status or AuditStatus.PENDING,
            audit_data=dict(audit_data or {}),
            auditor_user_id=auditor_user_id,
            run_id=run_id,
            idempotency_key=idempotency_key,
        )

    @property
    def risk_score(self) -> Optional[float]:
        score = RiskScore.parse(self.audit_data.get('riskScore'))
        return score.value if score else None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            'id': self.id,
            'company_id': self.company_id,
            'requirement_id': self.requirement_id,
            'job_id': self.job_id,
            'status': self.status.value,
            'audit_data': self.audit_data,
            'auditor_user_id': self.auditor_user_id,
            'run_id': self.run_id,
            'created_at': self.created_at.isoformat(),
        }


@dataclass
class DomainEventRecord:
    """Row of the append-only ``events`` log."""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    company_id: str = ""
    event_type: str = ""
    payload: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class IdempotencyRecord:
    """Reservation, then result, of a request made with an idempotency key."""
    user_id: str
    key: str
    job_id: str
    audit_ids: List[str] = field(default_factory=list)
    completed: bool = False
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=utcnow)
