"""
Domain Events

Events represent something that happened in the domain.
They are used for:
1. The append-only ``events`` log read by analytics/notification consumers
2. Integration with the workflow engine (via the Outbox Pattern)
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Any, Optional
import uuid


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class DomainEvent:
    """
    Base class for domain events.

    Events are immutable facts about something that happened.
    """
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=utcnow)

    # Wire name of the event, override in subclasses
    EVENT_TYPE = "domain.event"

    @property
    def event_type(self) -> str:
        """Event type name for serialization."""
        return self.EVENT_TYPE

    def payload(self) -> Dict[str, Any]:
        """Event-specific payload. Override in subclasses."""
        return {}


@dataclass
class ComplianceAuditCompletedEvent(DomainEvent):
    """Emitted once per audit run after all of its rows are persisted."""
    company_id: str = ""
    job_id: str = ""
    audit_ids: List[str] = field(default_factory=list)
    high_risk: int = 0
    run_id: Optional[str] = None
    source: str = "request"

    EVENT_TYPE = "compliance.audit.completed"

    def payload(self) -> Dict[str, Any]:
        return {
            'jobId': self.job_id,
            'auditCount': len(self.audit_ids),
            'highRisk': self.high_risk,
            'auditIds': list(self.audit_ids),
            'runId': self.run_id,
            'source': self.source,
        }


@dataclass
class WorkflowSignal:
    """
    Named message for the workflow engine.

    Stored in the outbox and delivered at-least-once by the outbox processor.
    """
    name: str
    data: Dict[str, Any] = field(default_factory=dict)
    signal_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = field(default_factory=utcnow)

    AUDIT_COMPLETED = "compliance/audit.completed"
    AUDIT_REQUESTED = "compliance/audit.requested"

    @classmethod
    def audit_completed(cls, company_id: str, job_id: str, audit_ids: List[str]) -> 'WorkflowSignal':
        return cls(
            name=cls.AUDIT_COMPLETED,
            data={
                'companyId': company_id,
                'jobId': job_id,
                'auditIds': list(audit_ids),
            },
        )

    @classmethod
    def audit_requested(
        cls,
        company_id: str,
        job_id: str,
        telemetry: Optional[Dict[str, Any]] = None,
        event_id: Optional[str] = None,
    ) -> 'WorkflowSignal':
        signal = cls(
            name=cls.AUDIT_REQUESTED,
            data={
                'companyId': company_id,
                'jobId': job_id,
                'telemetry': telemetry or {},
            },
        )
        signal.data['eventId'] = event_id or signal.signal_id
        return signal

    @property
    def aggregate_id(self) -> str:
        return str(self.data.get('jobId', ''))
