"""
Domain Value Objects

Value Objects are immutable, identified by their attributes (not identity).
They encapsulate validation and ensure data integrity.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional
import uuid


class AuditStatus(str, Enum):
    """Outcome of one requirement evaluated against one job."""
    COMPLIANT = "compliant"
    NON_COMPLIANT = "non_compliant"
    PENDING = "pending"
    WAIVED = "waived"

    @classmethod
    def from_value(cls, value: Any) -> Optional['AuditStatus']:
        """Parse a status, tolerating case and dashes. Returns None if unknown."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        normalized = value.strip().lower().replace("-", "_").replace(" ", "_")
        for status in cls:
            if status.value == normalized:
                return status
        return None


class JobStatus(str, Enum):
    """Job lifecycle states. The pipeline reads them, it never changes them."""
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class RiskLevel(str, Enum):
    """Catalog risk level of a compliance requirement."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class UserRole(str, Enum):
    """Role of a user inside its company."""
    OWNER = "owner"
    ADMIN = "admin"
    FIELD_WORKER = "field_worker"
    COMPLIANCE_OFFICER = "compliance_officer"


class DeploymentMode(str, Enum):
    """Deployment mode; decides fail-open vs fail-closed for optional services."""
    DEVELOPMENT = "development"
    PRODUCTION = "production"

    @classmethod
    def from_string(cls, value: Optional[str]) -> 'DeploymentMode':
        if value and value.strip().lower() in ("production", "prod"):
            return cls.PRODUCTION
        return cls.DEVELOPMENT


@dataclass(frozen=True)
class RiskScore:
    """Numeric risk score in the 0-100 range."""
    value: float

    HIGH_RISK_THRESHOLD = 70

    @classmethod
    def parse(cls, raw: Any) -> Optional['RiskScore']:
        """Parse a model-provided score. Non-numeric values yield None; numbers are clamped."""
        if isinstance(raw, bool) or raw is None:
            return None
        try:
            number = float(raw)
        except (TypeError, ValueError):
            return None
        if number != number:  # NaN
            return None
        return cls(max(0.0, min(100.0, number)))

    @property
    def is_high(self) -> bool:
        return self.value >= self.HIGH_RISK_THRESHOLD


@dataclass(frozen=True)
class RunId:
    """
    Deterministic identifier of one workflow run.

    Derived from (job_id, triggering event id) so that a re-delivered event
    maps to the same run.
    """
    value: str

    NAMESPACE = uuid.UUID("6f1d7c1e-4a8b-4f0e-9a43-2b6d2c0e9a11")

    @classmethod
    def derive(cls, job_id: str, event_id: str) -> 'RunId':
        return cls(str(uuid.uuid5(cls.NAMESPACE, f"{job_id}:{event_id}")))

    @classmethod
    def new(cls) -> 'RunId':
        return cls(str(uuid.uuid4()))

    def __str__(self) -> str:
        return self.value
