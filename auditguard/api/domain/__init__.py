"""
Domain Layer - AuditGuard

This layer contains the core business logic and domain entities.
It has NO dependencies on external frameworks (FastAPI, SQLAlchemy, Celery).
"""

from .entities import (
    User, Job, ComplianceRequirement, Finding, AuditResult, ComplianceAudit,
    DomainEventRecord, IdempotencyRecord,
)
from .value_objects import (
    AuditStatus, JobStatus, RiskLevel, UserRole, DeploymentMode, RiskScore, RunId,
)
from .events import DomainEvent, ComplianceAuditCompletedEvent, WorkflowSignal
from .exceptions import (
    DomainError,
    UnauthorizedError,
    ForbiddenError,
    JobNotFoundError,
    RequirementNotFoundError,
    RateLimitedError,
    InvalidModelOutputError,
    UpstreamUnavailableError,
    EmptyAuditSetError,
    PartialPersistenceError,
    SignalDeliveryError,
    IdempotencyConflictError,
    ConfigurationError,
    InvalidRequestError,
)

__all__ = [
    # Entities
    'User', 'Job', 'ComplianceRequirement', 'Finding', 'AuditResult', 'ComplianceAudit',
    'DomainEventRecord', 'IdempotencyRecord',
    # Value Objects
    'AuditStatus', 'JobStatus', 'RiskLevel', 'UserRole', 'DeploymentMode', 'RiskScore', 'RunId',
    # Events
    'DomainEvent', 'ComplianceAuditCompletedEvent', 'WorkflowSignal',
    # Exceptions
    'DomainError', 'UnauthorizedError', 'ForbiddenError', 'JobNotFoundError',
    'RequirementNotFoundError', 'RateLimitedError', 'InvalidModelOutputError',
    'UpstreamUnavailableError', 'EmptyAuditSetError', 'PartialPersistenceError',
    'SignalDeliveryError', 'IdempotencyConflictError', 'ConfigurationError',
    'InvalidRequestError',
]
