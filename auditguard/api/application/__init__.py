"""
Application Layer

This layer contains the application business rules (use cases).
It orchestrates the flow of data between the domain and infrastructure layers.
"""

from .ports import (
    UserRepository,
    JobRepository,
    RequirementRepository,
    AuditRepository,
    EventRepository,
    OutboxRepository,
    IdempotencyRepository,
    RateLimiter,
    ReasoningClient,
    SignalDispatcher,
    UnitOfWork,
)

from .dtos import (
    # Request DTOs
    AutomatedAuditRequest,
    WorkflowEnvelope,
    RecordManualAuditRequest,
    ListJobAuditsRequest,
    # Response DTOs
    AuditDTO,
    RequirementDTO,
    AuditRunResult,
    # Result types
    Result,
    ResultStatus,
)

from .pipeline import AuditInvoker, AuditRecorder, EventEmitter, RecordOutcome

from .use_cases import (
    RunAutomatedAuditUseCase,
    ExecuteAuditWorkflowUseCase,
    RecordManualAuditUseCase,
    ListJobAuditsUseCase,
    ListRequirementsUseCase,
    RequestAuditWorkflowUseCase,
)


__all__ = [
    # Ports (Interfaces)
    "UserRepository",
    "JobRepository",
    "RequirementRepository",
    "AuditRepository",
    "EventRepository",
    "OutboxRepository",
    "IdempotencyRepository",
    "RateLimiter",
    "ReasoningClient",
    "SignalDispatcher",
    "UnitOfWork",
    # Request DTOs
    "AutomatedAuditRequest",
    "WorkflowEnvelope",
    "RecordManualAuditRequest",
    "ListJobAuditsRequest",
    # Response DTOs
    "AuditDTO",
    "RequirementDTO",
    "AuditRunResult",
    # Result types
    "Result",
    "ResultStatus",
    # Pipeline
    "AuditInvoker",
    "AuditRecorder",
    "EventEmitter",
    "RecordOutcome",
    # Use Cases
    "RunAutomatedAuditUseCase",
    "ExecuteAuditWorkflowUseCase",
    "RecordManualAuditUseCase",
    "ListJobAuditsUseCase",
    "ListRequirementsUseCase",
    "RequestAuditWorkflowUseCase",
]
