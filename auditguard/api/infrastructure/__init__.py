"""
Infrastructure Layer

This layer contains implementations of interfaces defined in the application layer.
It handles external concerns like the database, Redis, the reasoning service
and the Celery broker.
"""

from .db_models import (
    Base, UserModel, JobModel, RequirementModel, ComplianceAuditModel, EventModel,
    OutboxModel, IdempotencyKeyModel,
)
from .repositories import (
    SQLAlchemyUserRepository,
    SQLAlchemyJobRepository,
    SQLAlchemyRequirementRepository,
    SQLAlchemyAuditRepository,
    SQLAlchemyEventRepository,
    SQLAlchemyOutboxRepository,
    SQLAlchemyIdempotencyRepository,
)
from .unit_of_work import SQLAlchemyUnitOfWork, create_engine, create_unit_of_work_factory
from .outbox_processor import OutboxProcessor, CelerySignalDispatcher
from .rate_limiter import RedisRateLimiter
from .reasoning import OpenAIReasoningClient


__all__ = [
    # Database Models
    "Base",
    "UserModel",
    "JobModel",
    "RequirementModel",
    "ComplianceAuditModel",
    "EventModel",
    "OutboxModel",
    "IdempotencyKeyModel",
    # Repositories
    "SQLAlchemyUserRepository",
    "SQLAlchemyJobRepository",
    "SQLAlchemyRequirementRepository",
    "SQLAlchemyAuditRepository",
    "SQLAlchemyEventRepository",
    "SQLAlchemyOutboxRepository",
    "SQLAlchemyIdempotencyRepository",
    # Unit of Work
    "SQLAlchemyUnitOfWork",
    "create_engine",
    "create_unit_of_work_factory",
    # Outbox Pattern
    "OutboxProcessor",
    "CelerySignalDispatcher",
    # Services
    "RedisRateLimiter",
    "OpenAIReasoningClient",
]
