"""
Application Layer - Ports (Interfaces)

Ports define the contracts between the application layer and infrastructure.
They follow the Dependency Inversion Principle - high-level modules don't
depend on low-level modules, both depend on abstractions.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Dict, Any
from datetime import datetime

from ..domain.entities import (
    User, Job, ComplianceRequirement, ComplianceAudit, DomainEventRecord, IdempotencyRecord
)
from ..domain.events import WorkflowSignal


class UserRepository(ABC):
    """Read access to tenant membership."""

    @abstractmethod
    async def get_by_id(self, user_id: str) -> Optional[User]:
        """Get a user by its ID."""
        pass


class JobRepository(ABC):
    """Read access to jobs. The pipeline never mutates a job."""

    @abstractmethod
    async def get_by_id(self, job_id: str) -> Optional[Job]:
        """Get a job by its ID."""
        pass


class RequirementRepository(ABC):
    """Read access to the compliance requirement catalog."""

    @abstractmethod
    async def get_by_id(self, requirement_id: str) -> Optional[ComplianceRequirement]:
        """Get a requirement by its ID."""
        pass

    @abstractmethod
    async def get_by_regulation_ids(
        self,
        regulation_ids: List[str],
    ) -> Dict[str, ComplianceRequirement]:
        """Map regulation identifiers (e.g. '1926.501') to catalog entries."""
        pass

    @abstractmethod
    async def search(
        self,
        industry: Optional[str] = None,
        limit: int = 50,
    ) -> List[ComplianceRequirement]:
        """List catalog entries, optionally filtered by industry."""
        pass


class AuditRepository(ABC):
    """
    Repository interface for ComplianceAudit persistence.

    Audits are append-only and immutable.
    """

    @abstractmethod
    async def add(self, audit: ComplianceAudit) -> None:
        """Add an audit row."""
        pass

    @abstractmethod
    async def get_by_job(
        self,
        job_id: str,
        company_id: str,
        skip: int = 0,
        limit: int = 100,
    ) -> List[ComplianceAudit]:
        """Get audits of a job, newest first, scoped to a company."""
        pass

    @abstractmethod
    async def get_by_run_id(self, run_id: str) -> List[ComplianceAudit]:
        """Get audits written by one run."""
        pass


class EventRepository(ABC):
    """Append-only domain event log."""

    @abstractmethod
    async def append(self, record: DomainEventRecord) -> None:
        """Append one event row."""
        pass


class OutboxRepository(ABC):
    """
    Repository interface for Outbox Pattern implementation.

    The Outbox Pattern ensures reliable signal delivery by:
    1. Storing signals in the same transaction as the domain event
    2. Having a separate process deliver them to the workflow engine
    3. Marking signals as published after successful delivery
    """

    @abstractmethod
    async def save(self, signal: WorkflowSignal) -> str:
        """Save a signal to the outbox. Returns the outbox message id."""
        pass

    @abstractmethod
    async def get_unpublished(self, limit: int = 100) -> List[Dict[str, Any]]:
        """
        Get unpublished messages for processing.

        Returns list of dicts with:
        - id: outbox message id
        - event_id: signal id
        - event_type: signal name
        - aggregate_type, aggregate_id
        - payload: signal data
        - created_at, retry_count, last_error
        """
        pass

    @abstractmethod
    async def get_by_ids(self, message_ids: List[str]) -> List[Dict[str, Any]]:
        """Get unpublished messages by id (same shape as get_unpublished)."""
        pass

    @abstractmethod
    async def mark_as_published(self, message_ids: List[str]) -> None:
        """Mark messages as published after successful delivery."""
        pass

    @abstractmethod
    async def increment_retry(self, message_id: str, error: str) -> None:
        """Increment retry count and store the last error."""
        pass

    @abstractmethod
    async def delete_published(self, older_than: datetime) -> int:
        """Delete old published messages. Returns count deleted."""
        pass


class IdempotencyRepository(ABC):
    """Stores request results keyed by (user_id, idempotency key)."""

    @abstractmethod
    async def get(self, user_id: str, key: str) -> Optional[IdempotencyRecord]:
        """Get a stored result."""
        pass

    @abstractmethod
    async def save(self, record: IdempotencyRecord) -> None:
        """Reserve a key. Violates a uniqueness constraint on duplicates."""
        pass

    @abstractmethod
    async def complete(self, user_id: str, key: str, audit_ids: List[str]) -> None:
        """Attach the result to a reserved key."""
        pass

    @abstractmethod
    async def delete(self, user_id: str, key: str) -> None:
        """Drop a reservation so the key can be used again."""
        pass


class RateLimiter(ABC):
    """Fixed-window request counter."""

    @abstractmethod
    async def check(self, key: str, limit: int, window_seconds: int) -> bool:
        """Count one request for ``key``; True when it is within the quota."""
        pass


class ReasoningClient(ABC):
    """Request/response text-completion endpoint."""

    @abstractmethod
    async def complete(self, system_prompt: str, user_content: str) -> str:
        """
        Return the raw completion text.

        Raises UpstreamUnavailableError on timeout or network failure.
        """
        pass


class SignalDispatcher(ABC):
    """
    Service interface for delivering workflow signals.

    Used by the outbox processor.
    """

    @abstractmethod
    async def send(self, name: str, data: Dict[str, Any], signal_id: Optional[str] = None) -> None:
        """Deliver one signal to the workflow engine."""
        pass

    @abstractmethod
    async def is_connected(self) -> bool:
        """Check if the workflow engine broker is reachable."""
        pass


class UnitOfWork(ABC):
    """
    Unit of Work pattern for managing transactions.

    Ensures that all operations within a block are
    committed or rolled back together.
    """

    @property
    @abstractmethod
    def users(self) -> UserRepository:
        pass

    @property
    @abstractmethod
    def jobs(self) -> JobRepository:
        pass

    @property
    @abstractmethod
    def requirements(self) -> RequirementRepository:
        pass

    @property
    @abstractmethod
    def audits(self) -> AuditRepository:
        pass

    @property
    @abstractmethod
    def events(self) -> EventRepository:
        pass

    @property
    @abstractmethod
    def outbox(self) -> OutboxRepository:
        pass

    @property
    @abstractmethod
    def idempotency(self) -> IdempotencyRepository:
        pass

    @abstractmethod
    async def begin(self) -> None:
        """Begin a transaction."""
        pass

    @abstractmethod
    async def commit(self) -> None:
        """Commit the transaction."""
        pass

    @abstractmethod
    async def rollback(self) -> None:
        """Rollback the transaction."""
        pass

    @abstractmethod
    async def __aenter__(self) -> 'UnitOfWork':
        """Enter async context manager."""
        pass

    @abstractmethod
    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager, rollback on error."""
        pass
