"""
Infrastructure Layer - Repository Implementations

Concrete implementations of repository interfaces using SQLAlchemy.
"""

from datetime import datetime
from typing import List, Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete

from ..application.ports import (
    UserRepository, JobRepository, RequirementRepository, AuditRepository,
    EventRepository, OutboxRepository, IdempotencyRepository,
)
from ..domain.entities import (
    User, Job, ComplianceRequirement, ComplianceAudit, DomainEventRecord, IdempotencyRecord
)
from ..domain.events import WorkflowSignal, utcnow
from ..domain.value_objects import AuditStatus, JobStatus, RiskLevel, UserRole
from .db_models import (
    UserModel, JobModel, RequirementModel, ComplianceAuditModel, EventModel,
    OutboxModel, IdempotencyKeyModel,
)


class SQLAlchemyUserRepository(UserRepository):
    """SQLAlchemy implementation of UserRepository."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: str) -> Optional[User]:
        model = await self.session.get(UserModel, user_id)
        if not model:
            return None
        return User(
            id=model.id,
            company_id=model.company_id,
            role=UserRole(model.role),
            created_at=model.created_at,
        )


class SQLAlchemyJobRepository(JobRepository):
    """SQLAlchemy implementation of JobRepository."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, job_id: str) -> Optional[Job]:
        """Get a job by ID."""
        model = await self.session.get(JobModel, job_id)
        if not model:
            return None
        return self._to_entity(model)

    def _to_entity(self, model: JobModel) -> Job:
        """Convert model to entity."""
        return Job(
            id=model.id,
            company_id=model.company_id,
            name=model.name,
            status=JobStatus(model.status),
            location=model.location or {},
            start_date=model.start_date,
            end_date=model.end_date,
            estimated_value=model.estimated_value,
            created_at=model.created_at,
        )


class SQLAlchemyRequirementRepository(RequirementRepository):
    """SQLAlchemy implementation of RequirementRepository."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, requirement_id: str) -> Optional[ComplianceRequirement]:
        model = await self.session.get(RequirementModel, requirement_id)
        if not model:
            return None
        return self._to_entity(model)

    async def get_by_regulation_ids(
        self,
        regulation_ids: List[str],
    ) -> Dict[str, ComplianceRequirement]:
        if not regulation_ids:
            return {}
        stmt = select(RequirementModel).where(RequirementModel.regulation_id.in_(regulation_ids))
        result = await self.session.execute(stmt)
        catalog = {}
        for model in result.scalars().all():
            # first entry wins when the catalog carries duplicates
            catalog.setdefault(model.regulation_id, self._to_entity(model))
        return catalog

    async def search(
        self,
        industry: Optional[str] = None,
        limit: int = 50,
    ) -> List[ComplianceRequirement]:
        stmt = select(RequirementModel).order_by(RequirementModel.regulation_id.asc())
        if not industry:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        requirements = [self._to_entity(m) for m in result.scalars().all()]

        # JSON containment is dialect specific, the catalog is small enough to filter here
        if industry:
            wanted = industry.strip().lower()
            requirements = [
                r for r in requirements
                if wanted in (i.lower() for i in r.industry_types)
            ][:limit]
        return requirements

    def _to_entity(self, model: RequirementModel) -> ComplianceRequirement:
        return ComplianceRequirement(
            id=model.id,
            regulation_id=model.regulation_id,
            title=model.title,
            description=model.description or "",
            industry_types=list(model.industry_types or []),
            risk_level=RiskLevel(model.risk_level),
        )


class SQLAlchemyAuditRepository(AuditRepository):
    """SQLAlchemy implementation of AuditRepository."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, audit: ComplianceAudit) -> None:
        """Insert an audit row. Rows are never updated."""
        model = ComplianceAuditModel(
            id=audit.id,
            company_id=audit.company_id,
            requirement_id=audit.requirement_id,
            job_id=audit.job_id,
            status=audit.status.value,
            audit_data=audit.audit_data,
            auditor_user_id=audit.auditor_user_id,
            run_id=audit.run_id,
            idempotency_key=audit.idempotency_key,
            created_at=audit.created_at,
        )
        self.session.add(model)
        await self.session.flush()

    async def get_by_job(
        self,
        job_id: str,
        company_id: str,
        skip: int = 0,
        limit: int = 100,
    ) -> List[ComplianceAudit]:
        """Get audits of a job, newest first."""
        stmt = (
            select(ComplianceAuditModel)
            .where(ComplianceAuditModel.job_id == job_id)
            .where(ComplianceAuditModel.company_id == company_id)
            .order_by(ComplianceAuditModel.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [self._to_entity(m) for m in result.scalars().all()]

    async def get_by_run_id(self, run_id: str) -> List[ComplianceAudit]:
        stmt = (
            select(ComplianceAuditModel)
            .where(ComplianceAuditModel.run_id == run_id)
            .order_by(ComplianceAuditModel.created_at.asc())
        )
        result = await self.session.execute(stmt)
        return [self._to_entity(m) for m in result.scalars().all()]

    def _to_entity(self, model: ComplianceAuditModel) -> ComplianceAudit:
        """Convert model to entity."""
        return ComplianceAudit(
            id=model.id,
            company_id=model.company_id,
            requirement_id=model.requirement_id,
            job_id=model.job_id,
            status=AuditStatus(model.status),
            audit_data=model.audit_data or {},
            auditor_user_id=model.auditor_user_id,
            run_id=model.run_id,
            idempotency_key=model.idempotency_key,
            created_at=model.created_at,
        )


class SQLAlchemyEventRepository(EventRepository):
    """SQLAlchemy implementation of EventRepository."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(self, record: DomainEventRecord) -> None:
        self.session.add(EventModel(
            id=record.id,
            company_id=record.company_id,
            event_type=record.event_type,
            payload=record.payload,
            created_at=record.created_at,
        ))


class SQLAlchemyOutboxRepository(OutboxRepository):
    """
    SQLAlchemy implementation of OutboxRepository.

    Implements the Outbox Pattern for reliable signal delivery.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def save(self, signal: WorkflowSignal) -> str:
        """Save a signal to the outbox."""
        model = OutboxModel(
            event_id=signal.signal_id,
            event_type=signal.name,
            aggregate_type="Job",
            aggregate_id=signal.aggregate_id,
            payload=signal.data,
            published=False,
            retry_count=0,
            created_at=signal.occurred_at,
        )
        self.session.add(model)
        await self.session.flush()
        return model.id

    async def get_unpublished(self, limit: int = 100) -> List[Dict[str, Any]]:
        """Get unpublished signals for processing."""
        stmt = (
            select(OutboxModel)
            .where(OutboxModel.published == False)  # noqa: E712
            .order_by(OutboxModel.created_at.asc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return [self._to_message(m) for m in result.scalars().all()]

    async def get_by_ids(self, message_ids: List[str]) -> List[Dict[str, Any]]:
        if not message_ids:
            return []
        stmt = (
            select(OutboxModel)
            .where(OutboxModel.id.in_(message_ids))
            .where(OutboxModel.published == False)  # noqa: E712
            .order_by(OutboxModel.created_at.asc())
        )
        result = await self.session.execute(stmt)
        return [self._to_message(m) for m in result.scalars().all()]

    async def mark_as_published(self, message_ids: List[str]) -> None:
        """Mark signals as delivered."""
        stmt = (
            update(OutboxModel)
            .where(OutboxModel.id.in_(message_ids))
            .values(published=True, published_at=utcnow())
        )
        await self.session.execute(stmt)

    async def delete_published(self, older_than: datetime) -> int:
        """Delete old delivered messages."""
        stmt = (
            delete(OutboxModel)
            .where(OutboxModel.published == True)  # noqa: E712
            .where(OutboxModel.published_at < older_than)
        )
        result = await self.session.execute(stmt)
        return result.rowcount

    async def increment_retry(self, message_id: str, error: str) -> None:
        """Increment retry count and store last error."""
        stmt = (
            update(OutboxModel)
            .where(OutboxModel.id == message_id)
            .values(
                retry_count=OutboxModel.retry_count + 1,
                last_error=error[:2000],
            )
        )
        await self.session.execute(stmt)

    @staticmethod
    def _to_message(model: OutboxModel) -> Dict[str, Any]:
        return {
            'id': model.id,
            'event_id': model.event_id,
            'event_type': model.event_type,
            'aggregate_type': model.aggregate_type,
            'aggregate_id': model.aggregate_id,
            'payload': model.payload,
            'created_at': model.created_at,
            'retry_count': model.retry_count or 0,
            'last_error': model.last_error,
        }


class SQLAlchemyIdempotencyRepository(IdempotencyRepository):
    """SQLAlchemy implementation of IdempotencyRepository."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, user_id: str, key: str) -> Optional[IdempotencyRecord]:
        stmt = (
            select(IdempotencyKeyModel)
            .where(IdempotencyKeyModel.user_id == user_id)
            .where(IdempotencyKeyModel.key == key)
        )
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        if not model:
            return None
        return IdempotencyRecord(
            id=model.id,
            user_id=model.user_id,
            key=model.key,
            job_id=model.job_id,
            audit_ids=list(model.audit_ids or []),
            completed=bool(model.completed),
            created_at=model.created_at,
        )

    async def save(self, record: IdempotencyRecord) -> None:
        self.session.add(IdempotencyKeyModel(
            id=record.id,
            user_id=record.user_id,
            key=record.key,
            job_id=record.job_id,
            audit_ids=list(record.audit_ids),
            completed=record.completed,
            created_at=record.created_at,
        ))
        await self.session.flush()

    async def complete(self, user_id: str, key: str, audit_ids: List[str]) -> None:
        stmt = (
            update(IdempotencyKeyModel)
            .where(IdempotencyKeyModel.user_id == user_id)
            .where(IdempotencyKeyModel.key == key)
            .values(audit_ids=list(audit_ids), completed=True)
        )
        await self.session.execute(stmt)

    async def delete(self, user_id: str, key: str) -> None:
        stmt = (
            delete(IdempotencyKeyModel)
            .where(IdempotencyKeyModel.user_id == user_id)
            .where(IdempotencyKeyModel.key == key)
        )
        await self.session.execute(stmt)
