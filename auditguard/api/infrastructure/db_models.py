"""
Infrastructure Layer - SQLAlchemy Models

Database models for persistence. These are infrastructure concerns
and should not leak into the domain layer.

Users, jobs and requirements are owned by other parts of the console;
the audit pipeline only reads them. Tables are created from this metadata
by ``auditguard db init``.
"""

from sqlalchemy import (
    Column, String, Integer, Float, Boolean, DateTime, Text, JSON,
    ForeignKey, Index, UniqueConstraint
)
from sqlalchemy.orm import declarative_base
import uuid

from ..domain.events import utcnow

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


class UserModel(Base):
    """Tenant membership of an authenticated identity."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid)
    company_id = Column(String(36), nullable=False, index=True)
    role = Column(String(32), nullable=False, default="field_worker")
    created_at = Column(DateTime(timezone=True), default=utcnow)


class JobModel(Base):
    """A tenant's job (project) under audit."""

    __tablename__ = "jobs"

    id = Column(String(36), primary_key=True, default=_uuid)
    company_id = Column(String(36), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    location = Column(JSON, default=dict)
    start_date = Column(DateTime(timezone=True), nullable=True)
    end_date = Column(DateTime(timezone=True), nullable=True)
    estimated_value = Column(Float, nullable=True)
    status = Column(String(20), nullable=False, default="draft", index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class RequirementModel(Base):
    """Regulatory catalog entry."""

    __tablename__ = "compliance_requirements"

    id = Column(String(36), primary_key=True, default=_uuid)
    regulation_id = Column(String(100), nullable=False, index=True)
    title = Column(String(500), nullable=False)
    description = Column(Text, default="")
    industry_types = Column(JSON, default=list)
    risk_level = Column(String(20), nullable=False, default="medium")


class ComplianceAuditModel(Base):
    """
    One evaluation of one requirement against one job.

    ``requirement_id`` is not a foreign key: the model may cite regulations
    that the catalog does not carry yet.
    """

    __tablename__ = "compliance_audits"

    id = Column(String(36), primary_key=True, default=_uuid)
    company_id = Column(String(36), nullable=False, index=True)
    requirement_id = Column(String(100), nullable=False)
    job_id = Column(String(36), ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="pending")
    audit_data = Column(JSON, default=dict)
    auditor_user_id = Column(String(36), nullable=True)
    run_id = Column(String(36), nullable=True, index=True)
    idempotency_key = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)

    __table_args__ = (
        Index("ix_compliance_audits_company_job", "company_id", "job_id"),
    )


class EventModel(Base):
    """Append-only domain event log."""

    __tablename__ = "events"

    id = Column(String(36), primary_key=True, default=_uuid)
    company_id = Column(String(36), nullable=False, index=True)
    event_type = Column(String(100), nullable=False, index=True)
    payload = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)


class OutboxModel(Base):
    """
    SQLAlchemy model for Outbox Pattern.

    The outbox table stores workflow signals that still need to be
    delivered. The outbox processor reads from this table and dispatches
    them, giving at-least-once delivery.
    """

    __tablename__ = "outbox"

    id = Column(String(36), primary_key=True, default=_uuid)

    # Signal metadata
    event_id = Column(String(36), nullable=False, unique=True)
    event_type = Column(String(100), nullable=False, index=True)
    aggregate_type = Column(String(100), nullable=False)
    aggregate_id = Column(String(36), nullable=False, index=True)

    payload = Column(JSON, nullable=False)

    # Delivery state
    published = Column(Boolean, default=False, index=True)
    published_at = Column(DateTime(timezone=True), nullable=True)

    # Retry tracking
    retry_count = Column(Integer, default=0)
    last_error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)

    __table_args__ = (
        Index("ix_outbox_unpublished", "published", "created_at"),
        Index("ix_outbox_aggregate", "aggregate_type", "aggregate_id"),
    )


class IdempotencyKeyModel(Base):
    """Audit ids returned for a (user, Idempotency-Key) pair."""

    __tablename__ = "idempotency_keys"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=False)
    key = Column(String(255), nullable=False)
    job_id = Column(String(36), nullable=False)
    audit_ids = Column(JSON, nullable=False, default=list)
    completed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "key", name="uq_idempotency_user_key"),
    )
