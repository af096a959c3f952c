"""
Infrastructure Layer - Unit of Work Implementation

Manages database transactions and coordinates repositories.
"""

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from ..application.ports import (
    UnitOfWork, UserRepository, JobRepository, RequirementRepository, AuditRepository,
    EventRepository, OutboxRepository, IdempotencyRepository,
)
from .repositories import (
    SQLAlchemyUserRepository, SQLAlchemyJobRepository, SQLAlchemyRequirementRepository,
    SQLAlchemyAuditRepository, SQLAlchemyEventRepository, SQLAlchemyOutboxRepository,
    SQLAlchemyIdempotencyRepository,
)


class SQLAlchemyUnitOfWork(UnitOfWork):
    """
    SQLAlchemy implementation of Unit of Work pattern.

    Manages database sessions and transactions. Every ``async with`` block
    gets a fresh session, so one instance can be reused for several
    consecutive transactions (the audit recorder commits each row in its own
    block).

    Usage:
        async with uow:
            await uow.events.append(record)
            await uow.outbox.save(signal)
            await uow.commit()
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory
        self._session: Optional[AsyncSession] = None

        # Lazy-initialized repositories
        self._users: Optional[UserRepository] = None
        self._jobs: Optional[JobRepository] = None
        self._requirements: Optional[RequirementRepository] = None
        self._audits: Optional[AuditRepository] = None
        self._events: Optional[EventRepository] = None
        self._outbox: Optional[OutboxRepository] = None
        self._idempotency: Optional[IdempotencyRepository] = None

    @property
    def users(self) -> UserRepository:
        if self._users is None:
            self._users = SQLAlchemyUserRepository(self._session)
        return self._users

    @property
    def jobs(self) -> JobRepository:
        """Get the job repository."""
        if self._jobs is None:
            self._jobs = SQLAlchemyJobRepository(self._session)
        return self._jobs

    @property
    def requirements(self) -> RequirementRepository:
        if self._requirements is None:
            self._requirements = SQLAlchemyRequirementRepository(self._session)
        return self._requirements

    @property
    def audits(self) -> AuditRepository:
        """Get the audit repository."""
        if self._audits is None:
            self._audits = SQLAlchemyAuditRepository(self._session)
        return self._audits

    @property
    def events(self) -> EventRepository:
        if self._events is None:
            self._events = SQLAlchemyEventRepository(self._session)
        return self._events

    @property
    def outbox(self) -> OutboxRepository:
        """Get the outbox repository."""
        if self._outbox is None:
            self._outbox = SQLAlchemyOutboxRepository(self._session)
        return self._outbox

    @property
    def idempotency(self) -> IdempotencyRepository:
        if self._idempotency is None:
            self._idempotency = SQLAlchemyIdempotencyRepository(self._session)
        return self._idempotency

    async def begin(self) -> None:
        """Begin a transaction."""
        if self._session is None:
            self._session = self._session_factory()

    async def commit(self) -> None:
        """Commit the transaction."""
        if self._session:
            await self._session.commit()

    async def rollback(self) -> None:
        """Rollback the transaction."""
        if self._session:
            await self._session.rollback()

    async def __aenter__(self) -> 'SQLAlchemyUnitOfWork':
        """Enter async context manager."""
        await self.begin()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager; uncommitted work is rolled back."""
        if exc_type is not None:
            await self.rollback()

        if self._session:
            await self._session.close()
            self._session = None

        self._users = None
        self._jobs = None
        self._requirements = None
        self._audits = None
        self._events = None
        self._outbox = None
        self._idempotency = None


def create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Create the async engine.

    PostgreSQL (``postgresql+asyncpg://``) gets a connection pool; SQLite
    (``sqlite+aiosqlite://``) is used for local runs and tests, an in-memory
    database shares one connection across sessions.
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url.rstrip("/").endswith("aiosqlite:"):
            kwargs["poolclass"] = StaticPool
        return create_async_engine(database_url, echo=echo, **kwargs)

    return create_async_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
    )


def create_unit_of_work_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Create a session factory for the Unit of Work.

    Args:
        engine: Engine from ``create_engine``

    Returns:
        Async session factory
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
