"""
Dependency Injection Container

Provides dependency injection for the clean architecture components.
This follows the Composition Root pattern: long-lived client handles
(database engine, Redis client, OpenAI client, Celery app) are built here
once and handed to the use cases.
"""

from typing import Callable, Optional
import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from .config import ServiceConfig, get_service_config
from .application.ports import RateLimiter, ReasoningClient, SignalDispatcher, UnitOfWork
from .application.pipeline import AuditInvoker, AuditRecorder, EventEmitter
from .application.use_cases import (
    RunAutomatedAuditUseCase,
    ExecuteAuditWorkflowUseCase,
    RecordManualAuditUseCase,
    ListJobAuditsUseCase,
    ListRequirementsUseCase,
    RequestAuditWorkflowUseCase,
)
from .infrastructure.unit_of_work import SQLAlchemyUnitOfWork, create_engine, create_unit_of_work_factory
from .infrastructure.outbox_processor import OutboxProcessor, CelerySignalDispatcher
from .infrastructure.rate_limiter import RedisRateLimiter
from .infrastructure.reasoning import OpenAIReasoningClient


logger = logging.getLogger(__name__)


class Container:
    """
    Dependency Injection Container.

    Manages the lifecycle of dependencies and provides
    factory methods for use cases. Any service can be passed in
    explicitly, which is how tests swap in fakes.

    Usage:
        container = Container.from_env()
        use_case = container.run_automated_audit_use_case()
        result = await use_case.execute(request)
    """

    def __init__(
        self,
        config: ServiceConfig,
        unit_of_work_factory: Optional[Callable[[], UnitOfWork]] = None,
        rate_limiter: Optional[RateLimiter] = None,
        reasoning_client: Optional[ReasoningClient] = None,
        dispatcher: Optional[SignalDispatcher] = None,
    ):
        self.config = config
        self._unit_of_work_factory = unit_of_work_factory

        # Lazy-initialized components
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None
        self._rate_limiter = rate_limiter
        self._reasoning_client = reasoning_client
        self._dispatcher = dispatcher

    @classmethod
    def from_env(cls) -> 'Container':
        """Create container from environment variables."""
        return cls(get_service_config())

    # ==================== Infrastructure Components ====================

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            self._engine = create_engine(self.config.database_url)
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        """Get SQLAlchemy session factory."""
        if self._session_factory is None:
            self._session_factory = create_unit_of_work_factory(self.engine)
        return self._session_factory

    @property
    def rate_limiter(self) -> RateLimiter:
        if self._rate_limiter is None:
            self._rate_limiter = RedisRateLimiter.from_url(self.config.redis_url, self.config.mode)
        return self._rate_limiter

    @property
    def reasoning_client(self) -> ReasoningClient:
        if self._reasoning_client is None:
            self._reasoning_client = OpenAIReasoningClient(
                api_key=self.config.openai_api_key,
                model=self.config.audit_model,
                base_url=self.config.openai_base_url,
                timeout_seconds=self.config.audit_timeout_seconds,
            )
        return self._reasoning_client

    @property
    def dispatcher(self) -> SignalDispatcher:
        """Get the workflow signal dispatcher."""
        if self._dispatcher is None:
            from .tasks import celery_app
            self._dispatcher = CelerySignalDispatcher(celery_app)
        return self._dispatcher

    # ==================== Unit of Work ====================

    def unit_of_work(self) -> UnitOfWork:
        """Create a new Unit of Work instance."""
        if self._unit_of_work_factory is not None:
            return self._unit_of_work_factory()
        return SQLAlchemyUnitOfWork(self.session_factory)

    # ==================== Pipeline ====================

    def audit_invoker(self) -> AuditInvoker:
        return AuditInvoker(self.reasoning_client)

    def audit_recorder(self) -> AuditRecorder:
        return AuditRecorder(self.unit_of_work())

    def event_emitter(self) -> EventEmitter:
        return EventEmitter(self.unit_of_work())

    def outbox_processor(self) -> OutboxProcessor:
        return OutboxProcessor(
            uow=self.unit_of_work(),
            dispatcher=self.dispatcher,
            poll_interval_seconds=self.config.outbox_poll_interval_seconds,
            batch_size=self.config.outbox_batch_size,
            max_retries=self.config.outbox_max_retries,
            retention_hours=self.config.outbox_retention_hours,
        )

    # ==================== Use Case Factories ====================

    def run_automated_audit_use_case(self) -> RunAutomatedAuditUseCase:
        """Create the RunAutomatedAuditUseCase."""
        return RunAutomatedAuditUseCase(
            uow=self.unit_of_work(),
            rate_limiter=self.rate_limiter,
            invoker=self.audit_invoker(),
            recorder=self.audit_recorder(),
            emitter=self.event_emitter(),
            rate_limit=self.config.audit_rate_limit,
            rate_window_seconds=self.config.audit_rate_window_seconds,
        )

    def execute_audit_workflow_use_case(self) -> ExecuteAuditWorkflowUseCase:
        """Create the ExecuteAuditWorkflowUseCase."""
        return ExecuteAuditWorkflowUseCase(
            uow=self.unit_of_work(),
            invoker=self.audit_invoker(),
            recorder=self.audit_recorder(),
            emitter=self.event_emitter(),
        )

    def request_audit_workflow_use_case(self) -> RequestAuditWorkflowUseCase:
        return RequestAuditWorkflowUseCase(uow=self.unit_of_work())

    def record_manual_audit_use_case(self) -> RecordManualAuditUseCase:
        return RecordManualAuditUseCase(uow=self.unit_of_work(), recorder=self.audit_recorder())

    def list_job_audits_use_case(self) -> ListJobAuditsUseCase:
        return ListJobAuditsUseCase(uow=self.unit_of_work())

    def list_requirements_use_case(self) -> ListRequirementsUseCase:
        return ListRequirementsUseCase(uow=self.unit_of_work())

    # ==================== Lifecycle ====================

    async def check_database(self) -> bool:
        """Run a trivial query against the configured database."""
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True

    async def create_schema(self) -> None:
        """Create all tables from the ORM metadata."""
        from .infrastructure.db_models import Base
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def aclose(self) -> None:
        """
        Release handles bound to the running event loop.

        Lazy properties rebuild them on next use, which lets Celery tasks
        run each delivery in a fresh loop.
        """
        if isinstance(self._rate_limiter, RedisRateLimiter):
            await self._rate_limiter.close()
            self._rate_limiter = None
        if isinstance(self._reasoning_client, OpenAIReasoningClient):
            await self._reasoning_client.close()
            self._reasoning_client = None
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None


# Global container instance (singleton)
_container: Optional[Container] = None


def get_container() -> Container:
    """Get the global container instance."""
    global _container
    if _container is None:
        _container = Container.from_env()
    return _container


def set_container(container: Optional[Container]) -> None:
    """Set the global container instance (for testing)."""
    global _container
    _container = container
