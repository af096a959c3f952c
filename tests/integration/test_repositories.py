"""Integration tests for the SQLAlchemy repositories on an in-memory SQLite database."""

from datetime import timedelta

import pytest
import pytest_asyncio
from sqlalchemy.exc import IntegrityError

from auditguard.api.application.pipeline import AuditRecorder, EventEmitter
from auditguard.api.domain.entities import ComplianceAudit, Finding, IdempotencyRecord
from auditguard.api.domain.events import WorkflowSignal, utcnow
from auditguard.api.domain.value_objects import AuditStatus, JobStatus, RiskLevel
from auditguard.api.infrastructure.db_models import Base, JobModel, RequirementModel, UserModel
from auditguard.api.infrastructure.unit_of_work import (
    SQLAlchemyUnitOfWork,
    create_engine,
    create_unit_of_work_factory,
)


@pytest_asyncio.fixture
async def session_factory():
    engine = create_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = create_unit_of_work_factory(engine)
    async with factory() as session:
        session.add_all([
            UserModel(id="user-1", company_id="company-a", role="compliance_officer"),
            JobModel(id="job-1", company_id="company-a", name="Hudson Rail Expansion", status="active",
                     location={"city": "Albany"}),
            RequirementModel(id="req-fall", regulation_id="1926.501", title="Duty to have fall protection",
                             industry_types=["construction"], risk_level="critical"),
            RequirementModel(id="req-wiring", regulation_id="1910.305", title="Wiring methods",
                             industry_types=["construction", "manufacturing"], risk_level="high"),
        ])
        await session.commit()

    yield factory
    await engine.dispose()


@pytest.fixture
def uow(session_factory):
    return SQLAlchemyUnitOfWork(session_factory)


@pytest.mark.integration
class TestReadRepositories:

    @pytest.mark.asyncio
    async def test_user_and_job(self, uow):
        async with uow:
            user = await uow.users.get_by_id("user-1")
            job = await uow.jobs.get_by_id("job-1")
            missing = await uow.jobs.get_by_id("job-missing")

        assert user.company_id == "company-a"
        assert job.status == JobStatus.ACTIVE
        assert job.location == {"city": "Albany"}
        assert missing is None

    @pytest.mark.asyncio
    async def test_requirement_lookup(self, uow):
        async with uow:
            catalog = await uow.requirements.get_by_regulation_ids(["1926.501", "9999.1"])
            by_id = await uow.requirements.get_by_id("req-wiring")

        assert list(catalog) == ["1926.501"]
        assert catalog["1926.501"].risk_level == RiskLevel.CRITICAL
        assert by_id.industry_types == ["construction", "manufacturing"]

    @pytest.mark.asyncio
    async def test_requirement_search(self, uow):
        async with uow:
            everything = await uow.requirements.search()
            manufacturing = await uow.requirements.search(industry="manufacturing")
            one = await uow.requirements.search(limit=1)

        assert [r.regulation_id for r in everything] == ["1910.305", "1926.501"]
        assert [r.id for r in manufacturing] == ["req-wiring"]
        assert len(one) == 1


@pytest.mark.integration
class TestAuditRepository:

    @pytest.mark.asyncio
    async def test_add_and_list(self, uow):
        older = ComplianceAudit.create("company-a", "job-1", "req-fall", status=AuditStatus.COMPLIANT)
        older.created_at = utcnow() - timedelta(minutes=5)
        newer = ComplianceAudit.create(
            "company-a", "job-1", "req-wiring",
            status=AuditStatus.NON_COMPLIANT, audit_data={"riskScore": 82}, run_id="run-1",
        )
        async with uow:
            await uow.audits.add(older)
            await uow.audits.add(newer)
            await uow.commit()

        async with uow:
            audits = await uow.audits.get_by_job("job-1", "company-a")
            other_tenant = await uow.audits.get_by_job("job-1", "company-b")
            by_run = await uow.audits.get_by_run_id("run-1")

        assert [a.id for a in audits] == [newer.id, older.id]
        assert audits[0].status == AuditStatus.NON_COMPLIANT
        assert audits[0].risk_score == 82.0
        assert other_tenant == []
        assert [a.id for a in by_run] == [newer.id]

    @pytest.mark.asyncio
    async def test_uncommitted_rows_are_discarded(self, uow):
        async with uow:
            await uow.audits.add(ComplianceAudit.create("company-a", "job-1", "req-fall"))

        async with uow:
            assert await uow.audits.get_by_job("job-1", "company-a") == []

    @pytest.mark.asyncio
    async def test_recorder_commits_each_row(self, uow):
        findings = [
            Finding(regulation_id="1926.501", status=AuditStatus.NON_COMPLIANT, raw={"regulationId": "1926.501"}),
            Finding(regulation_id="1915.77", raw={"regulationId": "1915.77"}),
        ]

        outcome = await AuditRecorder(uow).persist("company-a", "job-1", "user-1", findings)

        async with uow:
            audits = await uow.audits.get_by_job("job-1", "company-a")
        assert {a.id for a in audits} == set(outcome.inserted_ids)
        assert {a.requirement_id for a in audits} == {"req-fall", "1915.77"}


@pytest.mark.integration
class TestEventsAndOutbox:

    @pytest.mark.asyncio
    async def test_emitter_writes_event_and_signal(self, uow):
        message_id = await EventEmitter(uow).emit("company-a", "job-1", ["a1", "a2"], high_risk=1)

        async with uow:
            [message] = await uow.outbox.get_by_ids([message_id])

        assert message["event_type"] == WorkflowSignal.AUDIT_COMPLETED
        assert message["aggregate_id"] == "job-1"
        assert message["payload"]["auditIds"] == ["a1", "a2"]
        assert message["retry_count"] == 0

    @pytest.mark.asyncio
    async def test_delivery_lifecycle(self, uow):
        async with uow:
            message_id = await uow.outbox.save(WorkflowSignal.audit_completed("company-a", "job-1", ["a1"]))
            await uow.commit()

        async with uow:
            await uow.outbox.increment_retry(message_id, "broker down " * 500)
            await uow.commit()

        async with uow:
            [pending] = await uow.outbox.get_unpublished()
        assert pending["retry_count"] == 1
        assert len(pending["last_error"]) == 2000

        async with uow:
            await uow.outbox.mark_as_published([message_id])
            await uow.commit()

        async with uow:
            assert await uow.outbox.get_unpublished() == []
            assert await uow.outbox.get_by_ids([message_id]) == []
            assert await uow.outbox.delete_published(utcnow() - timedelta(hours=1)) == 0
            deleted = await uow.outbox.delete_published(utcnow() + timedelta(hours=1))
            await uow.commit()
        assert deleted == 1


@pytest.mark.integration
class TestIdempotencyRepository:

    @pytest.mark.asyncio
    async def test_save_and_get(self, uow):
        async with uow:
            await uow.idempotency.save(
                IdempotencyRecord(user_id="user-1", key="k-1", job_id="job-1", audit_ids=["a1"])
            )
            await uow.commit()

        async with uow:
            record = await uow.idempotency.get("user-1", "k-1")
            other_user = await uow.idempotency.get("user-2", "k-1")

        assert record.job_id == "job-1"
        assert record.audit_ids == ["a1"]
        assert other_user is None

    @pytest.mark.asyncio
    async def test_duplicate_key_is_rejected(self, uow):
        async with uow:
            await uow.idempotency.save(IdempotencyRecord(user_id="user-1", key="k-1", job_id="job-1"))
            await uow.commit()

        with pytest.raises(IntegrityError):
            async with uow:
                await uow.idempotency.save(IdempotencyRecord(user_id="user-1", key="k-1", job_id="job-1"))
                await uow.commit()

    @pytest.mark.asyncio
    async def test_reservation_lifecycle(self, uow):
        async with uow:
            await uow.idempotency.save(IdempotencyRecord(user_id="user-1", key="k-1", job_id="job-1"))
            await uow.commit()

        async with uow:
            reserved = await uow.idempotency.get("user-1", "k-1")
        assert reserved.completed is False
        assert reserved.audit_ids == []

        async with uow:
            await uow.idempotency.complete("user-1", "k-1", ["a1", "a2"])
            await uow.commit()

        async with uow:
            completed = await uow.idempotency.get("user-1", "k-1")
        assert completed.completed is True
        assert completed.audit_ids == ["a1", "a2"]

        async with uow:
            await uow.idempotency.delete("user-1", "k-1")
            await uow.commit()

        async with uow:
            assert await uow.idempotency.get("user-1", "k-1") is None
