"""Unit tests for AuditRecorder."""

import logging

import pytest

from auditguard.api.application.pipeline import AuditRecorder
from auditguard.api.domain.entities import Finding
from auditguard.api.domain.exceptions import EmptyAuditSetError, UpstreamUnavailableError
from auditguard.api.domain.value_objects import AuditStatus


def _findings(*regulation_ids):
    return [
        Finding(regulation_id=r, status=AuditStatus.NON_COMPLIANT, raw={"regulationId": r})
        for r in regulation_ids
    ]


@pytest.mark.unit
class TestAuditRecorder:

    @pytest.mark.asyncio
    async def test_one_row_per_finding(self, uow, store):
        outcome = await AuditRecorder(uow).persist(
            "company-a", "job-1", "user-1", _findings("1926.501", "1910.305")
        )

        assert len(outcome.inserted_ids) == 2
        assert not outcome.is_partial
        assert set(store.audits) == set(outcome.inserted_ids)
        for audit in store.audits.values():
            assert audit.company_id == "company-a"
            assert audit.job_id == "job-1"
            assert audit.auditor_user_id == "user-1"
            assert audit.status == AuditStatus.NON_COMPLIANT

    @pytest.mark.asyncio
    async def test_rows_committed_individually(self, uow):
        await AuditRecorder(uow).persist("company-a", "job-1", None, _findings("1926.501", "1910.305"))
        assert uow.commits == 2

    @pytest.mark.asyncio
    async def test_regulation_ids_resolve_through_catalog(self, uow, store):
        outcome = await AuditRecorder(uow).persist(
            "company-a", "job-1", None, _findings("1926.501", "1915.77")
        )

        requirement_ids = [store.audits[i].requirement_id for i in outcome.inserted_ids]
        assert requirement_ids == ["req-fall", "1915.77"]

    @pytest.mark.asyncio
    async def test_explicit_requirement_id_wins(self, uow, store):
        finding = Finding(requirement_id="req-wiring", regulation_id="1926.501")

        outcome = await AuditRecorder(uow).persist("company-a", "job-1", None, [finding])

        assert store.audits[outcome.inserted_ids[0]].requirement_id == "req-wiring"

    @pytest.mark.asyncio
    async def test_payload_is_the_raw_finding(self, uow, store):
        finding = Finding(regulation_id="1926.501", raw={"regulationId": "1926.501", "riskScore": 82})

        outcome = await AuditRecorder(uow).persist("company-a", "job-1", None, [finding])

        audit = store.audits[outcome.inserted_ids[0]]
        assert audit.audit_data == {"regulationId": "1926.501", "riskScore": 82}
        assert audit.risk_score == 82.0

    @pytest.mark.asyncio
    async def test_run_and_idempotency_key_are_stamped(self, uow, store):
        outcome = await AuditRecorder(uow).persist(
            "company-a", "job-1", None, _findings("1926.501"), run_id="run-1", idempotency_key="k-1"
        )

        audit = store.audits[outcome.inserted_ids[0]]
        assert audit.run_id == "run-1"
        assert audit.idempotency_key == "k-1"

    @pytest.mark.asyncio
    async def test_empty_findings_write_nothing(self, uow, store):
        with pytest.raises(EmptyAuditSetError):
            await AuditRecorder(uow).persist("company-a", "job-1", "user-1", [])

        assert store.audits == {}
        assert store.audit_insert_attempts == 0

    @pytest.mark.asyncio
    async def test_failure_before_first_row_raises(self, uow, store):
        store.fail_audit_insert_after = 0

        with pytest.raises(UpstreamUnavailableError):
            await AuditRecorder(uow).persist("company-a", "job-1", None, _findings("1926.501", "1910.305"))

        assert store.audits == {}

    @pytest.mark.asyncio
    async def test_catalog_read_failure_raises(self, uow, store):
        store.fail_reads = True

        with pytest.raises(UpstreamUnavailableError):
            await AuditRecorder(uow).persist("company-a", "job-1", None, _findings("1926.501"))

    @pytest.mark.asyncio
    async def test_partial_failure_returns_inserted_prefix(self, uow, store, caplog):
        store.fail_audit_insert_after = 1

        with caplog.at_level(logging.ERROR):
            outcome = await AuditRecorder(uow).persist(
                "company-a", "job-1", None, _findings("1926.501", "1910.305", "1915.77")
            )

        assert len(outcome.inserted_ids) == 1
        assert outcome.failed_count == 2
        assert outcome.is_partial
        assert list(store.audits) == outcome.inserted_ids
        record = next(r for r in caplog.records if "Persisted 1 of 3" in r.getMessage())
        assert record.context["code"] == "PARTIAL_PERSISTENCE_FAILURE"
        assert record.context["inserted_ids"] == outcome.inserted_ids
