"""
API integration tests.

The HTTP layer runs for real; storage, Redis, the reasoning service and the
broker are the in-memory fakes wired by the ``container`` fixture.
"""

import json

import pytest
from fastapi.testclient import TestClient

from auditguard import __version__
from auditguard.api.domain.events import WorkflowSignal
from auditguard.api.main import create_app


USER_1 = {"X-User-ID": "user-1"}
AUTOMATED = "/api/v1/jobs/job-1/compliance/automated"


@pytest.mark.integration
class TestHealth:

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["version"] == __version__

    def test_health(self, client):
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_ready(self, client):
        response = client.get("/api/v1/health/ready")

        assert response.json() == {
            "status": "ready",
            "components": {"database": "connected", "counter_store": "connected"},
        }

    def test_ready_reports_counter_store_down(self, client, fake_redis):
        fake_redis.down = True

        body = client.get("/api/v1/health/ready").json()

        assert body["status"] == "ready"
        assert body["components"]["counter_store"] == "disconnected"


@pytest.mark.integration
class TestAutomatedAuditEndpoint:

    def test_hudson_rail(self, client, store, dispatcher):
        response = client.post(AUTOMATED, headers=USER_1, json={"jobId": "job-1"})

        assert response.status_code == 200
        audit_ids = response.json()["auditIds"]
        assert len(audit_ids) == 2
        assert set(audit_ids) == set(store.audits)
        assert store.events[0].payload["highRisk"] == 1

    def test_signal_delivered_in_background(self, client, store, dispatcher):
        audit_ids = client.post(AUTOMATED, headers=USER_1).json()["auditIds"]

        assert len(dispatcher.sent) == 1
        assert dispatcher.sent[0]["name"] == WorkflowSignal.AUDIT_COMPLETED
        assert dispatcher.sent[0]["data"]["auditIds"] == audit_ids
        assert all(m["published"] for m in store.outbox.values())

    def test_broker_down_leaves_signal_for_sweep(self, client, store, dispatcher):
        dispatcher.fail = True

        response = client.post(AUTOMATED, headers=USER_1)

        assert response.status_code == 200
        [message] = store.outbox.values()
        assert message["published"] is False
        assert message["retry_count"] == 1

    def test_force_flag(self, client, reasoning):
        client.post(AUTOMATED, headers=USER_1, json={"force": True})

        assert json.loads(reasoning.calls[0]["user"])["telemetry"] == {"force": True}

    def test_mismatched_job_id(self, client, reasoning):
        response = client.post(AUTOMATED, headers=USER_1, json={"jobId": "job-2"})

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_BODY"
        assert reasoning.calls == []

    def test_malformed_body(self, client):
        response = client.post(AUTOMATED, headers=USER_1, json={"force": {"please": True}})

        assert response.status_code == 400
        assert response.json() == {"error": "INVALID_BODY", "detail": "Invalid request: force"}

    def test_unauthenticated(self, client):
        response = client.post(AUTOMATED)

        assert response.status_code == 401
        assert response.json()["error"] == "UNAUTHORIZED"

    def test_not_onboarded(self, client):
        response = client.post(AUTOMATED, headers={"X-User-ID": "user-orphan"})

        assert response.status_code == 403
        assert response.json() == {"error": "FORBIDDEN", "detail": "User not onboarded"}

    def test_cross_tenant(self, client, reasoning):
        response = client.post(AUTOMATED, headers={"X-User-ID": "user-2"})

        assert response.status_code == 403
        assert reasoning.calls == []

    def test_unknown_job(self, client):
        response = client.post("/api/v1/jobs/job-missing/compliance/automated", headers=USER_1)

        assert response.status_code == 404
        assert response.json()["error"] == "JOB_NOT_FOUND"

    def test_empty_audit_set(self, client, store, reasoning):
        reasoning.responses = [json.dumps({"requirements": []})]

        response = client.post(AUTOMATED, headers=USER_1)

        assert response.status_code == 422
        assert response.json() == {"error": "EMPTY_AUDIT_SET", "detail": "Model returned empty audit set"}
        assert store.audits == {}
        assert store.events == []

    def test_rate_limited(self, client, reasoning):
        for _ in range(5):
            assert client.post(AUTOMATED, headers=USER_1).status_code == 200

        response = client.post(AUTOMATED, headers=USER_1)

        assert response.status_code == 429
        assert response.json()["error"] == "RATE_LIMITED"
        assert response.headers["Retry-After"] == "3600"
        assert len(reasoning.calls) == 5

    def test_invalid_model_output_hides_detail(self, client, reasoning):
        reasoning.responses = ["Sorry, I cannot help with that."]

        response = client.post(AUTOMATED, headers=USER_1)

        assert response.status_code == 500
        assert response.json() == {"error": "INVALID_MODEL_OUTPUT"}

    def test_idempotent_replay(self, client, reasoning):
        headers = dict(USER_1, **{"Idempotency-Key": "retry-abc"})

        first = client.post(AUTOMATED, headers=headers)
        second = client.post(AUTOMATED, headers=headers)

        assert second.status_code == 200
        assert second.json() == first.json()
        assert second.headers["Idempotent-Replayed"] == "true"
        assert "Idempotent-Replayed" not in first.headers
        assert len(reasoning.calls) == 1

    def test_unexpected_error(self, container, store):
        store.fail_reads = True
        client = TestClient(create_app(container), raise_server_exceptions=False)

        response = client.post(AUTOMATED, headers=USER_1)

        assert response.status_code == 500
        assert response.json() == {"error": "INTERNAL_ERROR"}


@pytest.mark.integration
class TestAuditListEndpoint:

    def test_lists_job_audits(self, client):
        audit_ids = client.post(AUTOMATED, headers=USER_1).json()["auditIds"]

        response = client.get("/api/v1/jobs/job-1/compliance/audits", headers=USER_1)

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 2
        assert {item["id"] for item in body["items"]} == set(audit_ids)
        assert {item["risk_score"] for item in body["items"]} == {82.0, 20.0}

    def test_other_tenant(self, client):
        response = client.get("/api/v1/jobs/job-1/compliance/audits", headers={"X-User-ID": "user-2"})
        assert response.status_code == 403

    def test_limit_bounds(self, client):
        response = client.get("/api/v1/jobs/job-1/compliance/audits?limit=0", headers=USER_1)
        assert response.status_code == 400


@pytest.mark.integration
class TestComplianceEndpoints:

    def test_manual_audit(self, client, store):
        response = client.post("/api/v1/compliance/audits", headers=USER_1, json={
            "requirementId": "req-fall",
            "jobId": "job-1",
            "status": "waived",
            "evidence": ["variance-2024-11.pdf"],
        })

        assert response.status_code == 201
        [audit_id] = response.json()["auditIds"]
        assert store.audits[audit_id].audit_data["evidence"] == ["variance-2024-11.pdf"]

    def test_manual_audit_bad_status(self, client):
        response = client.post("/api/v1/compliance/audits", headers=USER_1, json={
            "requirementId": "req-fall", "jobId": "job-1", "status": "passed",
        })

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_BODY"
        assert "status" in response.json()["detail"]

    def test_manual_audit_unknown_requirement(self, client):
        response = client.post("/api/v1/compliance/audits", headers=USER_1, json={
            "requirementId": "9999.1", "jobId": "job-1", "status": "compliant",
        })

        assert response.status_code == 404
        assert response.json()["error"] == "REQUIREMENT_NOT_FOUND"

    def test_requirements(self, client):
        response = client.get("/api/v1/compliance/requirements?industry=manufacturing", headers=USER_1)

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 1
        assert body["items"][0]["regulation_id"] == "1910.305"

    def test_requirements_need_identity(self, client):
        assert client.get("/api/v1/compliance/requirements").status_code == 401


@pytest.mark.integration
class TestWorkflowEndpoint:

    def test_accepted(self, client, store, dispatcher):
        response = client.post("/api/v1/workflows/compliance-audit", json={
            "jobId": "job-1", "companyId": "company-a", "eventId": "evt-42",
        })

        assert response.status_code == 202
        body = response.json()
        assert body["eventId"] == "evt-42"
        assert store.outbox[body["messageId"]]["event_type"] == WorkflowSignal.AUDIT_REQUESTED
        assert dispatcher.sent[0]["data"]["eventId"] == "evt-42"

    def test_missing_fields(self, client, store):
        response = client.post("/api/v1/workflows/compliance-audit", json={"jobId": "job-1"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid request: companyId"
        assert store.outbox == {}

    def test_token_required_when_configured(self, client, config):
        config.internal_api_token = "s3cret"
        payload = {"jobId": "job-1", "companyId": "company-a"}

        denied = client.post("/api/v1/workflows/compliance-audit", json=payload)
        wrong = client.post("/api/v1/workflows/compliance-audit", json=payload,
                            headers={"Authorization": "Bearer nope"})
        allowed = client.post("/api/v1/workflows/compliance-audit", json=payload,
                              headers={"Authorization": "Bearer s3cret"})

        assert denied.status_code == 401
        assert wrong.status_code == 401
        assert allowed.status_code == 202
