"""Test fixtures and utilities."""

import json

import pytest
from fastapi.testclient import TestClient

from auditguard.api.config import ServiceConfig
from auditguard.api.container import Container, set_container
from auditguard.api.domain.entities import ComplianceRequirement, Job, User
from auditguard.api.domain.value_objects import JobStatus, RiskLevel, UserRole
from auditguard.api.infrastructure.rate_limiter import RedisRateLimiter
from tests.mocks import FakeDispatcher, FakeReasoningClient, FakeRedis, FakeUnitOfWork, InMemoryStore


HUDSON_RAIL_RESPONSE = json.dumps({
    "requirements": [
        {
            "regulationId": "1926.501",
            "title": "Fall protection",
            "status": "non_compliant",
            "riskScore": 82,
            "rationale": "Open edges on the elevated platform.",
            "remediation": ["Install guardrails", "Issue harnesses"],
        },
        {
            "regulationId": "1910.305",
            "title": "Wiring methods",
            "status": "compliant",
            "riskScore": 20,
            "rationale": "Temporary power is GFCI protected.",
            "remediation": [],
        },
    ]
})


@pytest.fixture
def store():
    """In-memory store seeded with two tenants."""
    store = InMemoryStore()
    store.users["user-1"] = User(id="user-1", company_id="company-a", role=UserRole.COMPLIANCE_OFFICER)
    store.users["user-2"] = User(id="user-2", company_id="company-b", role=UserRole.OWNER)
    store.users["user-orphan"] = User(id="user-orphan", company_id="")
    store.jobs["job-1"] = Job(
        id="job-1",
        company_id="company-a",
        name="Hudson Rail Expansion",
        status=JobStatus.ACTIVE,
        location={"city": "Albany", "state": "NY"},
    )
    store.jobs["job-b"] = Job(id="job-b", company_id="company-b", name="Harbor Dredging")
    store.requirements["req-fall"] = ComplianceRequirement(
        id="req-fall",
        regulation_id="1926.501",
        title="Duty to have fall protection",
        industry_types=["construction"],
        risk_level=RiskLevel.CRITICAL,
    )
    store.requirements["req-wiring"] = ComplianceRequirement(
        id="req-wiring",
        regulation_id="1910.305",
        title="Wiring methods, components, and equipment",
        industry_types=["construction", "manufacturing"],
        risk_level=RiskLevel.HIGH,
    )
    return store


@pytest.fixture
def uow(store):
    return FakeUnitOfWork(store)


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def reasoning():
    return FakeReasoningClient(HUDSON_RAIL_RESPONSE)


@pytest.fixture
def dispatcher():
    return FakeDispatcher()


@pytest.fixture
def config():
    return ServiceConfig(database_url="sqlite+aiosqlite:///:memory:")


@pytest.fixture
def container(config, store, fake_redis, reasoning, dispatcher):
    """Container wired with fakes, installed as the global container."""
    container = Container(
        config,
        unit_of_work_factory=lambda: FakeUnitOfWork(store),
        rate_limiter=RedisRateLimiter(fake_redis, config.mode),
        reasoning_client=reasoning,
        dispatcher=dispatcher,
    )
    set_container(container)
    yield container
    set_container(None)


@pytest.fixture
def client(container):
    """Test client for the API."""
    from auditguard.api.main import create_app
    return TestClient(create_app(container))
