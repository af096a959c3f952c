"""In-memory fakes for the application ports."""

from tests.mocks.fakes import (
    InMemoryStore,
    FakeUnitOfWork,
    FakeRedis,
    FakeReasoningClient,
    FakeDispatcher,
)

__all__ = [
    "InMemoryStore",
    "FakeUnitOfWork",
    "FakeRedis",
    "FakeReasoningClient",
    "FakeDispatcher",
]
