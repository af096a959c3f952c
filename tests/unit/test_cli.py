"""Unit tests for the command line interface."""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from auditguard import __version__
from auditguard.api.domain.events import WorkflowSignal
from auditguard.cli.main import cli


@pytest.fixture
def runner(monkeypatch):
    monkeypatch.setattr("auditguard.cli._runtime.configure_logging", lambda level=None: None)
    return CliRunner()


def _last_line(output):
    return output.strip().splitlines()[-1]


@pytest.mark.unit
class TestCli:

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_workflow_request_queues_and_delivers(self, runner, container, store, dispatcher):
        result = runner.invoke(cli, [
            "workflow", "request", "--job-id", "job-1", "--company-id", "company-a", "--event-id", "evt-7",
        ])

        assert result.exit_code == 0, result.output
        assert "Queued audit for job job-1 (event evt-7)" in result.output
        assert dispatcher.sent[0]["name"] == WorkflowSignal.AUDIT_REQUESTED
        assert dispatcher.sent[0]["data"]["eventId"] == "evt-7"
        assert all(m["published"] for m in store.outbox.values())

    def test_workflow_request_inline(self, runner, container, store, reasoning):
        result = runner.invoke(cli, [
            "workflow", "request", "--job-id", "job-1", "--company-id", "company-a",
            "--telemetry", '{"crew": 4}', "--inline",
        ])

        assert result.exit_code == 0, result.output
        summary = json.loads(_last_line(result.output))
        assert summary["success"] is True
        assert len(summary["auditIds"]) == 2
        assert json.loads(reasoning.calls[0]["user"])["telemetry"] == {"crew": 4}

    def test_workflow_request_inline_failure_exits_nonzero(self, runner, container):
        result = runner.invoke(cli, [
            "workflow", "request", "--job-id", "job-missing", "--company-id", "company-a", "--inline",
        ])

        assert result.exit_code == 1
        assert json.loads(_last_line(result.output))["status"] == "not_found"

    def test_workflow_request_rejects_bad_telemetry(self, runner, container):
        result = runner.invoke(cli, [
            "workflow", "request", "--job-id", "job-1", "--company-id", "company-a", "--telemetry", "[1]",
        ])

        assert result.exit_code == 2
        assert "--telemetry" in result.output

    def test_outbox_sweep(self, runner, container, dispatcher):
        runner.invoke(cli, ["workflow", "request", "--job-id", "job-1", "--company-id", "company-a"])
        dispatcher.sent.clear()

        result = runner.invoke(cli, ["outbox", "sweep"])

        assert result.exit_code == 0
        assert "Delivered 0 signal(s)" in result.output
        assert dispatcher.sent == []

    def test_outbox_sweep_delivers_backlog(self, runner, container, dispatcher):
        dispatcher.connected = False
        runner.invoke(cli, ["workflow", "request", "--job-id", "job-1", "--company-id", "company-a"])
        dispatcher.connected = True

        result = runner.invoke(cli, ["outbox", "sweep"])

        assert "Delivered 1 signal(s)" in result.output
        assert len(dispatcher.sent) == 1

    def test_serve_uses_app_factory(self, runner):
        with patch("uvicorn.run") as run:
            result = runner.invoke(cli, ["serve", "--port", "9000"])

        assert result.exit_code == 0
        args, kwargs = run.call_args
        assert args == ("auditguard.api.main:create_app",)
        assert kwargs["factory"] is True
        assert kwargs["port"] == 9000
