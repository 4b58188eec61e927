"""
Tests for CLI commands — push, pull, apply, cleanup, status, audit.
"""

import json
import logging
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from vapi_gitops.core.persistence.audit import AuditEntry, AuditWriter
from vapi_gitops.main import cli


@pytest.fixture(autouse=True)
def restore_logging():
    """The CLI reconfigures the root logger; put it back afterwards."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def declared(write_resource, project: Path) -> Path:
    write_resource("tools", "lookup.yml", "type: function\nfunction:\n  name: lookup\n")
    write_resource(
        "assistants",
        "booking.yml",
        "name: Booking\nmodel:\n  toolIds:\n    - lookup\n",
    )
    return project


def _invoke(runner: CliRunner, project: Path, *args: str):
    return runner.invoke(cli, ["-q", "--root", str(project), *args])


class TestCLIGlobal:
    """Tests for global CLI behavior."""

    def test_help(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("push", "pull", "apply", "cleanup", "status", "audit"):
            assert command in result.output

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestPushCommand:
    def test_mock_push(self, runner, declared):
        result = _invoke(runner, declared, "push", "dev", "--mock")

        assert result.exit_code == 0, result.output
        assert "Created: 2 | Updated: 0 | Linked: 0" in result.output
        assert "Mock run, ledger not saved" in result.output
        assert not (declared / ".vapi-state.dev.json").exists()

    def test_mock_push_json(self, runner, declared):
        result = _invoke(runner, declared, "push", "dev", "--mock", "--json")

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["mock"] is True
        assert data["report"]["created"] == 2
        assert data["deletions"]["dry_run"] is True

    def test_type_filter(self, runner, declared):
        result = _invoke(runner, declared, "push", "dev", "--mock", "--json", "-t", "tools")

        data = json.loads(result.stdout)
        assert data["types"] == ["tools"]
        assert [r["resource_id"] for r in data["report"]["receipts"]] == ["lookup"]

    def test_unknown_type_rejected(self, runner, declared):
        result = _invoke(runner, declared, "push", "dev", "-t", "workflows")
        assert result.exit_code == 2

    def test_missing_token_fails(self, runner, declared):
        result = _invoke(runner, declared, "push", "dev")
        assert result.exit_code == 1
        assert "VAPI_TOKEN" in result.output

    def test_invalid_environment_fails(self, runner, declared):
        result = _invoke(runner, declared, "push", "qa", "--mock")
        assert result.exit_code == 1
        assert "Invalid environment" in result.output


class TestPullAndApplyCommands:
    def test_mock_pull(self, runner, project):
        with patch("vapi_gitops.core.use_cases.pull.locally_changed_files", return_value=None):
            result = _invoke(runner, project, "pull", "dev", "--mock")

        assert result.exit_code == 0, result.output
        assert "tools: 0 new, 0 updated" in result.output

    def test_mock_apply_json(self, runner, declared):
        with patch("vapi_gitops.core.use_cases.pull.locally_changed_files", return_value=None):
            result = _invoke(runner, declared, "apply", "dev", "--mock", "--json")

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["push"]["report"]["created"] == 2


class TestCleanupCommand:
    def test_mock_cleanup(self, runner, project):
        result = _invoke(runner, project, "cleanup", "dev", "--mock")

        assert result.exit_code == 0, result.output
        assert "Nothing to delete" in result.output


class TestStatusCommand:
    def test_status(self, runner, declared):
        result = _invoke(runner, declared, "status", "dev")

        assert result.exit_code == 0
        assert "no state file yet" in result.output
        assert "assistants" in result.output

    def test_status_json(self, runner, declared):
        (declared / ".vapi-state.dev.json").write_text('{"tools": {"lookup": "u1"}}')

        result = _invoke(runner, declared, "status", "dev", "--json")

        data = json.loads(result.stdout)
        assert data["state_exists"] is True
        assert data["ledger"]["tools"] == 1
        assert data["declared"]["assistants"] == 1

    def test_status_invalid_environment_json(self, runner, project):
        result = _invoke(runner, project, "status", "qa", "--json")
        assert result.exit_code == 1
        assert "Invalid environment" in json.loads(result.stdout)["error"]


class TestAuditCommand:
    def test_empty(self, runner, project):
        result = _invoke(runner, project, "audit", "log", "dev")
        assert result.exit_code == 0
        assert "No runs recorded for dev." in result.output

    def test_lists_entries(self, runner, project):
        writer = AuditWriter(project / ".vapi-audit.dev.ndjson")
        writer.write(AuditEntry(operation_id="op-a", operation_type="push", status="ok", created=1))
        writer.write(AuditEntry(operation_id="op-b", operation_type="pull", status="failed"))

        result = _invoke(runner, project, "audit", "log", "dev", "-n", "1", "--json")

        data = json.loads(result.stdout)
        assert [e["operation_id"] for e in data] == ["op-b"]

    def test_text_output(self, runner, project):
        AuditWriter(project / ".vapi-audit.dev.ndjson").write(
            AuditEntry(operation_id="op-a", operation_type="push", status="partial", errors=["boom"])
        )

        result = _invoke(runner, project, "audit", "log", "dev")

        assert "op-a" in result.output
        assert "│ boom" in result.output
