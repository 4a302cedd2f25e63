"""Tests for the command line interface."""

import pytest
from typer.testing import CliRunner

from mailqueue.cli import app
from mailqueue.config import load_settings

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_environment(monkeypatch, tmp_path):
    load_settings.cache_clear()
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("MAILQUEUE_DATABASE__URL", f"sqlite:///{tmp_path / 'queue.db'}")
    monkeypatch.setenv("MAILQUEUE_TRANSPORT", "console")
    monkeypatch.setenv("MAILQUEUE_LOGGING__CONSOLE_OUTPUT", "false")
    yield
    load_settings.cache_clear()


def _enqueue(*extra):
    return runner.invoke(
        app,
        ["enqueue", "--to", "user@example.com", "--subject", "Hello", "--body", "<p>Hi</p>", *extra],
    )


class TestEnqueueCommand:
    """Tests for the enqueue command."""

    def test_enqueue(self):
        result = _enqueue("--priority", "high")

        assert result.exit_code == 0
        assert "Queued entry" in result.output
        assert "high priority" in result.output

    def test_enqueue_from_file(self, tmp_path):
        body = tmp_path / "body.txt"
        body.write_text("plain body")

        result = runner.invoke(
            app,
            ["enqueue", "--to", "user@example.com", "--subject", "Hello", "--body-file", str(body), "--plain"],
        )

        assert result.exit_code == 0

    def test_requires_exactly_one_body(self):
        result = runner.invoke(app, ["enqueue", "--to", "user@example.com", "--subject", "Hello"])

        assert result.exit_code != 0

    def test_unknown_priority(self):
        result = _enqueue("--priority", "urgent")

        assert result.exit_code != 0

    def test_unknown_correlation(self):
        """Test that a correlation id without a matching form is refused."""
        result = _enqueue("--correlation-id", "missing-form")

        assert result.exit_code == 1
        assert "Could not queue message" in result.output


class TestQueueCommands:
    """Tests for process, stats and entries commands."""

    def test_process_then_stats(self):
        _enqueue()
        _enqueue()

        result = runner.invoke(app, ["process"])
        assert result.exit_code == 0
        assert "Processed 2 entries" in result.output

        result = runner.invoke(app, ["stats"])
        assert result.exit_code == 0
        assert "Queue Statistics" in result.output
        assert "Sent" in result.output

    def test_scheduled_entry_not_processed(self):
        _enqueue("--scheduled-for", "2999-01-01T00:00:00Z")

        result = runner.invoke(app, ["process"])

        assert "Processed 0 entries" in result.output

    def test_worker_run_once(self):
        _enqueue()

        result = runner.invoke(app, ["worker", "--run-once"])

        assert result.exit_code == 0
        assert "Processed 0 entries" in runner.invoke(app, ["process"]).output

    def test_entries_list_and_attempts(self):
        output = _enqueue().output
        entry_id = output.split("Queued entry ")[1].split()[0]
        runner.invoke(app, ["process"])

        result = runner.invoke(app, ["entries", "list", "--status", "sent"])
        assert result.exit_code == 0
        assert "Queue Entries" in result.output

        result = runner.invoke(app, ["entries", "attempts", entry_id])
        assert result.exit_code == 0
        assert "Attempts for entry" in result.output


class TestTransportCommands:
    """Tests for transport checks."""

    def test_test_transport(self):
        result = runner.invoke(app, ["test-transport"])

        assert result.exit_code == 0
        assert "Transport connection OK" in result.output

    def test_send_test(self):
        result = runner.invoke(app, ["send-test", "--to", "user@example.com"])

        assert result.exit_code == 0
        assert "Test email sent" in result.output

    def test_send_test_invalid_address(self):
        result = runner.invoke(app, ["send-test", "--to", "nope"])

        assert result.exit_code != 0
