"""Tests for CLI commands, run against the in-process inbox API."""

import json
from datetime import timedelta

import httpx
import pytest
from typer.testing import CliRunner

from src.cli.main import app
from src.cli.utils.config import AgentProfile, ConfigManager
from src.client.types import SessionStatus
from src.state.models.common import utcnow

runner = CliRunner()


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    config_dir = tmp_path / "inbox"
    monkeypatch.setattr(ConfigManager, "DEFAULT_DIR", config_dir)
    return config_dir


@pytest.fixture
def profile(config_dir, monkeypatch, app):
    """Saved profile for agent alice, wired to the in-process API."""
    profile = AgentProfile(agent_id="alice", api_url="http://inbox.test", token="secret", realtime="off")
    ConfigManager().save(profile)
    monkeypatch.setattr("src.cli.utils.runtime.make_transport", lambda p: httpx.ASGITransport(app=app))
    return profile


@pytest.fixture
def queued(inbox_state) -> str:
    return inbox_state.create_session({"name": "Ada Lovelace", "email": "ada@example.com"},
                                      first_message="I was charged twice",
                                      waiting_since=utcnow() - timedelta(minutes=20)).id


@pytest.fixture
def mine(inbox_state, queued) -> str:
    inbox_state.assign(queued, "alice")
    return queued


class TestInitCommand:
    """Tests for inbox init command."""

    def test_init_creates_config(self, config_dir):
        """Init writes ~/.inbox/config.yaml."""
        result = runner.invoke(app, ["init", "--agent-id", "alice", "--api-url", "https://inbox.example.com/"])

        assert result.exit_code == 0
        assert "initialized successfully" in result.stdout
        config_path = config_dir / "config.yaml"
        assert config_path.exists()
        assert config_path.stat().st_mode & 0o777 == 0o600
        assert ConfigManager().load().api_url == "https://inbox.example.com"

    def test_init_json_output(self, config_dir):
        """Init with --json outputs JSON."""
        result = runner.invoke(
            app,
            ["init", "-a", "alice", "-u", "https://inbox.example.com", "--realtime", "polling", "--json"],
        )

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["status"] == "initialized"
        assert data["agent_id"] == "alice"
        assert data["realtime"] == "polling"

    def test_init_fails_without_force(self, config_dir):
        """Init fails if config exists without --force."""
        runner.invoke(app, ["init", "-a", "first", "-u", "https://inbox.example.com"])
        result = runner.invoke(app, ["init", "-a", "second", "-u", "https://inbox.example.com"])
        assert result.exit_code == 1
        assert "already exists" in result.stdout

        result = runner.invoke(app, ["init", "-a", "second", "-u", "https://inbox.example.com", "--force"])
        assert result.exit_code == 0
        assert ConfigManager().load().agent_id == "second"

    @pytest.mark.parametrize("args", [
        ["-a", "bad agent", "-u", "https://inbox.example.com"],
        ["-a", "alice", "-u", "ftp://inbox.example.com"],
        ["-a", "alice", "-u", "https://inbox.example.com", "--realtime", "carrier-pigeon"],
        ["-a", "alice", "-u", "https://inbox.example.com", "--sla-warning", "40", "--sla-danger", "30"],
    ])
    def test_init_rejects_invalid_input(self, config_dir, args):
        result = runner.invoke(app, ["init", *args])
        assert result.exit_code == 2
        assert not (config_dir / "config.yaml").exists()


class TestSessionsCommand:
    def test_requires_config(self, config_dir):
        result = runner.invoke(app, ["sessions"])
        assert result.exit_code == 1
        assert "inbox init" in result.stdout

    def test_lists_queue_with_sla(self, profile, queued):
        result = runner.invoke(app, ["sessions", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["tab"] == "my_queue"
        assert data["count"] == 1
        session = data["sessions"][0]
        assert session["id"] == queued
        assert session["customer"] == "Ada Lovelace"
        assert session["status"] == "pending"
        assert session["sla"] == "warning"
        assert session["unread_count"] == 1

    def test_active_tab_excludes_queue(self, profile, queued):
        result = runner.invoke(app, ["sessions", "--tab", "active"])
        assert result.exit_code == 0
        assert "No sessions found" in result.stdout

    def test_rejects_unknown_tab(self, profile):
        result = runner.invoke(app, ["sessions", "--tab", "archive"])
        assert result.exit_code == 2


class TestAssignCommand:
    def test_assign_json(self, profile, queued, inbox_state):
        result = runner.invoke(app, ["assign", "-s", queued, "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data == {"status": "assigned", "session_id": queued, "assigned_agent_id": "alice",
                        "session_status": "active"}
        assert inbox_state.get(queued).assigned_agent_id == "alice"

    def test_assign_session_taken_by_another_agent(self, profile, queued, inbox_state):
        inbox_state.assign(queued, "bob")
        result = runner.invoke(app, ["assign", "-s", queued, "--json"])
        assert result.exit_code == 3
        assert json.loads(result.stdout)["status"] == "error"
        assert inbox_state.get(queued).assigned_agent_id == "bob"

    def test_unknown_session(self, profile):
        result = runner.invoke(app, ["assign", "-s", "missing", "--json"])
        assert result.exit_code == 3
        assert json.loads(result.stdout)["error_code"] == "NOT_FOUND"


class TestSendCommand:
    def test_send_json(self, profile, mine):
        result = runner.invoke(app, ["send", "-s", mine, "-m", "Refund is on its way", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["status"] == "sent"
        assert data["delivery_state"] == "delivered"
        assert data["delivered_at"] is not None
        assert data["correlation_id"]

    def test_send_to_pending_session(self, profile, queued):
        result = runner.invoke(app, ["send", "-s", queued, "-m", "Hello", "--json"])
        assert result.exit_code == 3
        assert json.loads(result.stdout)["error_code"] == "INVALID_STATE"

    def test_send_empty_message(self, profile, mine):
        result = runner.invoke(app, ["send", "-s", mine, "-m", "   "])
        assert result.exit_code == 2


class TestMessagesCommand:
    def test_messages_json_and_mark_read(self, profile, mine, inbox_state):
        inbox_state.add_agent_message(mine, "alice", "Looking into it")
        result = runner.invoke(app, ["messages", "-s", mine, "--mark-read", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["count"] == 2
        assert [m["body"] for m in data["messages"]] == ["I was charged twice", "Looking into it"]
        assert inbox_state.get(mine).unread_count == 0

    def test_limit_keeps_latest(self, profile, mine, inbox_state):
        inbox_state.add_agent_message(mine, "alice", "Looking into it")
        result = runner.invoke(app, ["messages", "-s", mine, "-l", "1", "--json"])
        assert [m["body"] for m in json.loads(result.stdout)["messages"]] == ["Looking into it"]

    def test_text_output(self, profile, mine):
        result = runner.invoke(app, ["messages", "-s", mine])
        assert result.exit_code == 0
        assert "I was charged twice" in result.stdout


class TestTransferCommand:
    def test_transfer_to_queue(self, profile, mine, inbox_state):
        result = runner.invoke(app, ["transfer", "-s", mine, "-r", "billing team", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["status"] == "transferred"
        assert data["target_agent_id"] is None
        assert inbox_state.get(mine).status == SessionStatus.PENDING

    def test_transfer_to_agent(self, profile, mine, inbox_state):
        result = runner.invoke(app, ["transfer", "-s", mine, "--to", "bob", "-r", "specialist"])
        assert result.exit_code == 0
        assert "transferred to bob" in result.stdout
        assert inbox_state.get(mine).assigned_agent_id == "bob"

    def test_transfer_requires_reason(self, profile, mine):
        result = runner.invoke(app, ["transfer", "-s", mine, "-r", " "])
        assert result.exit_code == 2


class TestEndCommand:
    def test_end_json(self, profile, mine, inbox_state):
        result = runner.invoke(app, [
            "end", "-s", mine, "-c", "billing", "--summary", "refund issued",
            "--tag", "refund", "--tag", "sales", "--json",
        ])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["status"] == "ended"
        assert data["wrap_up"]["category"] == "billing"
        assert data["wrap_up"]["tags"] == ["refund", "sales"]
        assert inbox_state.get(mine).status == SessionStatus.ENDED

    def test_ended_session_is_read_only(self, profile, mine):
        runner.invoke(app, ["end", "-s", mine, "-c", "billing", "--yes"])
        result = runner.invoke(app, ["send", "-s", mine, "-m", "one more thing", "--json"])
        assert result.exit_code == 3
        assert json.loads(result.stdout)["error_code"] == "SESSION_CLOSED"

    def test_declining_confirmation_aborts(self, profile, mine, inbox_state):
        result = runner.invoke(app, ["end", "-s", mine, "-c", "billing"], input="n\n")
        assert result.exit_code == 1
        assert inbox_state.get(mine).status == SessionStatus.ACTIVE

    def test_unknown_resolution(self, profile, mine):
        result = runner.invoke(app, ["end", "-s", mine, "-c", "billing", "--resolution", "vanished", "-y"])
        assert result.exit_code == 2


class TestNotesAndStats:
    def test_notes_json(self, profile, mine, inbox_state):
        result = runner.invoke(app, ["notes", "-s", mine, "-n", "VIP customer", "--json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["internal_notes"] == "VIP customer"
        assert inbox_state.get(mine).internal_notes == "VIP customer"

    def test_stats_json(self, profile, queued):
        result = runner.invoke(app, ["stats", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["total"] == 1
        assert data["queue_length"] == 1
        assert data["longest_wait"] == 20


class TestWatchCommand:
    def test_rejects_realtime_off(self, profile):
        result = runner.invoke(app, ["watch"])
        assert result.exit_code == 2
        assert "Realtime is off" in result.stdout

    def test_polling_prints_session_event(self, profile, queued):
        result = runner.invoke(app, ["watch", "--mode", "polling", "--limit", "1", "--duration", "5", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["event"] == "session.updated"
        assert data["session_id"] == queued
        assert data["status"] == "pending"
