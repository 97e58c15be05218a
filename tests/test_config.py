"""Tests for binocs.config and the typer CLI."""

from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from binocs.agent.record import AgentToolName
from binocs.cli import app, demo_records
from binocs.config import BinocsConfig, OpenAPIConfig
from binocs.store import SQLiteRequestStore


ENV_VARS = (
    "BINOCS_DATABASE",
    "BINOCS_REFRESH_INTERVAL",
    "BINOCS_AGENT_TOOL",
    "BINOCS_WORKTREE_BASE",
    "BINOCS_SPEC_URL",
    "BINOCS_SPEC_UI_URL",
    "BINOCS_BASE_URL",
)


@pytest.fixture
def clean_env(tmp_path, monkeypatch):
    """Isolated cwd (no stray .env) and no BINOCS_* variables."""
    monkeypatch.chdir(tmp_path)
    for name in ENV_VARS:
        # empty counts as unset; recorded so .env loads are undone
        monkeypatch.setenv(name, "")
    return tmp_path


# ---------------------------------------------------------------------------
# BinocsConfig.load
# ---------------------------------------------------------------------------


class TestLoad:
    def test_defaults(self, clean_env) -> None:
        config = BinocsConfig.load()
        assert config.database is None
        assert config.tui.refresh_interval == 2.0
        assert config.agent.tool is AgentToolName.CLAUDE_CODE
        assert config.openapi.cache_ttl == 300.0
        assert not config.openapi.enabled

    def test_file(self, clean_env) -> None:
        path = clean_env / "binocs.json"
        path.write_text(json.dumps({
            "database": "dev.sqlite3",
            "tui": {"refresh_interval": 5},
            "agent": {"tool": "opencode", "stop_grace_period": 1.5},
            "openapi": {"spec_url": "/openapi.yaml"},
        }))
        config = BinocsConfig.load(str(path))
        assert config.database == "dev.sqlite3"
        assert config.tui.refresh_interval == 5.0
        assert config.agent.tool is AgentToolName.OPENCODE
        assert config.agent.stop_grace_period == 1.5
        assert config.openapi.enabled

    def test_env_overrides_file(self, clean_env, monkeypatch) -> None:
        path = clean_env / "binocs.json"
        path.write_text(json.dumps({"database": "file.db", "tui": {"refresh_interval": 5}}))
        monkeypatch.setenv("BINOCS_DATABASE", "env.db")
        monkeypatch.setenv("BINOCS_REFRESH_INTERVAL", "0.5")
        monkeypatch.setenv("BINOCS_AGENT_TOOL", "OpenCode")
        monkeypatch.setenv("BINOCS_SPEC_URL", "/docs/openapi.json")
        monkeypatch.setenv("BINOCS_BASE_URL", "http://api.test:8080")
        config = BinocsConfig.load(str(path))
        assert config.database == "env.db"
        assert config.tui.refresh_interval == 0.5
        assert config.agent.tool is AgentToolName.OPENCODE
        assert config.openapi.absolute(config.openapi.spec_url) == (
            "http://api.test:8080/docs/openapi.json"
        )

    def test_dotenv(self, clean_env) -> None:
        (clean_env / ".env").write_text("BINOCS_WORKTREE_BASE=/tmp/agents\n")
        config = BinocsConfig.load()
        assert config.agent.worktree_base == "/tmp/agents"

    def test_missing_file_uses_defaults(self, clean_env) -> None:
        config = BinocsConfig.load(str(clean_env / "nope.json"))
        assert config.database is None


class TestOpenAPIConfig:
    def test_absolute(self) -> None:
        config = OpenAPIConfig(base_url="http://localhost:3000/")
        assert config.absolute("/api-docs") == "http://localhost:3000/api-docs"
        assert config.absolute("api-docs") == "http://localhost:3000/api-docs"
        assert config.absolute("https://docs.test/ui") == "https://docs.test/ui"
        assert config.absolute(None) is None
        assert config.absolute("") is None


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


runner = CliRunner()


class TestCli:
    def test_stats_demo(self, clean_env) -> None:
        result = runner.invoke(app, ["stats", "--demo"])
        assert result.exit_code == 0
        assert "Total requests: 4" in result.output
        assert "Error rate: 25.00%" in result.output

    def test_stats_sqlite(self, clean_env) -> None:
        db = clean_env / "binocs.db"
        store = SQLiteRequestStore(db, create=True)
        for record in demo_records()[:2]:
            store.insert(record)
        store.close()
        result = runner.invoke(app, ["stats", "--db", str(db)])
        assert result.exit_code == 0
        assert "Total requests: 2" in result.output
        assert "Error rate: 0.00%" in result.output

    def test_missing_database(self, clean_env) -> None:
        result = runner.invoke(app, ["stats", "--db", str(clean_env / "missing.db")])
        assert result.exit_code == 1

    def test_no_database_configured(self, clean_env) -> None:
        result = runner.invoke(app, ["stats"])
        assert result.exit_code == 1

    def test_spec_match_requires_url(self, clean_env) -> None:
        result = runner.invoke(app, ["spec-match", "GET", "/users/1"])
        assert result.exit_code == 1
