"""Configuration: pydantic models for binocs settings."""

from __future__ import annotations

import json
import os
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from binocs.agent.record import AgentToolName


class TUIConfig(BaseModel):
    """Terminal inspector configuration."""

    refresh_interval: float = Field(
        default=2.0, description="Seconds between automatic data reloads"
    )
    poll_interval: float = Field(
        default=0.1,
        description="Input poll period; also drives live agent output rebuilds",
    )
    max_requests: int = Field(
        default=500, description="Maximum records fetched per list load"
    )


class AgentConfig(BaseModel):
    """Coding-assistant orchestration configuration."""

    tool: AgentToolName = Field(default=AgentToolName.CLAUDE_CODE)
    worktree_base: str = Field(
        default="../binocs-agents",
        description=(
            "Directory holding agent logs and isolated worktrees. "
            "Relative paths resolve against the repository root."
        ),
    )
    claude_command: str = Field(default="claude")
    opencode_command: str = Field(default="opencode")
    stop_grace_period: float = Field(
        default=0.5, description="Seconds between SIGTERM and SIGKILL on stop"
    )


class OpenAPIConfig(BaseModel):
    """API description document configuration.

    ``spec_url`` and ``ui_url`` may be absolute (``https://...``) or
    server-relative (``/api-docs/v1/openapi.yaml``); relative values are
    joined to ``base_url``.
    """

    spec_url: str | None = Field(default=None)
    ui_url: str | None = Field(default=None)
    base_url: str = Field(default="http://localhost:3000")
    cache_ttl: float = Field(default=300.0)
    max_redirects: int = Field(default=5)
    connect_timeout: float = Field(default=5.0)
    read_timeout: float = Field(default=10.0)

    @property
    def enabled(self) -> bool:
        return bool(self.spec_url)

    def absolute(self, url: str | None) -> str | None:
        """Resolve a configured URL against ``base_url``."""
        if not url:
            return None
        if url.startswith(("http://", "https://")):
            return url
        return f"{self.base_url.rstrip('/')}/{url.lstrip('/')}"


class BinocsConfig(BaseModel):
    """Top-level binocs configuration."""

    tui: TUIConfig = Field(default_factory=TUIConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    openapi: OpenAPIConfig = Field(default_factory=OpenAPIConfig)
    database: str | None = Field(
        default=None, description="SQLite database holding binocs_requests"
    )

    @classmethod
    def load(cls, config_path: str | None = None) -> BinocsConfig:
        """Load config from file, env vars, or defaults.

        Priority: env vars > config file > defaults.

        Env vars:
            BINOCS_DATABASE          - SQLite file with the binocs_requests table
            BINOCS_REFRESH_INTERVAL  - Auto-refresh period in seconds
            BINOCS_AGENT_TOOL        - claude_code or opencode
            BINOCS_WORKTREE_BASE     - Directory for agent logs and worktrees
            BINOCS_SPEC_URL          - OpenAPI document URL (absolute or relative)
            BINOCS_SPEC_UI_URL       - API documentation viewer URL
            BINOCS_BASE_URL          - Base URL for relative spec/ui URLs
        """
        load_dotenv(override=True)

        config_data: dict[str, Any] = {}

        if config_path and os.path.exists(config_path):
            with open(config_path) as f:
                config_data = json.load(f)

        tui = config_data.get("tui", {})
        agent = config_data.get("agent", {})
        openapi = config_data.get("openapi", {})

        env_database = os.environ.get("BINOCS_DATABASE")
        if env_database:
            config_data["database"] = env_database

        env_refresh = os.environ.get("BINOCS_REFRESH_INTERVAL")
        if env_refresh:
            tui["refresh_interval"] = float(env_refresh)

        env_tool = os.environ.get("BINOCS_AGENT_TOOL")
        if env_tool:
            agent["tool"] = env_tool.lower()

        env_worktree_base = os.environ.get("BINOCS_WORKTREE_BASE")
        if env_worktree_base:
            agent["worktree_base"] = env_worktree_base

        env_spec_url = os.environ.get("BINOCS_SPEC_URL")
        if env_spec_url:
            openapi["spec_url"] = env_spec_url

        env_ui_url = os.environ.get("BINOCS_SPEC_UI_URL")
        if env_ui_url:
            openapi["ui_url"] = env_ui_url

        env_base_url = os.environ.get("BINOCS_BASE_URL")
        if env_base_url:
            openapi["base_url"] = env_base_url

        if tui:
            config_data["tui"] = tui
        if agent:
            config_data["agent"] = agent
        if openapi:
            config_data["openapi"] = openapi

        return cls.model_validate(config_data)
