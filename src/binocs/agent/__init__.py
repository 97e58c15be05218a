"""Agent system: records, registry, process control, orchestrator."""

from binocs.agent.context import build_context
from binocs.agent.orchestrator import AgentOrchestrator, generate_slug
from binocs.agent.record import (
    AgentRecord,
    AgentStatus,
    AgentTool,
    AgentToolName,
    ClaudeCodeTool,
    OpenCodeTool,
    make_tool,
)
from binocs.agent.registry import AgentRegistry
from binocs.agent.worktree import WorktreeError

__all__ = [
    "AgentOrchestrator",
    "AgentRecord",
    "AgentRegistry",
    "AgentStatus",
    "AgentTool",
    "AgentToolName",
    "ClaudeCodeTool",
    "OpenCodeTool",
    "WorktreeError",
    "build_context",
    "generate_slug",
    "make_tool",
]
