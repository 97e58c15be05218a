"""Agent record: one run of an external coding assistant."""

from __future__ import annotations

import enum
import subprocess
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import ClassVar

from binocs.agent.process import process_alive


class AgentStatus(enum.StrEnum):
    """Lifecycle states. ``completed``, ``failed`` and ``stopped`` are terminal."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    STOPPED = "stopped"

    @property
    def is_terminal(self) -> bool:
        return self in (AgentStatus.COMPLETED, AgentStatus.FAILED, AgentStatus.STOPPED)


_TRANSITIONS: dict[AgentStatus, frozenset[AgentStatus]] = {
    AgentStatus.PENDING: frozenset({AgentStatus.RUNNING, AgentStatus.FAILED}),
    AgentStatus.RUNNING: frozenset(
        {AgentStatus.COMPLETED, AgentStatus.FAILED, AgentStatus.STOPPED}
    ),
    AgentStatus.COMPLETED: frozenset(),
    AgentStatus.FAILED: frozenset(),
    AgentStatus.STOPPED: frozenset(),
}


def can_transition(current: AgentStatus, target: AgentStatus) -> bool:
    return target in _TRANSITIONS[current]


class AgentToolName(enum.StrEnum):
    """Supported assistant backends."""

    CLAUDE_CODE = "claude_code"
    OPENCODE = "opencode"


@dataclass(frozen=True)
class ClaudeCodeTool:
    """Claude Code: ``-p`` prompt, permissions skipped for unattended runs."""

    name: ClassVar[AgentToolName] = AgentToolName.CLAUDE_CODE
    label: ClassVar[str] = "Claude Code"
    command: str = "claude"

    def build_args(self, prompt: str) -> list[str]:
        return [self.command, "-p", prompt, "--dangerously-skip-permissions"]


@dataclass(frozen=True)
class OpenCodeTool:
    """OpenCode: ``-p`` prompt."""

    name: ClassVar[AgentToolName] = AgentToolName.OPENCODE
    label: ClassVar[str] = "OpenCode"
    command: str = "opencode"

    def build_args(self, prompt: str) -> list[str]:
        return [self.command, "-p", prompt]


AgentTool = ClaudeCodeTool | OpenCodeTool

TOOL_ORDER: tuple[AgentToolName, ...] = (AgentToolName.CLAUDE_CODE, AgentToolName.OPENCODE)


def make_tool(name: AgentToolName | str, command: str | None = None) -> AgentTool:
    """Build the backend variant for ``name``, optionally overriding its executable."""
    name = AgentToolName(name)
    if name is AgentToolName.OPENCODE:
        return OpenCodeTool(command=command) if command else OpenCodeTool()
    return ClaudeCodeTool(command=command) if command else ClaudeCodeTool()


def next_tool_name(name: AgentToolName) -> AgentToolName:
    """Cycle through the supported backends."""
    index = TOOL_ORDER.index(name) if name in TOOL_ORDER else 0
    return TOOL_ORDER[(index + 1) % len(TOOL_ORDER)]


def format_elapsed(seconds: float) -> str:
    """Compact human duration: ``42s``, ``7m``, ``2h 15m``."""
    seconds = max(seconds, 0)
    if seconds < 60:
        return f"{int(seconds)}s"
    if seconds < 3600:
        return f"{int(seconds // 60)}m"
    return f"{int(seconds // 3600)}h {int((seconds % 3600) // 60)}m"


@dataclass
class AgentRecord:
    """A launched (or finished) assistant run against one captured request.

    Status and exit code are only written through :class:`AgentRegistry`,
    which serializes the background monitor against forced stops.
    """

    request_id: str
    prompt: str
    tool: AgentTool = field(default_factory=ClaudeCodeTool)
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    status: AgentStatus = AgentStatus.PENDING
    worktree_path: str | None = None
    pid: int | None = None
    created_at: float = field(default_factory=time.time)
    output_file: str | None = None
    branch_name: str | None = None  # only set for isolated worktree runs
    request_context: str = ""
    exit_code: int | None = None

    stop_requested: bool = field(default=False, repr=False)
    _process: subprocess.Popen | None = field(
        default=None, init=False, repr=False, compare=False
    )
    _registry: object | None = field(
        default=None, init=False, repr=False, compare=False
    )

    @property
    def isolated(self) -> bool:
        return self.branch_name is not None

    @property
    def tool_command(self) -> str:
        return self.tool.command

    @property
    def running(self) -> bool:
        return (
            self.status == AgentStatus.RUNNING
            and self.pid is not None
            and process_alive(self.pid)
        )

    @property
    def completed(self) -> bool:
        return self.status == AgentStatus.COMPLETED

    @property
    def failed(self) -> bool:
        return self.status == AgentStatus.FAILED

    @property
    def stopped(self) -> bool:
        return self.status == AgentStatus.STOPPED

    def duration(self, now: float | None = None) -> str:
        now = time.time() if now is None else now
        return format_elapsed(now - self.created_at)

    def short_prompt(self, max_length: int = 50) -> str:
        if not self.prompt:
            return ""
        if len(self.prompt) <= max_length:
            return self.prompt
        return f"{self.prompt[: max_length - 3]}..."

    def output(self) -> str:
        if not self.output_file:
            return ""
        path = Path(self.output_file)
        if not path.exists():
            return ""
        return path.read_text(errors="replace")

    def output_tail(self, lines: int = 50) -> str:
        if not self.output_file:
            return ""
        path = Path(self.output_file)
        if not path.exists():
            return ""
        with path.open(errors="replace") as f:
            tail = deque(f, maxlen=lines)
        return "".join(tail).strip()
