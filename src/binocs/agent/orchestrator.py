"""Agent orchestrator: launches, continues, stops and cleans up assistant runs.

Every step of a run is appended, timestamped, to the agent's own log file.
The same file receives the assistant's stdout and stderr, so it is both the
audit trail and the live output source for the UI.
"""

from __future__ import annotations

import logging
import re
import shutil
import subprocess
import sys
import threading
import time
from pathlib import Path
from typing import TYPE_CHECKING

from binocs.agent.context import build_context
from binocs.agent.process import terminate_process_group
from binocs.agent.record import (
    AgentRecord,
    AgentStatus,
    AgentTool,
    AgentToolName,
    make_tool,
)
from binocs.agent.registry import AgentRegistry
from binocs.agent.worktree import (
    WorktreeError,
    branch_for,
    create_worktree,
    current_branch_name,
    delete_branch,
    find_git_root,
    remove_worktree,
)
from binocs.store.base import RequestRecord

if TYPE_CHECKING:
    from binocs.config import AgentConfig

logger = logging.getLogger(__name__)

CONTEXT_FILE = ".binocs-context.md"
PROMPT_FILE = ".binocs-prompt.md"

_RULE = "=" * 60
_OUTPUT_RULE = "-" * 60
_SLUG_MAX = 25


def generate_slug(prompt: str | None) -> str:
    """First four words of ``prompt``, lower-cased, alphanumeric, dash-joined."""
    if not prompt:
        return "task"
    words = re.sub(r"[^a-z0-9\s]", "", prompt.lower()).split()[:4]
    slug = "-".join(words)[:_SLUG_MAX]
    return slug or "task"


def build_full_prompt(agent: AgentRecord) -> str:
    """The request context followed by the user's task text."""
    return (
        "# Request Context\n\n"
        "The following is context from an HTTP request that was captured by Binocs.\n"
        "Use this information to understand the issue and implement a fix.\n\n"
        f"{agent.request_context}\n\n"
        "---\n\n"
        "# Task\n\n"
        f"{agent.prompt}\n\n"
        "---\n\n"
        f"Note: The request context is also saved in `{CONTEXT_FILE}` for reference.\n"
    )


def _stamp(message: str) -> str:
    return f"[{time.strftime('%H:%M:%S')}] {message}"


class AgentOrchestrator:
    """Spawns external coding assistants against captured requests.

    Agents are registered in ``registry``; status changes from the
    per-process monitor thread and from :meth:`stop` both go through it.
    """

    def __init__(
        self,
        registry: AgentRegistry,
        config: AgentConfig | None = None,
        repo_root: str | Path | None = None,
    ) -> None:
        if config is None:
            from binocs.config import AgentConfig

            config = AgentConfig()
        self.registry = registry
        self.config = config
        self.repo_root = Path(repo_root).resolve() if repo_root else find_git_root()

    # --- Paths and tools ---

    @property
    def base_dir(self) -> Path:
        """Directory for agent logs and worktrees."""
        base = Path(self.config.worktree_base).expanduser()
        if not base.is_absolute():
            base = self.repo_root / base
        return base.resolve()

    def tool_for(self, name: AgentToolName | str | None = None) -> AgentTool:
        """Backend variant for ``name`` (default: configured tool) with its executable."""
        name = AgentToolName(name or self.config.tool)
        command = (
            self.config.opencode_command
            if name is AgentToolName.OPENCODE
            else self.config.claude_command
        )
        return make_tool(name, command)

    def _resolve_tool(self, tool: AgentTool | AgentToolName | str | None) -> AgentTool:
        if tool is None or isinstance(tool, (str, AgentToolName)):
            return self.tool_for(tool)
        return tool

    # --- Log file ---

    def _log(self, agent: AgentRecord, message: str = "") -> None:
        if not agent.output_file:
            return
        try:
            with open(agent.output_file, "a") as f:
                f.write(message + "\n")
        except OSError as e:
            logger.warning("Cannot write agent log %s: %s", agent.output_file, e)

    # --- Launch ---

    def launch(
        self,
        request: RequestRecord,
        prompt: str,
        tool: AgentTool | AgentToolName | str | None = None,
        use_worktree: bool = False,
        branch_name: str | None = None,
    ) -> AgentRecord:
        """Start an assistant on ``request``.

        With ``use_worktree`` the run happens in a new ``agent/<name>`` branch
        checked out under :attr:`base_dir`; otherwise it runs in the
        repository root on the current branch.

        Raises:
            WorktreeError: the isolated working copy could not be created.
                Nothing is registered in that case.

        Other failures are absorbed: the agent is registered as failed.
        """
        tool = self._resolve_tool(tool)
        agent = AgentRecord(
            request_id=request.id,
            prompt=prompt,
            tool=tool,
            request_context=build_context(request),
        )

        base = self.base_dir
        try:
            base.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            if use_worktree:
                logger.error("Agent launch aborted: cannot create %s: %s", base, e)
                raise WorktreeError(f"Cannot create worktree base {base}", str(e)) from e
            # no log file without a base directory; the failure shows as status only
            agent.worktree_path = str(self.repo_root)
            self.registry.add(agent)
            self._fail(agent, f"Cannot create agent directory {base}: {e}")
            return agent
        log_name = f"{time.strftime('%m%d-%H%M%S')}-{generate_slug(prompt)}"
        agent.output_file = str(base / f"{log_name}.log")

        self._log(agent, _RULE)
        self._log(agent, "Binocs Agent Started")
        self._log(agent, f"Time: {time.strftime('%Y-%m-%d %H:%M:%S %z')}")
        self._log(agent, f"Tool: {tool.label}")
        self._log(agent, f"Mode: {'New Worktree' if use_worktree else 'Current Branch'}")
        self._log(agent, _RULE)
        self._log(agent)

        if use_worktree:
            worktree_name = branch_name or log_name
            path = base / worktree_name
            branch = branch_for(worktree_name)
            self._log(agent, _stamp("Creating git worktree..."))
            try:
                output = create_worktree(self.repo_root, path, branch)
            except WorktreeError as e:
                self._log(agent, "[ERROR] Git worktree creation failed:")
                self._log(agent, e.output.rstrip())
                logger.error("Agent launch aborted: %s", e)
                raise
            if output.strip():
                self._log(agent, output.rstrip())
            agent.worktree_path = str(path)
            agent.branch_name = branch
            self._log(agent, _stamp(f"Worktree created: {path}"))
            self._log(agent, _stamp(f"Branch: {branch}"))
        else:
            agent.worktree_path = str(self.repo_root)
            current = current_branch_name(self.repo_root)
            self._log(agent, _stamp(f"Running on current branch: {current}"))
            self._log(agent, _stamp(f"Directory: {agent.worktree_path}"))
        self._log(agent)

        self.registry.add(agent)
        logger.info("Launching agent %s for request %s", agent.id, request.id)
        self._spawn(agent)
        return agent

    def continue_session(
        self,
        agent: AgentRecord,
        prompt: str,
        tool: AgentTool | AgentToolName | str | None = None,
    ) -> AgentRecord:
        """Run a new prompt in a finished agent's directory, appending to its log.

        Raises:
            ValueError: the agent has not reached a terminal state yet.
        """
        tool = agent.tool if tool is None else self._resolve_tool(tool)
        if not self.registry.reopen(agent, prompt, tool):
            raise ValueError(f"Agent {agent.id} is still {agent.status}")
        self.registry.add(agent)

        self._log(agent)
        self._log(agent, _RULE)
        self._log(agent, "Continuing Session")
        self._log(agent, f"Time: {time.strftime('%Y-%m-%d %H:%M:%S %z')}")
        self._log(agent, f"Tool: {tool.label}")
        self._log(agent, _RULE)
        self._log(agent)
        self._log(agent, _stamp(f"Continuing in: {agent.worktree_path}"))
        self._log(agent, _stamp(f"New prompt: {agent.short_prompt(50)}"))
        self._log(agent)

        logger.info("Continuing agent %s", agent.id)
        self._spawn(agent)
        return agent

    def _spawn(self, agent: AgentRecord) -> None:
        """Write the sidecar files, start the process and its monitor."""
        workdir = Path(agent.worktree_path or "")
        if not agent.worktree_path or not workdir.is_dir():
            self._fail(agent, f"Working directory does not exist: {agent.worktree_path}")
            return

        full_prompt = build_full_prompt(agent)
        try:
            (workdir / CONTEXT_FILE).write_text(agent.request_context)
            self._log(agent, _stamp(f"Context file written: {CONTEXT_FILE}"))
            (workdir / PROMPT_FILE).write_text(full_prompt)
        except OSError as e:
            self._fail(agent, f"Cannot write prompt files: {e}")
            return

        self._log(agent, _stamp(f"Starting {agent.tool_command}..."))
        self._log(agent)
        self._log(agent, _OUTPUT_RULE)
        self._log(agent, "Agent Output:")
        self._log(agent, _OUTPUT_RULE)
        self._log(agent)

        try:
            with open(agent.output_file, "ab") as out:
                proc = subprocess.Popen(
                    agent.tool.build_args(full_prompt),
                    cwd=str(workdir),
                    stdin=subprocess.DEVNULL,
                    stdout=out,
                    stderr=subprocess.STDOUT,
                    start_new_session=True,  # own process group for stop()
                )
        except OSError as e:
            self._fail(agent, f"Failed to start {agent.tool_command}: {e}")
            return

        agent._process = proc
        agent.pid = proc.pid
        self.registry.transition(agent, AgentStatus.RUNNING)

        monitor = threading.Thread(
            target=self._monitor,
            args=(agent, proc),
            name=f"binocs-agent-{agent.id}",
            daemon=True,
        )
        monitor.start()

    def _fail(self, agent: AgentRecord, message: str) -> None:
        self._log(agent, f"[ERROR] {message}")
        logger.warning("Agent %s failed: %s", agent.id, message)
        self.registry.transition(agent, AgentStatus.FAILED)

    def _monitor(self, agent: AgentRecord, proc: subprocess.Popen) -> None:
        """Block until ``proc`` exits, then record the outcome."""
        try:
            exit_code: int | None = proc.wait()
        except ChildProcessError:
            exit_code = None
        status = self.registry.finish(agent, exit_code)
        self._log(agent)
        self._log(agent, _stamp(f"Agent {status} (exit code: {exit_code})"))
        logger.info("Agent %s finished: %s (exit=%s)", agent.id, status, exit_code)

    # --- Stop / cleanup ---

    def stop(self, agent: AgentRecord) -> bool:
        """Force a running agent to ``stopped``. A no-op for anything else."""
        if not agent.running or agent.pid is None:
            return False
        if not self.registry.request_stop(agent):
            return False
        terminate_process_group(
            agent.pid, grace_period=self.config.stop_grace_period, proc=agent._process
        )
        self.registry.mark_stopped(agent)
        self._log(agent)
        self._log(agent, _stamp("Agent stopped by user"))
        logger.info("Stopped agent %s", agent.id)
        return True

    def cleanup(self, agent: AgentRecord) -> None:
        """Stop, remove the isolated worktree and branch, and unregister.

        Best effort: git failures are logged, never raised. Safe to repeat.
        """
        if agent.running:
            self.stop(agent)

        if agent.isolated and agent.worktree_path and Path(agent.worktree_path).exists():
            ok, output = remove_worktree(self.repo_root, agent.worktree_path)
            if not ok:
                self._log(agent, f"[WARN] git worktree remove failed: {output.strip()}")
            if agent.branch_name:
                ok, output = delete_branch(self.repo_root, agent.branch_name)
                if not ok:
                    self._log(agent, f"[WARN] git branch -D failed: {output.strip()}")

        if self.registry.remove(agent):
            logger.info("Cleaned up agent %s", agent.id)

    def open_worktree(self, agent: AgentRecord) -> bool:
        """Open the agent's directory in the desktop file manager."""
        if not agent.worktree_path or not Path(agent.worktree_path).is_dir():
            return False
        opener = "open" if sys.platform == "darwin" else "xdg-open"
        if shutil.which(opener) is None:
            return False
        try:
            subprocess.Popen(
                [opener, agent.worktree_path],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            logger.warning("Cannot open %s: %s", agent.worktree_path, e)
            return False
        return True
