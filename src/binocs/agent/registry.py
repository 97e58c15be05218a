"""Agent registry: the lock-guarded collection of assistant runs."""

from __future__ import annotations

import logging
import threading
import time

from binocs.agent.record import AgentRecord, AgentStatus, AgentTool, can_transition

logger = logging.getLogger(__name__)


class AgentRegistry:
    """Ordered, thread-safe registry of agent records.

    One instance is constructed per process and handed to the orchestrator
    and the UI. Every mutation and enumeration holds the same lock;
    enumerations return copies so callers never iterate under it. Status
    writes from the background monitor and from forced stops also go
    through here, which is what keeps "stopped" sticky.
    """

    def __init__(self) -> None:
        self._agents: list[AgentRecord] = []
        self._lock = threading.Lock()

    # --- Membership ---

    def add(self, agent: AgentRecord) -> AgentRecord:
        """Register an agent. A record belongs to at most one registry."""
        if agent._registry is not None and agent._registry is not self:
            raise ValueError(f"Agent {agent.id} already belongs to another registry")
        with self._lock:
            if not any(a is agent for a in self._agents):
                self._agents.append(agent)
                agent._registry = self
        return agent

    def remove(self, agent: AgentRecord) -> bool:
        with self._lock:
            for i, existing in enumerate(self._agents):
                if existing is agent:
                    del self._agents[i]
                    agent._registry = None
                    return True
        return False

    def find(self, agent_id: str) -> AgentRecord | None:
        with self._lock:
            return next((a for a in self._agents if a.id == agent_id), None)

    def all(self) -> list[AgentRecord]:
        """Snapshot of every agent, in insertion order."""
        with self._lock:
            return list(self._agents)

    def running(self) -> list[AgentRecord]:
        return [a for a in self.all() if a.running]

    def for_request(self, request_id: str) -> list[AgentRecord]:
        """All agents ever launched for a request, most recent last."""
        return [a for a in self.all() if a.request_id == request_id]

    def latest_for_request(self, request_id: str) -> AgentRecord | None:
        agents = self.for_request(request_id)
        return agents[-1] if agents else None

    def count(self) -> int:
        with self._lock:
            return len(self._agents)

    def running_count(self) -> int:
        return len(self.running())

    def clear_completed(self) -> int:
        """Drop every agent in a terminal state. Returns how many were removed."""
        with self._lock:
            kept = [a for a in self._agents if not a.status.is_terminal]
            removed = len(self._agents) - len(kept)
            for agent in self._agents:
                if agent.status.is_terminal:
                    agent._registry = None
            self._agents = kept
        return removed

    def __len__(self) -> int:
        return self.count()

    def __contains__(self, agent: object) -> bool:
        with self._lock:
            return any(a is agent for a in self._agents)

    # --- Status writes ---

    def transition(
        self,
        agent: AgentRecord,
        status: AgentStatus,
        exit_code: int | None = None,
    ) -> bool:
        """Move ``agent`` to ``status`` if the lifecycle allows it."""
        with self._lock:
            if not can_transition(agent.status, status):
                logger.debug(
                    "Ignoring %s -> %s for agent %s", agent.status, status, agent.id
                )
                return False
            agent.status = status
            if exit_code is not None:
                agent.exit_code = exit_code
            return True

    def request_stop(self, agent: AgentRecord) -> bool:
        """Flag a running agent for a forced stop before any signal is sent."""
        with self._lock:
            if agent.status != AgentStatus.RUNNING:
                return False
            agent.stop_requested = True
            return True

    def mark_stopped(self, agent: AgentRecord) -> None:
        """Converge a stop-requested agent on ``stopped``."""
        with self._lock:
            if agent.status == AgentStatus.RUNNING:
                agent.status = AgentStatus.STOPPED

    def finish(self, agent: AgentRecord, exit_code: int | None) -> AgentStatus:
        """Record a natural process exit.

        A stop request (or an already ``stopped`` status) wins over the
        exit code; otherwise zero means ``completed`` and anything else
        ``failed``. ``None`` means the child was reaped elsewhere and its
        status is unknown, which counts as ``completed``.
        """
        with self._lock:
            if agent.status != AgentStatus.RUNNING:
                return agent.status
            if agent.stop_requested:
                agent.status = AgentStatus.STOPPED
                return agent.status
            agent.exit_code = exit_code
            if exit_code is None or exit_code == 0:
                agent.status = AgentStatus.COMPLETED
            else:
                agent.status = AgentStatus.FAILED
            return agent.status

    def reopen(self, agent: AgentRecord, prompt: str, tool: AgentTool) -> bool:
        """Start a new session on a finished agent, reusing its directory and log."""
        with self._lock:
            if not agent.status.is_terminal:
                return False
            agent.prompt = prompt
            agent.tool = tool
            agent.status = AgentStatus.PENDING
            agent.created_at = time.time()
            agent.exit_code = None
            agent.pid = None
            agent.stop_requested = False
            agent._process = None
            return True
