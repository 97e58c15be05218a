"""Agents view: every registered agent, newest first."""

from __future__ import annotations

from binocs.agent.record import AgentRecord, AgentStatus
from binocs.agent.registry import AgentRegistry
from binocs.agent.worktree import BRANCH_PREFIX
from binocs.tui import colors
from binocs.tui.text import fit, truncate
from binocs.tui.window import Window

HEADER = "STATUS     TOOL        PROMPT"
HINTS = "Enter:view output  d:delete  o:open folder  r:refresh  Esc:back"

STATUS_LABELS = {
    AgentStatus.PENDING: "PENDING",
    AgentStatus.RUNNING: "RUNNING",
    AgentStatus.COMPLETED: "DONE",
    AgentStatus.FAILED: "FAILED",
    AgentStatus.STOPPED: "STOPPED",
}

EMPTY_HELP = (
    "To launch an agent:",
    "1. View a request (Enter)",
    "2. Go to Agent tab (9)",
    "3. Press Enter to compose prompt",
)


def short_branch(branch: str | None) -> str:
    if not branch:
        return "-"
    return truncate(branch.removeprefix(BRANCH_PREFIX), 20)


class AgentsList(Window):
    def __init__(
        self,
        height: int,
        width: int,
        top: int = 0,
        left: int = 0,
        registry: AgentRegistry | None = None,
    ) -> None:
        super().__init__(height, width, top, left)
        self.registry = registry
        self.agents: list[AgentRecord] = []
        self.selected_index = 0
        self.scroll_offset = 0

    def load_agents(self) -> None:
        if self.registry is not None:
            self.agents = sorted(self.registry.all(), key=lambda a: a.created_at, reverse=True)
        self.selected_index = max(min(self.selected_index, len(self.agents) - 1), 0)
        self.adjust_scroll()

    def carry_state_from(self, other: AgentsList) -> None:
        self.agents = other.agents
        self.selected_index = other.selected_index
        self.scroll_offset = other.scroll_offset
        self.adjust_scroll()

    @property
    def selected_agent(self) -> AgentRecord | None:
        if 0 <= self.selected_index < len(self.agents):
            return self.agents[self.selected_index]
        return None

    @property
    def content_height(self) -> int:
        return max(self.height - 5, 1)

    @property
    def content_width(self) -> int:
        return max(self.width - 2, 0)

    def adjust_scroll(self) -> None:
        visible = self.content_height
        if self.selected_index < self.scroll_offset:
            self.scroll_offset = self.selected_index
        if self.selected_index >= self.scroll_offset + visible:
            self.scroll_offset = self.selected_index - visible + 1

    def move_up(self) -> None:
        if self.selected_index > 0:
            self.selected_index -= 1
            self.adjust_scroll()

    def move_down(self) -> None:
        if self.selected_index < len(self.agents) - 1:
            self.selected_index += 1
            self.adjust_scroll()

    def go_to_top(self) -> None:
        self.selected_index = 0
        self.scroll_offset = 0

    def go_to_bottom(self) -> None:
        self.selected_index = max(len(self.agents) - 1, 0)
        self.adjust_scroll()

    # --- Drawing ---

    @property
    def _prompt_width(self) -> int:
        return max(self.content_width - 55, 20)

    def draw(self) -> None:
        self.clear()
        running = sum(1 for a in self.agents if a.running)
        self.draw_box(f"Agents ({len(self.agents)} total, {running} running)")

        header = f"{HEADER.ljust(24 + self._prompt_width)}DURATION  BRANCH"
        self.write(1, 1, header[: self.content_width], colors.bold(colors.HEADER))
        self.hline(2)

        start_y = 3
        if not self.agents:
            self.write(start_y + 2, 2, "No agents running. Press 'Esc' to go back.", colors.MUTED)
            for i, line in enumerate(EMPTY_HELP):
                self.write(start_y + 4 + i, 2, line, colors.MUTED)
        else:
            for i in range(self.content_height):
                index = self.scroll_offset + i
                if index >= len(self.agents):
                    break
                self._draw_row(start_y + i, self.agents[index], index == self.selected_index)

        y = self.height - 2
        self.hline(y - 1)
        if len(HINTS) < self.content_width:
            self.write(y, self.content_width - len(HINTS), HINTS, colors.KEY_HINT)

    def _draw_row(self, y: int, agent: AgentRecord, selected: bool) -> None:
        if selected:
            self.fill(y, 1, self.content_width, colors.SELECTED)

        def pick(style: str) -> str:
            return colors.SELECTED if selected else style

        x = 1
        label = STATUS_LABELS.get(agent.status, str(agent.status).upper())
        self.write(y, x, label.ljust(10), colors.bold(pick(colors.agent_status_style(agent.status))))
        x += 11
        self.write(y, x, agent.tool.name.ljust(11), pick(colors.MUTED))
        x += 12
        width = self._prompt_width
        self.write(y, x, fit(agent.short_prompt(width), width), pick(colors.NORMAL))
        x += width + 2
        self.write(y, x, agent.duration().ljust(9), pick(colors.MUTED))
        x += 10
        self.write(y, x, short_branch(agent.branch_name), pick(colors.MUTED))
