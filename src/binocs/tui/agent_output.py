"""Scrollable viewer over one agent's log file.

Auto-follow keeps the view pinned to the last line while the file grows.
Scrolling up turns it off; reaching the bottom again turns it back on.
"""

from __future__ import annotations

import re

from binocs.agent.record import AgentRecord
from binocs.tui import colors
from binocs.tui.window import Window

HINTS = "j/k:scroll  g/G:top/bottom  r:refresh  q/Esc:back"

_LINE_STYLES: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"error|exception", re.IGNORECASE), colors.ERROR),
    (re.compile(r"warn", re.IGNORECASE), colors.STATUS_CLIENT_ERROR),
    (re.compile(r"success|completed", re.IGNORECASE), colors.STATUS_SUCCESS),
    (re.compile(r"^\+"), colors.STATUS_SUCCESS),
    (re.compile(r"^-"), colors.STATUS_SERVER_ERROR),
    (re.compile(r"^@@"), colors.STATUS_REDIRECT),
)


def line_color(line: str) -> str:
    for pattern, style in _LINE_STYLES:
        if pattern.search(line):
            return style
    return colors.NORMAL


class AgentOutput(Window):
    def __init__(self, height: int, width: int, top: int = 0, left: int = 0) -> None:
        super().__init__(height, width, top, left)
        self.agent: AgentRecord | None = None
        self.lines: list[str] = []
        self.scroll_offset = 0
        self.auto_scroll = True

    def set_agent(self, agent: AgentRecord | None) -> None:
        self.agent = agent
        self.lines = []
        self.scroll_offset = 0
        self.auto_scroll = True
        self.load_output()

    def carry_state_from(self, other: AgentOutput) -> None:
        self.agent = other.agent
        self.scroll_offset = other.scroll_offset
        self.auto_scroll = other.auto_scroll
        self.load_output()

    def load_output(self) -> None:
        """Re-read the log file. Follows the tail when auto-follow is on."""
        if self.agent is None:
            return
        self.lines = self.agent.output().splitlines()
        if self.auto_scroll:
            self.scroll_offset = self.max_scroll
        else:
            self.scroll_offset = min(self.scroll_offset, self.max_scroll)

    @property
    def content_height(self) -> int:
        return max(self.height - 4, 1)

    @property
    def content_width(self) -> int:
        return max(self.width - 4, 0)

    @property
    def max_scroll(self) -> int:
        return max(len(self.lines) - self.content_height, 0)

    def scroll_up(self) -> None:
        self.auto_scroll = False
        self.scroll_offset = max(self.scroll_offset - 1, 0)

    def scroll_down(self) -> None:
        self.scroll_offset = min(self.scroll_offset + 1, self.max_scroll)
        self.auto_scroll = self.scroll_offset == self.max_scroll

    def page_up(self) -> None:
        self.auto_scroll = False
        self.scroll_offset = max(self.scroll_offset - self.content_height, 0)

    def page_down(self) -> None:
        self.scroll_offset = min(self.scroll_offset + self.content_height, self.max_scroll)
        self.auto_scroll = self.scroll_offset == self.max_scroll

    def go_to_top(self) -> None:
        self.auto_scroll = False
        self.scroll_offset = 0

    def go_to_bottom(self) -> None:
        self.scroll_offset = self.max_scroll
        self.auto_scroll = True

    def draw(self) -> None:
        self.clear()
        if self.agent is None:
            self.draw_box("Agent Output")
            return
        self.draw_box(f"Agent Output [{self.agent.tool.name}] - {self.agent.status.upper()}")

        if not self.lines:
            self.write(3, 2, "No output yet...", colors.MUTED)
            if self.agent.running:
                self.write(4, 2, "Agent is running, waiting for output.", colors.MUTED)
        else:
            for i in range(self.content_height):
                index = self.scroll_offset + i
                if index >= len(self.lines):
                    break
                line = self.lines[index]
                shown = line if len(line) <= self.content_width else line[: self.content_width - 1] + "…"
                self.write(1 + i, 2, shown, line_color(line))

        y = self.height - 2
        self.hline(y - 1)
        total = len(self.lines)
        last = min(self.scroll_offset + self.content_height, total)
        info = f"Lines {self.scroll_offset + 1}-{last} of {total}"
        if self.auto_scroll:
            info += " [AUTO-SCROLL]"
        self.write(y, 2, info, colors.MUTED)
        self.write(y, max(self.width - len(HINTS) - 2, 1), HINTS, colors.KEY_HINT)
