"""Request list: the filterable browser of captured requests."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from binocs.agent.registry import AgentRegistry
from binocs.store.base import RequestFilters, RequestRecord, RequestStore
from binocs.tui import colors
from binocs.tui.text import fit, truncate
from binocs.tui.window import Window

HINTS = "j/k:nav  Enter:view  /:search  f:filter  a:agents  r:refresh  ?:help  q:quit"


class RequestList(Window):
    """Newest-first page of records with a selection kept on screen.

    After every operation ``0 <= selected_index < max(1, len(requests))``
    and the selection lies inside the visible rows.
    """

    def __init__(
        self,
        height: int,
        width: int,
        top: int = 0,
        left: int = 0,
        store: RequestStore | None = None,
        registry: AgentRegistry | None = None,
        limit: int = 500,
    ) -> None:
        super().__init__(height, width, top, left)
        self.store = store
        self.registry = registry
        self.limit = limit
        self.requests: list[RequestRecord] = []
        self.selected_index = 0
        self.scroll_offset = 0
        self.filters = RequestFilters()

    # --- Data ---

    @property
    def search_query(self) -> str | None:
        return self.filters.search

    @property
    def selected_request(self) -> RequestRecord | None:
        if 0 <= self.selected_index < len(self.requests):
            return self.requests[self.selected_index]
        return None

    def load_requests(self) -> None:
        if self.store is not None:
            self.requests = self.store.query(self.filters, limit=self.limit)
        self.clamp_selection()

    def set_filter(self, key: str, value: object) -> None:
        """Set one filter field; ``None`` or ``""`` clears it."""
        if value == "":
            value = None
        self.filters = replace(self.filters, **{key: value})
        self.load_requests()

    def set_filters(self, filters: RequestFilters) -> None:
        self.filters = replace(filters, search=self.filters.search)
        self.load_requests()

    def set_search(self, query: str | None) -> None:
        query = query.strip() if query else ""
        self.filters = replace(self.filters, search=query or None)
        self.selected_index = 0
        self.scroll_offset = 0
        self.load_requests()

    def clear_filters(self) -> None:
        self.filters = RequestFilters()
        self.selected_index = 0
        self.scroll_offset = 0
        self.load_requests()

    def carry_state_from(self, other: RequestList) -> None:
        """Take over selection, scroll, filters and data from a replaced panel."""
        self.requests = other.requests
        self.selected_index = other.selected_index
        self.scroll_offset = other.scroll_offset
        self.filters = other.filters
        self.clamp_selection()

    # --- Navigation ---

    @property
    def content_height(self) -> int:
        return max(self.height - 5, 1)

    @property
    def content_width(self) -> int:
        return max(self.width - 2, 0)

    def clamp_selection(self) -> None:
        self.selected_index = max(min(self.selected_index, len(self.requests) - 1), 0)
        self.adjust_scroll()

    def adjust_scroll(self) -> None:
        visible = self.content_height
        if self.selected_index < self.scroll_offset:
            self.scroll_offset = self.selected_index
        if self.selected_index >= self.scroll_offset + visible:
            self.scroll_offset = self.selected_index - visible + 1
        self.scroll_offset = max(self.scroll_offset, 0)

    def move_up(self) -> None:
        if self.selected_index > 0:
            self.selected_index -= 1
            self.adjust_scroll()

    def move_down(self) -> None:
        if self.selected_index < len(self.requests) - 1:
            self.selected_index += 1
            self.adjust_scroll()

    def go_to_top(self) -> None:
        self.selected_index = 0
        self.scroll_offset = 0

    def go_to_bottom(self) -> None:
        self.selected_index = max(len(self.requests) - 1, 0)
        self.adjust_scroll()

    def page_up(self) -> None:
        self.selected_index = max(self.selected_index - self.content_height, 0)
        self.adjust_scroll()

    def page_down(self) -> None:
        self.selected_index = max(
            min(self.selected_index + self.content_height, len(self.requests) - 1), 0
        )
        self.adjust_scroll()

    # --- Drawing ---

    def draw(self, now: datetime | None = None) -> None:
        self.clear()
        self.draw_box(f"Requests ({len(self.requests)})")
        self._draw_header()
        self._draw_rows(now)
        self._draw_status_bar()

    @property
    def _path_width(self) -> int:
        return max(self.content_width - 65, 15)

    def _draw_header(self) -> None:
        path_width = self._path_width
        header = (
            f"AI METHOD  STATUS {'PATH'.ljust(path_width)} "
            f"{'CONTROLLER'.ljust(25)} DURATION  TIME"
        )
        self.write(1, 1, header[: self.content_width], colors.bold(colors.HEADER))
        self.hline(2)

    def _draw_rows(self, now: datetime | None) -> None:
        start_y = 3
        if not self.requests:
            message = (
                "No requests captured yet"
                if self.filters.is_empty()
                else "No requests match the current filters"
            )
            self.write(start_y + 1, 2, message, colors.MUTED)
            return
        for i in range(self.content_height):
            index = self.scroll_offset + i
            if index >= len(self.requests):
                break
            self._draw_row(start_y + i, self.requests[index], index == self.selected_index, now)

    def _draw_row(
        self, y: int, request: RequestRecord, selected: bool, now: datetime | None
    ) -> None:
        if selected:
            self.fill(y, 1, self.content_width, colors.SELECTED)

        def pick(style: str) -> str:
            return colors.SELECTED if selected else style

        x = 1
        agents = self.registry.for_request(request.id) if self.registry else []
        if agents:
            running = any(a.running for a in agents)
            self.write(
                y, x, "●" if running else "○",
                pick(colors.bold(colors.STATUS_SUCCESS) if running else colors.MUTED),
            )
        x += 3

        self.write(y, x, request.method.upper().ljust(7), pick(colors.bold(colors.method_style(request.method))))
        x += 8

        status = str(request.status_code) if request.status_code is not None else "???"
        self.write(y, x, status.ljust(6), pick(colors.status_style(request.status_code)))
        x += 7

        path_width = self._path_width
        self.write(y, x, fit(request.path, path_width), pick(colors.NORMAL))
        x += path_width + 1

        self.write(y, x, fit(request.controller_action or "-", 25), pick(colors.MUTED))
        x += 26

        self.write(y, x, request.formatted_duration.ljust(8), pick(colors.NORMAL))
        x += 9

        self.write(y, x, request.time_ago(now), pick(colors.MUTED))

        if request.has_exception:
            self.write(y, self.content_width - 2, "!", pick(colors.bold(colors.ERROR)))

    def _draw_status_bar(self) -> None:
        y = self.height - 2
        self.hline(y - 1)
        parts = []
        if self.filters.method:
            parts.append(f"method:{self.filters.method}")
        if self.filters.status:
            parts.append(f"status:{self.filters.status}")
        if self.filters.has_exception:
            parts.append("errors")
        if self.filters.search:
            parts.append(f'search:"{self.filters.search}"')
        if parts:
            self.write(y, 1, truncate(f"Filters: {', '.join(parts)}", self.content_width // 2), colors.MUTED)
        if len(HINTS) < self.content_width:
            self.write(y, self.content_width - len(HINTS), HINTS, colors.KEY_HINT)

