"""Application controller: the modal state machine behind the inspector.

The controller knows nothing about terminals. The host feeds it normalized
key names (:mod:`binocs.tui.keys`) and a periodic :meth:`AppController.tick`,
then paints whatever :meth:`AppController.render` returns.
"""

from __future__ import annotations

import enum
import logging
import time
from datetime import datetime
from typing import Callable

from binocs.agent.orchestrator import AgentOrchestrator
from binocs.agent.record import AgentToolName
from binocs.agent.registry import AgentRegistry
from binocs.config import TUIConfig
from binocs.openapi.client import SpecClient
from binocs.store.base import RequestStore
from binocs.tui import colors, keys
from binocs.tui.agent_output import AgentOutput
from binocs.tui.agents_list import AgentsList
from binocs.tui.filter_menu import FilterMenu
from binocs.tui.help_screen import HelpScreen
from binocs.tui.request_detail import AGENT_TAB, RequestDetail
from binocs.tui.request_list import RequestList
from binocs.tui.spirit_animal import SpiritAnimal
from binocs.tui.text_input import LineEditor
from binocs.tui.window import Canvas, Window

logger = logging.getLogger(__name__)

MIN_LIST_WIDTH = 40

Geometry = tuple[int, int, int, int]


class Mode(enum.StrEnum):
    LIST = "list"
    DETAIL = "detail"
    HELP = "help"
    FILTER = "filter"
    SEARCH = "search"
    AGENTS = "agents"
    AGENT_OUTPUT = "agent_output"
    SPIRIT = "spirit"


OVERLAYS = frozenset({Mode.HELP, Mode.FILTER, Mode.SPIRIT})
AUTO_REFRESH_MODES = frozenset({Mode.LIST, Mode.AGENTS, Mode.AGENT_OUTPUT})


def centered(height: int, width: int, max_height: int, max_width: int) -> Geometry:
    """Geometry of a ``max_height`` x ``max_width`` box clamped to and centered in the screen."""
    h = max(min(max_height, height), 0)
    w = max(min(max_width, width), 0)
    return h, w, (height - h) // 2, (width - w) // 2


class AppController:
    """Owns every panel and routes keys according to the current :class:`Mode`."""

    def __init__(
        self,
        store: RequestStore,
        orchestrator: AgentOrchestrator | None = None,
        spec_client: SpecClient | None = None,
        config: TUIConfig | None = None,
        height: int = 24,
        width: int = 80,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.store = store
        self.orchestrator = orchestrator
        self.registry: AgentRegistry | None = orchestrator.registry if orchestrator else None
        self.spec_client = spec_client
        self.config = config or TUIConfig()
        self.clock = clock
        self.default_tool = (
            AgentToolName(orchestrator.config.tool) if orchestrator else AgentToolName.CLAUDE_CODE
        )

        self.height = height
        self.width = width
        self.mode = Mode.LIST
        self.previous_mode: Mode | None = None
        self.agents_return_mode = Mode.LIST
        self.running = True
        self.search = LineEditor()

        self.last_refresh = clock()
        self._input_since_tick = False
        self._agent_tab_live = False

        self.list_window: RequestList | None = None
        self.detail_window: RequestDetail | None = None
        self.agents_window: AgentsList | None = None
        self.output_window: AgentOutput | None = None
        self.help_window: HelpScreen | None = None
        self.filter_window: FilterMenu | None = None
        self.spirit_window: SpiritAnimal | None = None
        self.recalculate_layout()
        self.request_list.load_requests()

    # --- Panels ---

    @property
    def request_list(self) -> RequestList:
        assert self.list_window is not None
        return self.list_window

    @property
    def request_detail(self) -> RequestDetail:
        assert self.detail_window is not None
        return self.detail_window

    @property
    def agents_list(self) -> AgentsList:
        assert self.agents_window is not None
        return self.agents_window

    @property
    def agent_output(self) -> AgentOutput:
        assert self.output_window is not None
        return self.output_window

    @property
    def base_mode(self) -> Mode:
        """The mode drawn underneath the active overlay (or the mode itself)."""
        if self.mode in OVERLAYS:
            return self.previous_mode or Mode.LIST
        return self.mode

    def _split(self) -> tuple[Geometry, Geometry]:
        list_width = min(max(self.width // 3, MIN_LIST_WIDTH), self.width)
        return (
            (self.height, list_width, 0, 0),
            (self.height, self.width - list_width, 0, list_width),
        )

    def recalculate_layout(self) -> None:
        """Recompute panel geometry for the current mode and terminal size.

        A panel whose geometry changes is replaced by a new one that takes
        over the old panel's state.
        """
        full: Geometry = (self.height, self.width, 0, 0)
        split_list, split_detail = self._split()
        list_geometry = split_list if self.base_mode == Mode.DETAIL else full

        self.list_window = self._fit(
            self.list_window,
            list_geometry,
            lambda *geometry: RequestList(
                *geometry, store=self.store, registry=self.registry,
                limit=self.config.max_requests,
            ),
        )
        self.detail_window = self._fit(
            self.detail_window,
            split_detail,
            lambda *geometry: RequestDetail(
                *geometry, orchestrator=self.orchestrator, spec_client=self.spec_client,
                default_tool=self.default_tool,
            ),
        )
        self.agents_window = self._fit(
            self.agents_window, full, lambda *geometry: AgentsList(*geometry, registry=self.registry)
        )
        self.output_window = self._fit(self.output_window, full, AgentOutput)

        if self.mode == Mode.HELP:
            geometry = centered(
                self.height, self.width,
                min(HelpScreen.preferred_height(), self.height - 4), min(HelpScreen.WIDTH, self.width - 4),
            )
            if self.help_window is None or self.help_window.geometry != geometry:
                self.help_window = HelpScreen(*geometry)
        else:
            self.help_window = None

        if self.mode == Mode.FILTER:
            geometry = centered(
                self.height, self.width, min(20, self.height - 4), min(40, self.width // 2)
            )
            self.filter_window = self._fit(self.filter_window, geometry, FilterMenu)
        else:
            self.filter_window = None

        if self.mode == Mode.SPIRIT:
            geometry = centered(
                self.height, self.width,
                min(SpiritAnimal.HEIGHT, self.height - 2), min(SpiritAnimal.WIDTH, self.width - 2),
            )
            self.spirit_window = self._fit(self.spirit_window, geometry, SpiritAnimal)
        else:
            self.spirit_window = None

    @staticmethod
    def _fit(window, geometry: Geometry, factory):
        if window is not None and window.geometry == geometry:
            return window
        replacement = factory(*geometry)
        if window is not None:
            replacement.carry_state_from(window)
        return replacement

    def resize(self, height: int, width: int) -> None:
        if (height, width) == (self.height, self.width):
            return
        self.height = height
        self.width = width
        self.recalculate_layout()

    # --- Mode changes ---

    def _set_mode(self, mode: Mode) -> None:
        self.mode = mode
        self.recalculate_layout()

    def _open_overlay(self, mode: Mode) -> None:
        if self.mode in OVERLAYS:
            return
        self.previous_mode = self.mode
        self._set_mode(mode)

    def _close_overlay(self) -> None:
        self._set_mode(self.previous_mode or Mode.LIST)

    def enter_detail(self) -> None:
        if self.request_list.selected_request is None:
            return
        self._set_mode(Mode.DETAIL)
        self.request_list.load_requests()
        self.request_detail.set_request(self.request_list.selected_request)

    def exit_detail(self) -> None:
        self._set_mode(Mode.LIST)
        self.request_list.load_requests()
        self.last_refresh = self.clock()

    def enter_search(self) -> None:
        self.search.set(self.request_list.search_query or "")
        self._set_mode(Mode.SEARCH)

    def exit_search(self, apply: bool) -> None:
        if apply:
            self.request_list.set_search(self.search.text)
            self.last_refresh = self.clock()
        self.search.clear()
        self._set_mode(Mode.LIST)

    def enter_filter(self) -> None:
        if self.mode in OVERLAYS:
            return
        self._open_overlay(Mode.FILTER)
        assert self.filter_window is not None
        self.filter_window.set_filters(self.request_list.filters)

    def apply_filters(self) -> None:
        assert self.filter_window is not None
        self.request_list.set_filters(self.filter_window.selected_filters)
        self.last_refresh = self.clock()

    def enter_spirit(self) -> None:
        request = self.request_list.selected_request
        if request is None:
            return
        self._open_overlay(Mode.SPIRIT)
        assert self.spirit_window is not None
        self.spirit_window.set_request(request)

    def enter_agents(self) -> None:
        if self.mode not in (Mode.AGENTS, Mode.AGENT_OUTPUT):
            self.agents_return_mode = self.mode
        self._set_mode(Mode.AGENTS)
        self.agents_list.load_agents()
        self.last_refresh = self.clock()

    def exit_agents(self) -> None:
        self._set_mode(self.agents_return_mode)
        if self.mode == Mode.DETAIL:
            self.request_detail.build_content()
        else:
            self.request_list.load_requests()

    def enter_agent_output(self) -> None:
        agent = self.agents_list.selected_agent
        if agent is None:
            return
        self._set_mode(Mode.AGENT_OUTPUT)
        self.agent_output.set_agent(agent)
        self.last_refresh = self.clock()

    def exit_agent_output(self) -> None:
        self._set_mode(Mode.AGENTS)
        self.agents_list.load_agents()

    # --- Actions ---

    def delete_selected_request(self) -> None:
        request = self.request_list.selected_request
        if request is None:
            return
        self.store.delete(request.id)
        self.request_list.load_requests()

    def delete_all_requests(self) -> None:
        count = self.store.delete_all()
        if count:
            logger.info("Deleted %d requests", count)
        self.request_list.load_requests()

    def show_request(self, step: int) -> None:
        """Move the list selection and show the new request, keeping the tab."""
        if step > 0:
            self.request_list.move_down()
        else:
            self.request_list.move_up()
        request = self.request_list.selected_request
        if request is not None:
            self.request_detail.set_request(request, reset_tab=False)

    def open_docs(self) -> None:
        url = self.request_detail.docs_url()
        if url is None:
            logger.info("No documented operation for this request")
        elif self.request_detail.open_docs():
            logger.info("Opened %s", url)

    def copy_tab(self) -> None:
        if self.request_detail.copy_tab():
            logger.info("Copied %s tab to clipboard", self.request_detail.tab_name)
        else:
            logger.warning("No clipboard tool available (pbcopy, xclip or xsel)")

    def cleanup_selected_agent(self) -> None:
        agent = self.agents_list.selected_agent
        if agent is None or self.orchestrator is None:
            return
        self.orchestrator.cleanup(agent)
        self.agents_list.load_agents()

    def open_agent_folder(self) -> None:
        agent = self.agents_list.selected_agent
        if agent is None or self.orchestrator is None:
            return
        if not self.orchestrator.open_worktree(agent):
            logger.warning("Cannot open %s", agent.worktree_path)

    def reload(self) -> None:
        if self.mode == Mode.AGENTS:
            self.agents_list.load_agents()
        elif self.mode == Mode.AGENT_OUTPUT:
            self.agent_output.load_output()
        else:
            self.request_list.load_requests()
        self.last_refresh = self.clock()

    # --- Input ---

    def handle_key(self, key: str) -> None:
        self._input_since_tick = True
        handler = {
            Mode.LIST: self._handle_list_key,
            Mode.DETAIL: self._handle_detail_key,
            Mode.HELP: self._handle_help_key,
            Mode.FILTER: self._handle_filter_key,
            Mode.SEARCH: self._handle_search_key,
            Mode.AGENTS: self._handle_agents_key,
            Mode.AGENT_OUTPUT: self._handle_output_key,
            Mode.SPIRIT: self._handle_spirit_key,
        }[self.mode]
        handler(key)

    def _handle_list_key(self, key: str) -> None:
        match key:
            case "q" | "Q":
                self.running = False
            case "j" | keys.DOWN:
                self.request_list.move_down()
            case "k" | keys.UP:
                self.request_list.move_up()
            case "g" | keys.HOME:
                self.request_list.go_to_top()
            case "G" | keys.END:
                self.request_list.go_to_bottom()
            case keys.PAGE_DOWN | keys.CTRL_D:
                self.request_list.page_down()
            case keys.PAGE_UP | keys.CTRL_U:
                self.request_list.page_up()
            case keys.ENTER | "l":
                self.enter_detail()
            case "/":
                self.enter_search()
            case "f":
                self.enter_filter()
            case "c":
                self.request_list.clear_filters()
                self.last_refresh = self.clock()
            case "r":
                self.reload()
            case "?":
                self._open_overlay(Mode.HELP)
            case "d":
                self.delete_selected_request()
            case "D":
                self.delete_all_requests()
            case "a" | "A":
                self.enter_agents()
            case "S":
                self.enter_spirit()

    def _handle_detail_key(self, key: str) -> None:
        detail = self.request_detail
        if detail.handle_agent_key(key):
            return
        match key:
            case "q" | "Q":
                self.running = False
            case "h" | keys.LEFT | keys.ESCAPE:
                self.exit_detail()
            case "j" | keys.DOWN:
                detail.scroll_down()
            case "k" | keys.UP:
                detail.scroll_up()
            case keys.PAGE_DOWN | keys.CTRL_D:
                detail.page_down()
            case keys.PAGE_UP | keys.CTRL_U:
                detail.page_up()
            case keys.TAB | "]" | "L":
                detail.next_tab()
            case keys.SHIFT_TAB | "[" | "H":
                detail.prev_tab()
            case "1" | "2" | "3" | "4" | "5" | "6" | "7" | "8":
                detail.go_to_tab(int(key) - 1)
            case "9" | "a":
                detail.go_to_tab(AGENT_TAB)
            case "n" | "J":
                self.show_request(1)
            case "p" | "K":
                self.show_request(-1)
            case "o" | "O":
                self.open_docs()
            case "y":
                self.copy_tab()
            case "A":
                self.enter_agents()
            case "?":
                self._open_overlay(Mode.HELP)
            case "f":
                self.enter_filter()

    def _handle_help_key(self, key: str) -> None:
        if key in ("?", keys.ESCAPE, "q", keys.ENTER, "h"):
            self._close_overlay()

    def _handle_filter_key(self, key: str) -> None:
        menu = self.filter_window
        assert menu is not None
        match key:
            case keys.ESCAPE | "q":
                if menu.back():
                    self.apply_filters()
                    self._close_overlay()
            case "j" | keys.DOWN:
                menu.move_down()
            case "k" | keys.UP:
                menu.move_up()
            case keys.ENTER:
                menu.select()
            case "c":
                menu.clear_all()
                self.request_list.clear_filters()
            case "f":
                self.apply_filters()
                self._close_overlay()

    def _handle_search_key(self, key: str) -> None:
        if key == keys.ESCAPE:
            self.exit_search(apply=False)
        elif key == keys.ENTER:
            self.exit_search(apply=True)
        else:
            self.search.handle(key)

    def _handle_agents_key(self, key: str) -> None:
        match key:
            case keys.ESCAPE | "q":
                self.exit_agents()
            case "j" | keys.DOWN:
                self.agents_list.move_down()
            case "k" | keys.UP:
                self.agents_list.move_up()
            case "g" | keys.HOME:
                self.agents_list.go_to_top()
            case "G" | keys.END:
                self.agents_list.go_to_bottom()
            case keys.ENTER:
                self.enter_agent_output()
            case "d":
                self.cleanup_selected_agent()
            case "o":
                self.open_agent_folder()
            case "r":
                self.reload()

    def _handle_output_key(self, key: str) -> None:
        match key:
            case keys.ESCAPE | "q":
                self.exit_agent_output()
            case "j" | keys.DOWN:
                self.agent_output.scroll_down()
            case "k" | keys.UP:
                self.agent_output.scroll_up()
            case keys.PAGE_DOWN | keys.CTRL_D:
                self.agent_output.page_down()
            case keys.PAGE_UP | keys.CTRL_U:
                self.agent_output.page_up()
            case "g" | keys.HOME:
                self.agent_output.go_to_top()
            case "G" | keys.END:
                self.agent_output.go_to_bottom()
            case "r":
                self.reload()

    def _handle_spirit_key(self, key: str) -> None:
        self._close_overlay()

    # --- Timer ---

    def tick(self, now: float | None = None) -> None:
        """Periodic work: live agent-tab rebuild and interval-based reload.

        Reloads only happen in the list, agents and output modes, and only
        when no key arrived since the previous tick.
        """
        now = self.clock() if now is None else now
        idle = not self._input_since_tick
        self._input_since_tick = False

        if self.mode == Mode.DETAIL and self.request_detail.on_agent_tab:
            live = self.request_detail.agent_is_live
            if live or self._agent_tab_live:
                self.request_detail.build_content()
            self._agent_tab_live = live
        else:
            self._agent_tab_live = False

        if (
            self.mode in AUTO_REFRESH_MODES
            and idle
            and now - self.last_refresh >= self.config.refresh_interval
        ):
            self.reload()
            self.last_refresh = now

    # --- Drawing ---

    def render(self, now: datetime | None = None) -> Canvas:
        canvas = Canvas(self.height, self.width)
        base = self.base_mode
        if base == Mode.AGENTS:
            self.agents_list.draw()
            canvas.paint(self.agents_list)
        elif base == Mode.AGENT_OUTPUT:
            self.agent_output.draw()
            canvas.paint(self.agent_output)
        else:
            self.request_list.draw(now)
            canvas.paint(self.request_list)
            if base == Mode.DETAIL:
                self.request_detail.draw(now)
                canvas.paint(self.request_detail)

        overlay: Window | None = {
            Mode.HELP: self.help_window,
            Mode.FILTER: self.filter_window,
            Mode.SPIRIT: self.spirit_window,
        }.get(self.mode)
        if overlay is not None:
            canvas.cursor = None
            overlay.draw()
            canvas.paint(overlay)

        if self.mode == Mode.SEARCH:
            self._draw_search_bar(canvas)
        return canvas

    def _draw_search_bar(self, canvas: Canvas) -> None:
        y = self.height - 1
        canvas.fill(y, 0, self.width, colors.SEARCH)
        text, col = self.search.visible(self.width - 1)
        canvas.write(y, 0, f"/{text}", colors.SEARCH)
        canvas.set_cursor(y, col + 1)
