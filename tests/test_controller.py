"""Tests for binocs.tui.controller and the Textual host in binocs.tui.app."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from binocs.agent.orchestrator import AgentOrchestrator
from binocs.agent.record import AgentRecord
from binocs.agent.registry import AgentRegistry
from binocs.cli import demo_records
from binocs.config import AgentConfig, TUIConfig
from binocs.store import InMemoryRequestStore, RequestRecord
from binocs.tui import keys
from binocs.tui.app import BinocsApp
from binocs.tui.controller import AppController, Mode, centered


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _controller(store=None, orchestrator=None, clock=None, **size) -> AppController:
    size.setdefault("height", 24)
    size.setdefault("width", 120)
    return AppController(
        store if store is not None else InMemoryRequestStore(demo_records()),
        orchestrator=orchestrator,
        config=TUIConfig(refresh_interval=2.0),
        clock=clock or FakeClock(),
        **size,
    )


def _press(controller: AppController, *key_names: str) -> None:
    for key in key_names:
        controller.handle_key(key)


def _type(controller: AppController, text: str) -> None:
    _press(controller, *text)


def _ids(controller: AppController) -> list[str]:
    return [r.id for r in controller.request_list.requests]


def _orchestrator(tmp_path: Path) -> AgentOrchestrator:
    repo = tmp_path / "repo"
    repo.mkdir(exist_ok=True)
    config = AgentConfig(worktree_base=str(tmp_path / "agents"))
    return AgentOrchestrator(AgentRegistry(), config, repo_root=repo)


def _new_record() -> RequestRecord:
    return RequestRecord(
        id="late", method="GET", path="/late", status_code=200,
        created_at=datetime.now(timezone.utc),
    )


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------


class TestLayout:
    def test_centered(self) -> None:
        assert centered(24, 80, 10, 40) == (10, 40, 7, 20)
        assert centered(5, 10, 10, 40) == (5, 10, 0, 0)

    def test_list_full_width(self) -> None:
        controller = _controller()
        assert controller.request_list.geometry == (24, 120, 0, 0)

    def test_detail_split(self) -> None:
        controller = _controller()
        _press(controller, keys.ENTER)
        assert controller.request_list.geometry == (24, 40, 0, 0)
        assert controller.request_detail.geometry == (24, 80, 0, 40)

    def test_narrow_terminal_keeps_minimum_list_width(self) -> None:
        controller = _controller(width=90)
        _press(controller, keys.ENTER)
        assert controller.request_list.width == 40
        assert controller.request_detail.width == 50

    def test_resize_carries_list_state(self) -> None:
        controller = _controller()
        _press(controller, "j", "j")
        old = controller.request_list
        controller.resize(30, 100)
        assert controller.request_list is not old
        assert controller.request_list.selected_index == 2
        assert controller.request_list.geometry == (30, 100, 0, 0)

    def test_resize_carries_detail_state(self) -> None:
        controller = _controller()
        _press(controller, keys.ENTER, "3")
        controller.resize(40, 150)
        detail = controller.request_detail
        assert detail.tab_name == "Headers"
        assert detail.request.id == "demo-4"

    def test_same_size_keeps_panels(self) -> None:
        controller = _controller()
        panel = controller.request_list
        controller.resize(24, 120)
        assert controller.request_list is panel


# ---------------------------------------------------------------------------
# Modes
# ---------------------------------------------------------------------------


class TestModes:
    def test_initial_state(self) -> None:
        controller = _controller()
        assert controller.mode == Mode.LIST
        assert _ids(controller) == ["demo-4", "demo-3", "demo-2", "demo-1"]

    def test_quit(self) -> None:
        controller = _controller()
        _press(controller, "q")
        assert not controller.running

    def test_detail_and_back(self) -> None:
        controller = _controller()
        _press(controller, "j", keys.ENTER)
        assert controller.mode == Mode.DETAIL
        assert controller.request_detail.request.id == "demo-3"
        _press(controller, keys.ESCAPE)
        assert controller.mode == Mode.LIST
        assert controller.request_list.selected_request.id == "demo-3"

    def test_detail_next_prev_keeps_tab(self) -> None:
        controller = _controller()
        _press(controller, keys.ENTER, "4", "n")
        detail = controller.request_detail
        assert detail.request.id == "demo-3"
        assert detail.tab_name == "Body"
        _press(controller, "p")
        assert detail.request.id == "demo-4"

    def test_detail_tab_keys(self) -> None:
        controller = _controller()
        _press(controller, keys.ENTER, keys.TAB)
        assert controller.request_detail.tab_name == "Params"
        _press(controller, keys.SHIFT_TAB, keys.SHIFT_TAB)
        assert controller.request_detail.tab_name == "Agent"
        _press(controller, "1")
        assert controller.request_detail.tab_name == "Overview"
        _press(controller, "a")
        assert controller.request_detail.tab_name == "Agent"

    def test_prompt_swallows_quit(self) -> None:
        controller = _controller()
        _press(controller, keys.ENTER, "9", "i")
        _type(controller, "quit now")
        assert controller.running
        assert controller.mode == Mode.DETAIL
        assert controller.request_detail.prompt.text == "quit now"
        _press(controller, keys.ESCAPE)
        assert controller.mode == Mode.DETAIL
        _press(controller, keys.ESCAPE)
        assert controller.mode == Mode.LIST

    def test_enter_on_empty_list(self) -> None:
        controller = _controller(store=InMemoryRequestStore())
        _press(controller, keys.ENTER, "S")
        assert controller.mode == Mode.LIST

    def test_help_overlay_returns_to_previous_mode(self) -> None:
        controller = _controller()
        _press(controller, "?")
        assert controller.mode == Mode.HELP
        assert controller.base_mode == Mode.LIST
        _press(controller, "?")
        assert controller.mode == Mode.LIST

        _press(controller, keys.ENTER, "?")
        assert controller.mode == Mode.HELP
        assert controller.base_mode == Mode.DETAIL
        assert controller.request_list.width == 40
        _press(controller, keys.ESCAPE)
        assert controller.mode == Mode.DETAIL

    def test_spirit_any_key_closes(self) -> None:
        controller = _controller()
        _press(controller, "S")
        assert controller.mode == Mode.SPIRIT
        assert controller.spirit_window.request.id == "demo-4"
        _press(controller, "x")
        assert controller.mode == Mode.LIST
        assert controller.spirit_window is None


# ---------------------------------------------------------------------------
# Search and filters
# ---------------------------------------------------------------------------


class TestSearch:
    def test_apply(self) -> None:
        controller = _controller()
        _press(controller, "/")
        assert controller.mode == Mode.SEARCH
        _type(controller, "users")
        _press(controller, keys.ENTER)
        assert controller.mode == Mode.LIST
        assert controller.request_list.search_query == "users"
        assert _ids(controller) == ["demo-4", "demo-1"]

    def test_cancel_keeps_previous_query(self) -> None:
        controller = _controller()
        _press(controller, "/")
        _type(controller, "orders")
        _press(controller, keys.ENTER, "/")
        assert controller.search.text == "orders"
        _type(controller, "xyz")
        _press(controller, keys.ESCAPE)
        assert controller.request_list.search_query == "orders"
        assert _ids(controller) == ["demo-2"]

    def test_empty_query_clears(self) -> None:
        controller = _controller()
        _press(controller, "/")
        _type(controller, "orders")
        _press(controller, keys.ENTER, "/")
        for _ in range(10):
            _press(controller, keys.BACKSPACE)
        _press(controller, keys.ENTER)
        assert controller.request_list.search_query is None
        assert len(_ids(controller)) == 4

    def test_search_bar_rendered(self) -> None:
        controller = _controller()
        _press(controller, "/")
        _type(controller, "us")
        canvas = controller.render()
        assert canvas.row_text(23).startswith("/us")
        assert canvas.cursor == (23, 3)


class TestFilters:
    def test_pick_method(self) -> None:
        controller = _controller()
        _press(controller, "f")
        assert controller.mode == Mode.FILTER
        _press(controller, keys.ENTER, "j", keys.ENTER, keys.ESCAPE)
        assert controller.mode == Mode.LIST
        assert controller.request_list.filters.method == "POST"
        assert _ids(controller) == ["demo-2"]

    def test_escape_inside_category_only_collapses(self) -> None:
        controller = _controller()
        _press(controller, "f", keys.ENTER, keys.ESCAPE)
        assert controller.mode == Mode.FILTER
        assert controller.filter_window.expanded is None

    def test_menu_seeded_from_list(self) -> None:
        controller = _controller()
        controller.request_list.set_filter("status", "5xx")
        _press(controller, "f")
        assert controller.filter_window.selected_filters.status == "5xx"

    def test_clear_keeps_menu_open(self) -> None:
        controller = _controller()
        controller.request_list.set_filter("method", "GET")
        _press(controller, "f", "c")
        assert controller.mode == Mode.FILTER
        assert controller.request_list.filters.is_empty()
        assert len(_ids(controller)) == 4

    def test_clear_from_list(self) -> None:
        controller = _controller()
        controller.request_list.set_filter("method", "GET")
        _press(controller, "c")
        assert len(_ids(controller)) == 4

    def test_search_survives_filter_change(self) -> None:
        controller = _controller()
        _press(controller, "/")
        _type(controller, "users")
        _press(controller, keys.ENTER, "f", "j", keys.ENTER, "j", "j", "j", keys.ENTER, "f")
        assert controller.request_list.filters.status == "5xx"
        assert controller.request_list.search_query == "users"
        assert _ids(controller) == ["demo-4"]


# ---------------------------------------------------------------------------
# Deletion
# ---------------------------------------------------------------------------


class TestDelete:
    def test_delete_selected(self) -> None:
        store = InMemoryRequestStore(demo_records())
        controller = _controller(store=store)
        _press(controller, "d")
        assert len(store) == 3
        assert _ids(controller) == ["demo-3", "demo-2", "demo-1"]

    def test_delete_all_idempotent(self) -> None:
        store = InMemoryRequestStore(demo_records())
        controller = _controller(store=store)
        _press(controller, "D", "D", "d")
        assert len(store) == 0
        assert controller.request_list.requests == []
        assert controller.request_list.selected_index == 0


# ---------------------------------------------------------------------------
# Agents views
# ---------------------------------------------------------------------------


class TestAgentsViews:
    def test_agents_returns_to_origin(self) -> None:
        controller = _controller()
        _press(controller, "a")
        assert controller.mode == Mode.AGENTS
        _press(controller, keys.ESCAPE)
        assert controller.mode == Mode.LIST

        _press(controller, keys.ENTER, "A")
        assert controller.mode == Mode.AGENTS
        _press(controller, keys.ENTER)
        assert controller.mode == Mode.AGENTS
        _press(controller, "q")
        assert controller.mode == Mode.DETAIL
        assert controller.running

    def test_output_round_trip(self, tmp_path) -> None:
        orchestrator = _orchestrator(tmp_path)
        log = tmp_path / "agent.log"
        log.write_text("hello from the agent\n")
        agent = AgentRecord(request_id="demo-4", prompt="fix")
        agent.output_file = str(log)
        orchestrator.registry.add(agent)

        controller = _controller(orchestrator=orchestrator)
        _press(controller, keys.ENTER, "A", keys.ENTER)
        assert controller.mode == Mode.AGENT_OUTPUT
        assert controller.agent_output.agent is agent
        assert "hello from the agent" in controller.render()
        _press(controller, keys.ESCAPE)
        assert controller.mode == Mode.AGENTS
        _press(controller, keys.ESCAPE)
        assert controller.mode == Mode.DETAIL

    def test_delete_agent(self, tmp_path) -> None:
        orchestrator = _orchestrator(tmp_path)
        orchestrator.registry.add(AgentRecord(request_id="demo-4", prompt="fix"))
        controller = _controller(orchestrator=orchestrator)
        _press(controller, "a", "d")
        assert orchestrator.registry.count() == 0
        assert controller.agents_list.agents == []


# ---------------------------------------------------------------------------
# Timer
# ---------------------------------------------------------------------------


class TestTick:
    def test_reload_after_interval(self) -> None:
        store = InMemoryRequestStore(demo_records())
        controller = _controller(store=store)
        store.add(_new_record())
        controller.tick(now=1001.0)
        assert len(_ids(controller)) == 4
        controller.tick(now=1002.5)
        assert _ids(controller)[0] == "late"

    def test_no_reload_right_after_input(self) -> None:
        store = InMemoryRequestStore(demo_records())
        controller = _controller(store=store)
        store.add(_new_record())
        _press(controller, "j")
        controller.tick(now=1005.0)
        assert len(_ids(controller)) == 4
        controller.tick(now=1005.1)
        assert len(_ids(controller)) == 5

    def test_no_reload_in_detail(self) -> None:
        store = InMemoryRequestStore(demo_records())
        controller = _controller(store=store)
        _press(controller, keys.ENTER)
        store.add(_new_record())
        controller.tick(now=1010.0)
        controller.tick(now=1020.0)
        assert len(_ids(controller)) == 4
        assert controller.request_detail.request.id == "demo-4"

    def test_manual_refresh(self) -> None:
        store = InMemoryRequestStore(demo_records())
        controller = _controller(store=store)
        store.add(_new_record())
        _press(controller, "r")
        assert len(_ids(controller)) == 5


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


class TestRender:
    def test_list(self) -> None:
        canvas = _controller().render()
        assert "Requests (4)" in canvas
        assert "/users/42/posts/7" in canvas

    def test_detail_and_help_overlay(self) -> None:
        controller = _controller()
        _press(controller, keys.ENTER)
        assert "Request Detail" in controller.render()
        _press(controller, "?")
        canvas = controller.render()
        assert "Help - Keybindings" in canvas
        assert "Requests (4)" in canvas

    def test_tiny_terminal(self) -> None:
        controller = _controller(height=3, width=10)
        _press(controller, keys.ENTER, "?", keys.ESCAPE, "f")
        controller.render()


# ---------------------------------------------------------------------------
# Textual host
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_app_routes_keys_to_controller() -> None:
    app = BinocsApp(InMemoryRequestStore(demo_records()))
    async with app.run_test(size=(120, 30)) as pilot:
        await pilot.pause()
        controller = app.controller
        assert (controller.height, controller.width) == (29, 120)
        await pilot.press("j")
        assert controller.request_list.selected_index == 1
        await pilot.press("enter")
        assert controller.mode == Mode.DETAIL
        await pilot.press("tab")
        assert controller.request_detail.tab_name == "Params"
        await pilot.press("question_mark")
        assert controller.mode == Mode.HELP
        await pilot.press("escape", "escape")
        assert controller.mode == Mode.LIST
        await pilot.press("q")
        await pilot.pause()
        assert not controller.running
