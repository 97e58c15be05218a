"""Request detail: tabbed inspector with an interactive Agent tab.

Each tab is flattened into a list of :class:`ContentLine` records when it
becomes active, and one generic drawer renders them.
"""

from __future__ import annotations

import enum
import logging
import re
import shutil
import subprocess
import sys
import time
import webbrowser
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from binocs.agent.orchestrator import AgentOrchestrator
from binocs.agent.record import (
    AgentRecord,
    AgentStatus,
    AgentToolName,
    make_tool,
    next_tool_name,
)
from binocs.agent.worktree import BRANCH_PREFIX, WorktreeError
from binocs.agent.context import format_body as pretty_body
from binocs.openapi.client import SpecClient
from binocs.openapi.matcher import OperationMatch, build_ui_url, find_operation
from binocs.store.base import RequestRecord
from binocs.tui import colors, keys
from binocs.tui.text import truncate
from binocs.tui.text_input import LineEditor
from binocs.tui.window import Window

logger = logging.getLogger(__name__)

TABS = ("Overview", "Params", "Headers", "Body", "Response", "Logs", "Exception", "Spec", "Agent")
AGENT_TAB = TABS.index("Agent")
_HOTKEYS = ("¹", "²", "³", "⁴", "⁵", "⁶", "⁷", "⁸", "ᵃ")

OUTPUT_TAIL_LINES = 30
_WORKTREE_NAME_RE = re.compile(r"[A-Za-z0-9_-]")

_STATUS_MARKS = {
    AgentStatus.RUNNING: "●",
    AgentStatus.COMPLETED: "✓",
    AgentStatus.FAILED: "✗",
}


class LineKind(enum.StrEnum):
    SECTION = "section"
    FIELD = "field"
    LINE = "line"
    BLANK = "blank"


@dataclass(frozen=True)
class ContentLine:
    kind: LineKind
    text: str = ""
    label: str = ""
    style: str | None = None

    def plain(self) -> list[str]:
        """Plain-text rendering used for clipboard export."""
        match self.kind:
            case LineKind.SECTION:
                return ["", f"── {self.text} ──"]
            case LineKind.FIELD:
                return [f"{self.label}: {self.text}"]
            case LineKind.LINE:
                return [self.text]
        return [""]


def copy_to_clipboard(text: str) -> bool:
    """Pipe ``text`` to the first available clipboard tool."""
    candidates = [["xclip", "-selection", "clipboard"], ["xsel", "--clipboard", "--input"]]
    if sys.platform == "darwin":
        candidates.insert(0, ["pbcopy"])
    for command in candidates:
        if shutil.which(command[0]) is None:
            continue
        try:
            subprocess.run(
                command, input=text, text=True, check=True, capture_output=True, timeout=5
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug("Clipboard copy via %s failed: %s", command[0], e)
            return False
        return True
    return False


def default_worktree_name() -> str:
    return f"{time.strftime('%m%d-%H%M')}-fix"


class RequestDetail(Window):
    """Tabbed view of one request plus the prompt/worktree entry widgets."""

    def __init__(
        self,
        height: int,
        width: int,
        top: int = 0,
        left: int = 0,
        orchestrator: AgentOrchestrator | None = None,
        spec_client: SpecClient | None = None,
        default_tool: AgentToolName = AgentToolName.CLAUDE_CODE,
    ) -> None:
        super().__init__(height, width, top, left)
        self.orchestrator = orchestrator
        self.spec_client = spec_client
        self.default_tool = default_tool
        self.request: RequestRecord | None = None
        self.current_tab = 0
        self.scroll_offset = 0
        self.content_lines: list[ContentLine] = []
        self.operation: OperationMatch | None = None
        self.reset_agent_state()

    def reset_agent_state(self) -> None:
        self.prompt = LineEditor()
        self.prompt_active = False
        self.use_worktree = False
        self.worktree_name = LineEditor(accept=lambda ch: bool(_WORKTREE_NAME_RE.fullmatch(ch)))
        self.worktree_input_active = False
        self.agent_tool = AgentToolName(self.default_tool)
        self.agent_error: str | None = None

    def carry_state_from(self, other: RequestDetail) -> None:
        """Take over request, tab, scroll and entry state from a replaced panel."""
        self.request = other.request
        self.current_tab = other.current_tab
        self.scroll_offset = other.scroll_offset
        self.operation = other.operation
        self.prompt = other.prompt
        self.prompt_active = other.prompt_active
        self.use_worktree = other.use_worktree
        self.worktree_name = other.worktree_name
        self.worktree_input_active = other.worktree_input_active
        self.agent_tool = other.agent_tool
        self.agent_error = other.agent_error
        self.build_content()

    # --- Request and tabs ---

    def set_request(self, request: RequestRecord | None, reset_tab: bool = True) -> None:
        if request is None or self.request is None or request.id != self.request.id:
            self.reset_agent_state()
        self.request = request
        if reset_tab:
            self.current_tab = 0
        self.scroll_offset = 0
        self.agent_error = None
        self.operation = self._match_operation(request)
        self.build_content()

    def _match_operation(self, request: RequestRecord | None) -> OperationMatch | None:
        if request is None or self.spec_client is None or not self.spec_client.enabled:
            return None
        return find_operation(self.spec_client.fetch_spec(), request.method, request.path)

    @property
    def tab_name(self) -> str:
        return TABS[self.current_tab]

    @property
    def on_agent_tab(self) -> bool:
        return self.current_tab == AGENT_TAB

    @property
    def text_entry_active(self) -> bool:
        return self.on_agent_tab and (self.prompt_active or self.worktree_input_active)

    def next_tab(self) -> None:
        self.go_to_tab((self.current_tab + 1) % len(TABS))

    def prev_tab(self) -> None:
        self.go_to_tab((self.current_tab - 1) % len(TABS))

    def go_to_tab(self, index: int) -> None:
        if not 0 <= index < len(TABS):
            return
        self.current_tab = index
        self.scroll_offset = 0
        self.build_content()

    # --- Scrolling ---

    @property
    def content_height(self) -> int:
        base = self.height - 7
        return max(base - 4 if self.on_agent_tab else base, 1)

    @property
    def content_width(self) -> int:
        return max(self.width - 4, 0)

    @property
    def max_scroll(self) -> int:
        return max(len(self.content_lines) - self.content_height, 0)

    def scroll_up(self) -> None:
        self.scroll_offset = max(self.scroll_offset - 1, 0)

    def scroll_down(self) -> None:
        self.scroll_offset = min(self.scroll_offset + 1, self.max_scroll)

    def page_up(self) -> None:
        self.scroll_offset = max(self.scroll_offset - self.content_height, 0)

    def page_down(self) -> None:
        self.scroll_offset = min(self.scroll_offset + self.content_height, self.max_scroll)

    # --- Content ---

    def build_content(self) -> None:
        """Rebuild the active tab's lines, keeping the scroll position in range."""
        self.content_lines = []
        if self.request is None:
            return
        builder = {
            "Overview": self._build_overview,
            "Params": self._build_params,
            "Headers": self._build_headers,
            "Body": self._build_body,
            "Response": self._build_response,
            "Logs": self._build_logs,
            "Exception": self._build_exception,
            "Spec": self._build_spec,
            "Agent": self._build_agent,
        }[self.tab_name]
        builder(self.request)
        self.scroll_offset = min(self.scroll_offset, self.max_scroll)

    def content_as_text(self) -> str:
        lines: list[str] = []
        for line in self.content_lines:
            lines.extend(line.plain())
        return "\n".join(lines)

    def _section(self, title: str) -> None:
        self.content_lines.append(ContentLine(LineKind.SECTION, title))

    def _field(self, label: str, value: object, style: str | None = None) -> None:
        text = "" if value is None else str(value)
        self.content_lines.append(ContentLine(LineKind.FIELD, text, label, style))

    def _line(self, text: str, style: str | None = colors.NORMAL) -> None:
        self.content_lines.append(ContentLine(LineKind.LINE, text, style=style))

    def _blank(self) -> None:
        self.content_lines.append(ContentLine(LineKind.BLANK))

    def _build_overview(self, request: RequestRecord) -> None:
        self._section("Request Information")
        self._field("Method", request.method)
        self._field("Path", request.path)
        self._field("Full URL", request.full_url or "N/A")
        self._field("Controller", request.controller_name or "N/A")
        self._field("Action", request.action_name or "N/A")
        self._blank()
        self._section("Response")
        self._field("Status", request.status_code if request.status_code is not None else "N/A")
        self._field("Duration", request.formatted_duration)
        self._field("Memory Delta", request.formatted_memory_delta)
        self._blank()
        self._section("Client")
        self._field("IP Address", request.ip_address or "N/A")
        self._field("Session ID", request.session_id or "N/A")
        self._blank()
        self._section("Timing")
        self._field("Created At", _format_time(request.created_at, millis=True))
        if request.has_exception:
            self._blank()
            self._line("!! HAS EXCEPTION - See Exception tab", colors.ERROR)

    def _build_params(self, request: RequestRecord) -> None:
        if request.params:
            self._section("Request Parameters")
            self._format_mapping(request.params)
        else:
            self._line("No parameters", colors.MUTED)

    def _build_headers(self, request: RequestRecord) -> None:
        self._section("Request Headers")
        if request.request_headers:
            self._format_mapping(request.request_headers)
        else:
            self._line("No request headers", colors.MUTED)
        self._blank()
        self._section("Response Headers")
        if request.response_headers:
            self._format_mapping(request.response_headers)
        else:
            self._line("No response headers", colors.MUTED)

    def _build_body(self, request: RequestRecord) -> None:
        if request.request_body:
            self._section("Request Body")
            self._format_body(request.request_body)
        else:
            self._line("No request body", colors.MUTED)

    def _build_response(self, request: RequestRecord) -> None:
        if request.response_body:
            self._section("Response Body")
            self._format_body(request.response_body)
        else:
            self._line("No response body captured", colors.MUTED)

    def _build_logs(self, request: RequestRecord) -> None:
        if not request.logs:
            self._line("No logs captured", colors.MUTED)
            return
        for i, log in enumerate(request.logs, start=1):
            kind = log.get("type")
            self._section(f"Log Entry {i} - {str(kind or '').upper()}")
            self._field("Timestamp", log.get("timestamp"))
            if kind == "controller":
                self._field("Controller", f"{log.get('controller')}#{log.get('action')}")
                self._field("Format", log.get("format"))
                if log.get("view_runtime"):
                    self._field("View Runtime", f"{log['view_runtime']}ms")
                if log.get("db_runtime"):
                    self._field("DB Runtime", f"{log['db_runtime']}ms")
                self._field("Duration", f"{log.get('duration')}ms")
            elif kind == "redirect":
                self._field("Location", log.get("location"))
                self._field("Status", log.get("status"))
            else:
                for key, value in log.items():
                    if key not in ("timestamp", "type"):
                        self._field(str(key).replace("_", " ").title(), value)
            self._blank()

    def _build_exception(self, request: RequestRecord) -> None:
        exc = request.exception
        if not exc:
            self._line("No exception", colors.STATUS_SUCCESS)
            return
        self._section("Exception Details")
        self._field("Class", exc.get("class"), colors.ERROR)
        self._blank()
        self._field("Message", exc.get("message"), colors.ERROR)
        self._blank()
        backtrace = exc.get("backtrace") or []
        if backtrace:
            self._section("Backtrace")
            for line in backtrace:
                self._line(str(line), colors.MUTED)

    def _build_spec(self, request: RequestRecord) -> None:
        op = self.operation
        if op is None:
            self._line("No matching OpenAPI operation found", colors.MUTED)
            self._blank()
            self._line(f"Request: {request.method} {request.path}", colors.MUTED)
            self._blank()
            if self.spec_client is None or not self.spec_client.enabled:
                self._line("Set BINOCS_SPEC_URL to enable spec matching.", colors.MUTED)
            else:
                self._line("Ensure the spec URL is configured correctly.", colors.MUTED)
            return

        self._section("Operation")
        self._field("Operation ID", op.operation_id or "N/A")
        self._field("Spec Path", op.spec_path)
        self._field("Method", op.method.upper())
        if op.tags:
            self._field("Tags", ", ".join(op.tags))
        if op.deprecated:
            self._field("Deprecated", "Yes", colors.ERROR)
        self._blank()

        if op.summary:
            self._section("Summary")
            self._line(op.summary)
            self._blank()
        if op.description:
            self._section("Description")
            for line in op.description.splitlines():
                self._line(line)
            self._blank()
        if op.parameters:
            self._section("Parameters")
            for param in op.parameters:
                required = "*" if param.get("required") else ""
                param_type = (param.get("schema") or {}).get("type") or "any"
                self._field(f"{param.get('in')}:{param.get('name')}{required}", param_type)
                if param.get("description"):
                    self._line(f"  {param['description']}", colors.MUTED)
            self._blank()
        if op.request_body:
            self._section("Request Body")
            for media_type, info in (op.request_body.get("content") or {}).items():
                self._field("Content-Type", media_type)
                if isinstance(info, dict) and info.get("schema"):
                    self._format_schema(info["schema"], 1)
            self._blank()
        if op.responses:
            self._section("Responses")
            for code, info in op.responses.items():
                description = info.get("description", "") if isinstance(info, dict) else ""
                self._field(str(code), description, colors.response_code_style(str(code)))
            self._blank()
        self._line("Press 'o' to open in browser", colors.KEY_HINT)

    def _build_agent(self, request: RequestRecord) -> None:
        agent = self.current_agent
        history = self._agents_for_request()

        self._section("Settings")
        self._field("Tool", make_tool(self.agent_tool).label)
        if self.use_worktree and self.worktree_name.text:
            self._field("Mode", f"Worktree: {BRANCH_PREFIX}{self.worktree_name.text}")
        else:
            self._field("Mode", "Current Branch")
        self._blank()
        toggle = "disable" if self.use_worktree else "enable"
        self._line(f"Press 't' to change tool, 'w' to {toggle} worktree mode", colors.KEY_HINT)
        self._blank()

        if self.agent_error:
            self._section("Launch Failed")
            for line in self.agent_error.splitlines():
                self._line(line, colors.ERROR)
            self._blank()

        if agent is not None:
            self._section("Agent Status")
            self._field("Status", agent.status.upper(), colors.agent_status_style(agent.status))
            self._field("Tool", agent.tool_command)
            self._field("Duration", agent.duration())
            if agent.branch_name:
                self._field("Branch", agent.branch_name)
            if agent.worktree_path:
                self._field("Worktree", agent.worktree_path)
            if agent.exit_code is not None:
                self._field("Exit Code", agent.exit_code)
            self._blank()
            if agent.running:
                self._line("Press 's' to stop the agent", colors.KEY_HINT)
                self._blank()
            if agent.prompt:
                self._section("Prompt")
                for line in agent.prompt.splitlines():
                    self._line(line)
                self._blank()
            self._section(f"Output (last {OUTPUT_TAIL_LINES} lines)")
            output = agent.output_tail(OUTPUT_TAIL_LINES)
            if output:
                for line in output.splitlines():
                    self._line(line, colors.MUTED)
            else:
                self._line("No output yet...", colors.MUTED)
        else:
            self._section("Context (will be sent to agent)")
            self._line(f"{request.method} {request.path} -> {request.status_code}")
            if request.controller_name:
                self._line(f"{request.controller_name}#{request.action_name}", colors.MUTED)
            if request.has_exception:
                self._line(f"Exception: {request.exception.get('class')}", colors.ERROR)
            self._blank()
            self._line("Press 'i' or Enter to compose a prompt for the AI agent", colors.KEY_HINT)

        if len(history) > 1:
            self._blank()
            self._section(f"Agent History ({len(history)} total)")
            for past in history:
                mark = _STATUS_MARKS.get(past.status, "○")
                self._line(f"{mark} {past.short_prompt(40)} ({past.duration()})", colors.MUTED)

    def _format_mapping(self, data: dict[str, Any], indent: int = 0) -> None:
        pad = "  " * indent
        for key, value in data.items():
            if isinstance(value, dict):
                self._line(f"{pad}{key}:", colors.HEADER)
                self._format_mapping(value, indent + 1)
            elif isinstance(value, list):
                self._line(f"{pad}{key}: [{len(value)} items]", colors.HEADER)
                for i, item in enumerate(value):
                    if isinstance(item, dict):
                        self._line(f"{pad}  [{i}]:", colors.MUTED)
                        self._format_mapping(item, indent + 2)
                    else:
                        self._line(f"{pad}  - {item}")
            else:
                self._field(f"{pad}{key}", value)

    def _format_body(self, body: str) -> None:
        for line in pretty_body(body).splitlines():
            self._line(line)

    def _format_schema(self, schema: dict[str, Any], indent: int = 0) -> None:
        pad = "  " * indent
        if schema.get("type") == "object" and schema.get("properties"):
            required = schema.get("required") or []
            for name, prop in schema["properties"].items():
                mark = "*" if name in required else ""
                prop_type = prop.get("type", "any") if isinstance(prop, dict) else "any"
                self._line(f"{pad}{name}{mark}: {prop_type}")
        elif schema.get("type") == "array" and schema.get("items"):
            self._line(f"{pad}array of:")
            self._format_schema(schema["items"], indent + 1)
        elif schema.get("$ref"):
            self._line(f"{pad}$ref: {schema['$ref'].rsplit('/', 1)[-1]}", colors.MUTED)
        else:
            self._line(f"{pad}type: {schema.get('type', 'any')}")

    # --- Agent tab ---

    def _agents_for_request(self) -> list[AgentRecord]:
        if self.request is None or self.orchestrator is None:
            return []
        return self.orchestrator.registry.for_request(self.request.id)

    @property
    def current_agent(self) -> AgentRecord | None:
        """Most recently launched agent for this request."""
        if self.request is None or self.orchestrator is None:
            return None
        return self.orchestrator.registry.latest_for_request(self.request.id)

    def cycle_tool(self) -> None:
        self.agent_tool = next_tool_name(self.agent_tool)

    def toggle_worktree_mode(self) -> None:
        if self.use_worktree:
            self.use_worktree = False
            self.worktree_name.clear()
            self.worktree_input_active = False
        else:
            self.worktree_name.set(default_worktree_name())
            self.worktree_input_active = True
            self.prompt_active = False

    def confirm_worktree_name(self) -> None:
        self.use_worktree = bool(self.worktree_name.text.strip())
        self.worktree_input_active = False

    def cancel_worktree_input(self) -> None:
        self.use_worktree = False
        self.worktree_name.clear()
        self.worktree_input_active = False

    def handle_agent_key(self, key: str) -> bool:
        """Agent-tab keys. Returns True when the key was consumed.

        While an entry widget is active every key is consumed.
        """
        if not self.on_agent_tab:
            return False

        if self.worktree_input_active:
            if key == keys.ESCAPE:
                self.cancel_worktree_input()
            elif key == keys.ENTER:
                self.confirm_worktree_name()
            else:
                self.worktree_name.handle(key)
            self.build_content()
            return True

        if self.prompt_active:
            if key == keys.ESCAPE:
                self.prompt_active = False
            elif key == keys.ENTER:
                if self.prompt.text.strip():
                    self.submit_prompt()
            else:
                self.prompt.handle(key)
            return True

        if key in ("i", keys.ENTER):
            self.prompt_active = True
        elif key in ("t", "T"):
            self.cycle_tool()
        elif key in ("w", "W"):
            self.toggle_worktree_mode()
        elif key in ("s", "S"):
            self.stop_current_agent()
        else:
            return False
        self.build_content()
        return True

    def submit_prompt(self) -> AgentRecord | None:
        """Continue the latest finished agent for the request, or launch a new one."""
        prompt = self.prompt.text.strip()
        if not prompt or self.request is None or self.orchestrator is None:
            return None
        self.prompt.clear()
        self.prompt_active = False
        self.agent_error = None

        existing = self.current_agent
        try:
            if existing is not None and existing.status.is_terminal:
                agent = self.orchestrator.continue_session(
                    existing, prompt, tool=self.agent_tool
                )
            else:
                agent = self.orchestrator.launch(
                    self.request,
                    prompt,
                    tool=self.agent_tool,
                    use_worktree=self.use_worktree,
                    branch_name=self.worktree_name.text if self.use_worktree else None,
                )
        except WorktreeError as e:
            self.agent_error = str(e)
            agent = None
        self.build_content()
        return agent

    def stop_current_agent(self) -> bool:
        agent = self.current_agent
        if agent is None or self.orchestrator is None or not agent.running:
            return False
        return self.orchestrator.stop(agent)

    @property
    def agent_is_live(self) -> bool:
        agent = self.current_agent
        return self.on_agent_tab and agent is not None and agent.status in (
            AgentStatus.PENDING,
            AgentStatus.RUNNING,
        )

    # --- Docs and clipboard ---

    def docs_url(self) -> str | None:
        if self.operation is None or self.spec_client is None:
            return None
        config = self.spec_client.config
        return build_ui_url(self.operation, config.absolute(config.ui_url))

    def open_docs(self) -> bool:
        url = self.docs_url()
        if not url:
            return False
        try:
            return webbrowser.open(url)
        except webbrowser.Error as e:
            logger.warning("Cannot open %s: %s", url, e)
            return False

    def copy_tab(self) -> bool:
        return copy_to_clipboard(self.content_as_text())

    # --- Drawing ---

    def draw(self, now: datetime | None = None) -> None:
        self.clear()
        if self.request is None:
            self.draw_box("Request Detail")
            return
        self.draw_box("Request Detail")
        self._draw_header(self.request)
        self._draw_tabs()
        self._draw_content()
        if self.on_agent_tab:
            self._draw_agent_input()
        self._draw_footer()

    def _draw_header(self, request: RequestRecord) -> None:
        x = 2
        x += self.write(1, x, request.method, colors.bold(colors.method_style(request.method))) + 1
        status = str(request.status_code) if request.status_code is not None else "???"
        x += self.write(1, x, status, colors.bold(colors.status_style(request.status_code))) + 1
        self.write(1, x, truncate(request.path, self.width - x - 2))
        info = "  •  ".join(
            [request.formatted_duration, request.ip_address or "N/A", _format_time(request.created_at)]
        )
        self.write(2, 2, info, colors.MUTED)

    def _draw_tabs(self) -> None:
        x = 2
        for i, (tab, hotkey) in enumerate(zip(TABS, _HOTKEYS)):
            style = colors.bold(colors.SELECTED) if i == self.current_tab else colors.MUTED
            x += self.write(3, x, tab, style)
            self.write(3, x, hotkey, colors.MUTED)
            x += 2
        self.hline(4)

    def _draw_content(self) -> None:
        for i in range(self.content_height):
            index = self.scroll_offset + i
            if index >= len(self.content_lines):
                break
            line = self.content_lines[index]
            y = 5 + i
            match line.kind:
                case LineKind.SECTION:
                    self.write(y, 2, f"── {line.text} ", colors.bold(colors.HEADER))
                case LineKind.FIELD:
                    label = f"{line.label}: "
                    self.write(y, 2, label, colors.MUTED)
                    self.write(
                        y,
                        2 + len(label),
                        truncate(line.text, self.content_width - len(label)),
                        line.style or colors.NORMAL,
                    )
                case LineKind.LINE:
                    self.write(y, 2, truncate(line.text, self.content_width), line.style or colors.NORMAL)

    def _draw_agent_input(self) -> None:
        sep_y = self.height - 6
        input_y = sep_y + 1
        help_y = sep_y + 2
        self.hline(sep_y)
        if self.worktree_input_active:
            label = f"Worktree name: {BRANCH_PREFIX}"
            self.write(input_y, 2, label, colors.bold(colors.HEADER))
            start = 2 + len(label)
            text, col = self.worktree_name.visible(self.content_width - len(label))
            self.write(input_y, start, text)
            self.set_cursor(input_y, start + col)
            self.write(
                help_y, 2,
                "All changes will be isolated in this worktree. Enter to confirm, Esc to cancel.",
                colors.MUTED,
            )
        elif self.prompt_active:
            self.write(input_y, 2, "Prompt: ", colors.bold(colors.HEADER))
            text, col = self.prompt.visible(self.content_width - 8)
            self.write(input_y, 10, text)
            self.set_cursor(input_y, 10 + col)
        else:
            agent = self.current_agent
            if agent is not None and agent.running:
                self.write(input_y, 2, "Agent is running... Press 's' to stop", colors.STATUS_SUCCESS)
            else:
                self.write(input_y, 2, "Press 'i' or Enter to start composing a prompt", colors.MUTED)
            if self.agent_error:
                self.write(help_y, 2, truncate(self.agent_error, self.content_width), colors.ERROR)

    def _draw_footer(self) -> None:
        y = self.height - 2
        self.hline(y - 1)
        total = len(self.content_lines)
        if total > self.content_height:
            last = min(self.scroll_offset + self.content_height, total)
            self.write(y, 2, f"Line {self.scroll_offset + 1}-{last} of {total}", colors.MUTED)
        if self.on_agent_tab:
            if self.worktree_input_active:
                hints = "Enter:confirm  Esc:cancel"
            elif self.prompt_active:
                hints = "Enter:send  Esc:cancel"
            else:
                hints = "i:input  t:tool  w:worktree  s:stop"
        else:
            hints = "Tab:switch  j/k:scroll  y:copy  h/Esc:back"
        self.write(y, max(self.width - len(hints) - 2, 1), hints, colors.KEY_HINT)


def _format_time(value: datetime | None, millis: bool = False) -> str:
    if value is None:
        return "N/A"
    local = value.astimezone() if value.tzinfo else value
    if millis:
        return local.strftime("%Y-%m-%d %H:%M:%S.") + f"{local.microsecond // 1000:03d}"
    return local.strftime("%Y-%m-%d %H:%M:%S")
