"""Textual host for the inspector.

The whole screen is one widget showing the controller's composed canvas.
Keys and the poll timer are forwarded to :class:`AppController`, which
owns all state.
"""

from __future__ import annotations

import logging

from rich.markup import escape
from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.css.query import NoMatches
from textual.widgets import Static

from binocs.agent.orchestrator import AgentOrchestrator
from binocs.config import BinocsConfig
from binocs.openapi.client import SpecClient
from binocs.store.base import RequestStore
from binocs.tui import keys
from binocs.tui.controller import AppController


class TUILogHandler(logging.Handler):
    """Keeps the last log message for the status bar.

    Writing to stderr would corrupt the Textual display, so while the app
    runs this handler replaces every root handler.
    """

    def __init__(self, app: BinocsApp) -> None:
        super().__init__()
        self._app = app
        self.last_message: str = ""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.last_message = self.format(record)
        except Exception:
            self.handleError(record)
            return
        try:
            # agent monitor threads log too
            self._app.call_from_thread(self._app._update_status)
        except RuntimeError:
            self._app._update_status()


class CanvasView(Static, can_focus=True):
    """Focusable surface that hands every key to the app before bindings see it."""

    def on_key(self, event: events.Key) -> None:
        event.stop()
        event.prevent_default()
        app = self.app
        if isinstance(app, BinocsApp):
            app.feed_key(keys.normalize(event.key, event.character))


class BinocsApp(App):
    """Binocs: captured request inspector with AI agent launcher."""

    TITLE = "binocs"
    ENABLE_COMMAND_PALETTE = False
    CSS = """
    #canvas {
        height: 1fr;
        width: 1fr;
    }

    #status-bar {
        dock: bottom;
        height: 1;
        background: $surface;
        color: $text-muted;
        padding: 0 1;
    }
    """

    BINDINGS = [
        Binding("ctrl+c", "quit", "Quit", priority=True),
    ]

    def __init__(
        self,
        store: RequestStore,
        orchestrator: AgentOrchestrator | None = None,
        spec_client: SpecClient | None = None,
        config: BinocsConfig | None = None,
    ) -> None:
        super().__init__()
        self.config = config or BinocsConfig()
        self.controller = AppController(
            store,
            orchestrator=orchestrator,
            spec_client=spec_client,
            config=self.config.tui,
        )
        self._log_handler: TUILogHandler | None = None
        self._saved_handlers: list[logging.Handler] = []

    def compose(self) -> ComposeResult:
        yield CanvasView(id="canvas")
        yield Static(id="status-bar")

    def on_mount(self) -> None:
        self._install_log_handler()
        self.query_one("#canvas", CanvasView).focus()
        self._fit_to(self.size.height, self.size.width)
        self.set_interval(self.config.tui.poll_interval, self._tick)
        self._update_status()

    def _install_log_handler(self) -> None:
        root = logging.getLogger()
        self._saved_handlers = root.handlers[:]
        for handler in self._saved_handlers:
            root.removeHandler(handler)
        self._log_handler = TUILogHandler(self)
        self._log_handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
        root.addHandler(self._log_handler)
        if root.getEffectiveLevel() > logging.INFO:
            root.setLevel(logging.INFO)
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

    def on_unmount(self) -> None:
        root = logging.getLogger()
        if self._log_handler is not None:
            root.removeHandler(self._log_handler)
        for handler in self._saved_handlers:
            root.addHandler(handler)

    def on_resize(self, event: events.Resize) -> None:
        self._fit_to(event.size.height, event.size.width)

    def _fit_to(self, height: int, width: int) -> None:
        # one row belongs to the status bar
        self.controller.resize(max(height - 1, 1), max(width, 1))
        self._paint()

    # --- Controller plumbing ---

    def feed_key(self, key: str) -> None:
        self.controller.handle_key(key)
        self._after_update()

    def _tick(self) -> None:
        self.controller.tick()
        self._after_update()

    def _after_update(self) -> None:
        if not self.controller.running:
            self.exit()
            return
        self._paint()
        self._update_status()

    def _paint(self) -> None:
        try:
            view = self.query_one("#canvas", CanvasView)
        except NoMatches:
            return
        view.update(self.controller.render().render())

    # --- Status bar ---

    def _update_status(self) -> None:
        try:
            status = self.query_one("#status-bar", Static)
        except NoMatches:
            return
        controller = self.controller
        parts = [f"Mode: {controller.mode}"]
        if controller.registry is not None:
            running = controller.registry.running_count()
            if running:
                parts.append(f"[bold]● {running} agent{'s' if running != 1 else ''} running[/bold]")
        if self._log_handler and self._log_handler.last_message:
            last_log = self._log_handler.last_message
            if len(last_log) > 80:
                last_log = last_log[:77] + "..."
            parts.append(f"[dim]{escape(last_log)}[/dim]")
        status.update(" | ".join(parts))
