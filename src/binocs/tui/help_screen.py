"""Help overlay listing the key bindings."""

from __future__ import annotations

from binocs.tui import colors
from binocs.tui.window import Window

KEYBINDINGS: tuple[tuple[str, tuple[tuple[str, str], ...]], ...] = (
    ("Navigation", (
        ("j / ↓", "Move down / Scroll down"),
        ("k / ↑", "Move up / Scroll up"),
        ("g / Home", "Go to top"),
        ("G / End", "Go to bottom"),
        ("Ctrl+d / PgDn", "Page down"),
        ("Ctrl+u / PgUp", "Page up"),
    )),
    ("Actions", (
        ("Enter / l", "View request details"),
        ("h / Esc", "Go back / Close"),
        ("n / p", "Next/prev request (detail)"),
        ("o / y", "Open API docs / Copy tab"),
        ("d / D", "Delete request / Delete all"),
    )),
    ("Tabs (Detail View)", (
        ("Tab / ] / L", "Next tab"),
        ("Shift+Tab / [ / H", "Previous tab"),
        ("1-8", "Jump to tab by number"),
        ("9 / a", "Agent tab"),
    )),
    ("Agents", (
        ("i / Enter", "Compose prompt (Agent tab)"),
        ("t / w / s", "Tool / Worktree / Stop"),
        ("a / A", "Agents list"),
    )),
    ("Filtering", (
        ("/", "Search by path"),
        ("f", "Open filter menu"),
        ("c", "Clear all filters"),
    )),
    ("Other", (
        ("r", "Refresh list"),
        ("S", "Spirit animal"),
        ("?", "Toggle this help"),
        ("q", "Quit"),
    )),
)


class HelpScreen(Window):
    WIDTH = 60

    @staticmethod
    def preferred_height() -> int:
        return sum(len(bindings) + 2 for _, bindings in KEYBINDINGS) + 4

    def draw(self) -> None:
        self.clear()
        self.draw_box("Help - Keybindings")
        y = 2
        for section, bindings in KEYBINDINGS:
            if y >= self.height - 3:
                break
            self.write(y, 3, f"── {section} ", colors.bold(colors.HEADER))
            y += 1
            for key, description in bindings:
                if y >= self.height - 3:
                    break
                self.write(y, 4, key.ljust(16), colors.bold(colors.KEY_HINT))
                self.write(y, 21, description, colors.NORMAL)
                y += 1
            y += 1
        self.write(self.height - 2, 3, "Press ? or Esc to close", colors.MUTED)
