"""Single-line text editor shared by search, prompt and worktree-name entry."""

from __future__ import annotations

from typing import Callable

from rich.cells import cell_len

from binocs.tui import keys


class LineEditor:
    """Buffer plus cursor. Confirm and cancel are left to the caller."""

    def __init__(
        self, text: str = "", accept: Callable[[str], bool] | None = None
    ) -> None:
        self.text = text
        self.cursor = len(text)
        self._accept = accept

    def set(self, text: str) -> None:
        self.text = text
        self.cursor = len(text)

    def clear(self) -> None:
        self.set("")

    def insert(self, char: str) -> bool:
        if self._accept is not None and not self._accept(char):
            return False
        self.text = self.text[: self.cursor] + char + self.text[self.cursor :]
        self.cursor += len(char)
        return True

    def backspace(self) -> None:
        if self.cursor > 0:
            self.text = self.text[: self.cursor - 1] + self.text[self.cursor :]
            self.cursor -= 1

    def delete(self) -> None:
        if self.cursor < len(self.text):
            self.text = self.text[: self.cursor] + self.text[self.cursor + 1 :]

    def handle(self, key: str) -> bool:
        """Apply an editing key. Returns False for keys that are not edits."""
        if key == keys.BACKSPACE:
            self.backspace()
        elif key == keys.DELETE:
            self.delete()
        elif key == keys.LEFT:
            self.cursor = max(self.cursor - 1, 0)
        elif key == keys.RIGHT:
            self.cursor = min(self.cursor + 1, len(self.text))
        elif key == keys.HOME:
            self.cursor = 0
        elif key == keys.END:
            self.cursor = len(self.text)
        elif keys.is_printable(key):
            self.insert(key)
        else:
            return False
        return True

    def visible(self, width: int) -> tuple[str, int]:
        """The slice that fits ``width`` columns and the cursor column within it."""
        if width <= 0:
            return "", 0
        start = 0
        while cell_len(self.text[start : self.cursor]) > width - 1:
            start += 1
        shown = ""
        for ch in self.text[start:]:
            if cell_len(shown + ch) > width:
                break
            shown += ch
        return shown, cell_len(self.text[start : self.cursor])
