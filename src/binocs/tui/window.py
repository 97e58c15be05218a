"""Render surface: rectangular character panels and the canvas that stacks them.

Views draw into a :class:`Window` (an in-memory grid of characters and rich
styles). The controller paints windows onto a :class:`Canvas` in z-order and
the Textual host displays the canvas as one ``rich.text.Text``.
"""

from __future__ import annotations

from rich.cells import cell_len, get_character_cell_size
from rich.text import Text

from binocs.tui import colors
from binocs.tui.text import sanitize


def _put_cell(chars: list[str], styles: list[str], col: int, ch: str, style: str) -> None:
    """Set one cell, blanking the other half of any wide glyph it splits."""
    old = chars[col]
    if old == "" and ch and col > 0:
        chars[col - 1] = " "
    elif old and get_character_cell_size(old) == 2 and col + 1 < len(chars):
        if chars[col + 1] == "":
            chars[col + 1] = " "
    chars[col] = ch
    styles[col] = style


class Window:
    """A clipped character grid positioned at (``top``, ``left``).

    Writes outside the grid are dropped and text is cut at the right edge,
    so drawing never fails. A double-width character takes two cells: the
    glyph, then an empty placeholder.
    """

    def __init__(self, height: int, width: int, top: int = 0, left: int = 0) -> None:
        self.height = max(height, 0)
        self.width = max(width, 0)
        self.top = top
        self.left = left
        self.cursor: tuple[int, int] | None = None
        self.clear()

    def clear(self) -> None:
        self._chars = [[" "] * self.width for _ in range(self.height)]
        self._styles = [[""] * self.width for _ in range(self.height)]
        self.cursor = None

    def resize(self, height: int, width: int, top: int, left: int) -> None:
        self.height = max(height, 0)
        self.width = max(width, 0)
        self.top = top
        self.left = left
        self.clear()

    @property
    def geometry(self) -> tuple[int, int, int, int]:
        return self.height, self.width, self.top, self.left

    def write(self, y: int, x: int, text: object, style: str = colors.NORMAL) -> int:
        """Place ``text`` at row ``y``, column ``x``. Returns columns written."""
        if y < 0 or y >= self.height or x < 0 or x >= self.width:
            return 0
        row_chars = self._chars[y]
        row_styles = self._styles[y]
        col = x
        for ch in sanitize(str(text)):
            size = get_character_cell_size(ch)
            if size == 0:
                continue
            if col + size > self.width:
                if col < self.width:
                    _put_cell(row_chars, row_styles, col, " ", style)
                    col += 1
                break
            _put_cell(row_chars, row_styles, col, ch, style)
            if size == 2:
                _put_cell(row_chars, row_styles, col + 1, "", style)
            col += size
        return col - x

    def write_centered(self, y: int, text: str, style: str = colors.NORMAL) -> None:
        self.write(y, max((self.width - cell_len(text)) // 2, 0), text, style)

    def fill(self, y: int, x: int, width: int, style: str) -> None:
        self.write(y, x, " " * max(width, 0), style)

    def hline(self, y: int) -> None:
        """Separator across the inside of the box."""
        self.write(y, 1, "─" * max(self.width - 2, 0), colors.BORDER)

    def draw_box(self, title: str | None = None) -> None:
        if self.height < 2 or self.width < 2:
            return
        inner = "─" * (self.width - 2)
        self.write(0, 0, f"┌{inner}┐", colors.BORDER)
        self.write(self.height - 1, 0, f"└{inner}┘", colors.BORDER)
        for y in range(1, self.height - 1):
            self.write(y, 0, "│", colors.BORDER)
            self.write(y, self.width - 1, "│", colors.BORDER)
        if title:
            self.write(0, 2, f" {title} "[: max(self.width - 4, 0)], colors.TITLE)

    def set_cursor(self, y: int, x: int) -> None:
        if 0 <= y < self.height and 0 <= x < self.width:
            self.cursor = (y, x)

    def char_at(self, y: int, x: int) -> str:
        return self._chars[y][x]

    def style_at(self, y: int, x: int) -> str:
        return self._styles[y][x]

    def row_text(self, y: int) -> str:
        return "".join(self._chars[y])

    def text_lines(self) -> list[str]:
        return [self.row_text(y) for y in range(self.height)]

    def __contains__(self, text: str) -> bool:
        return any(text in line for line in self.text_lines())


class Canvas(Window):
    """Full-screen window that other windows are painted onto."""

    def __init__(self, height: int, width: int) -> None:
        super().__init__(height, width)

    def paint(self, window: Window) -> None:
        """Copy ``window`` at its position, overwriting what is below."""
        for y in range(window.height):
            cy = window.top + y
            if not 0 <= cy < self.height:
                continue
            row_chars = self._chars[cy]
            row_styles = self._styles[cy]
            for x in range(window.width):
                cx = window.left + x
                if not 0 <= cx < self.width:
                    continue
                ch = window._chars[y][x]
                if ch and cx == self.width - 1 and get_character_cell_size(ch) == 2:
                    ch = " "
                elif not ch and cx == 0:
                    ch = " "
                _put_cell(row_chars, row_styles, cx, ch, window._styles[y][x])
        if window.cursor is not None:
            y, x = window.cursor
            self.set_cursor(window.top + y, window.left + x)

    def render(self) -> Text:
        """Rich text with one run per stretch of equally-styled cells."""
        text = Text(no_wrap=True, overflow="crop", end="")
        for y in range(self.height):
            if y:
                text.append("\n")
            chars = self._chars[y]
            styles = list(self._styles[y])
            if self.cursor is not None and self.cursor[0] == y:
                cx = self.cursor[1]
                styles[cx] = f"{styles[cx]} {colors.CURSOR}".strip()
            start = 0
            for x in range(1, self.width + 1):
                if x == self.width or styles[x] != styles[start]:
                    text.append("".join(chars[start:x]), style=styles[start] or None)
                    start = x
        return text
