"""Key names understood by the controller.

Printable keys are passed through as their character; everything else
uses Textual's key names.
"""

from __future__ import annotations

ENTER = "enter"
ESCAPE = "escape"
TAB = "tab"
SHIFT_TAB = "shift+tab"
UP = "up"
DOWN = "down"
LEFT = "left"
RIGHT = "right"
HOME = "home"
END = "end"
PAGE_UP = "pageup"
PAGE_DOWN = "pagedown"
BACKSPACE = "backspace"
DELETE = "delete"
CTRL_D = "ctrl+d"
CTRL_U = "ctrl+u"

_ALIASES = {
    "ctrl+i": TAB,
    "ctrl+m": ENTER,
    "ctrl+j": ENTER,
    "ctrl+h": BACKSPACE,
    "backtab": SHIFT_TAB,
    "ctrl+left_square_bracket": ESCAPE,
}


def normalize(key: str, character: str | None = None) -> str:
    """Map a terminal key event to a controller key name."""
    if character and len(character) == 1 and character.isprintable():
        return character
    return _ALIASES.get(key, key)


def is_printable(key: str) -> bool:
    return len(key) == 1 and key.isprintable()
