"""Text clamping and cleanup for terminal display."""

from __future__ import annotations

import re

from rich.cells import cell_len, set_cell_size

_ANSI_RE = re.compile(r"\x1b\[[0-9;?]*[a-zA-Z]")


def truncate(text: object, max_length: int) -> str:
    """Clamp to ``max_length`` terminal columns with a trailing ``...``."""
    text = "" if text is None else str(text)
    if max_length <= 0:
        return ""
    if cell_len(text) <= max_length:
        return text
    if max_length < 4:
        return set_cell_size(text, max_length)
    return f"{set_cell_size(text, max_length - 3)}..."


def fit(text: object, width: int) -> str:
    """Clamp or pad ``text`` to exactly ``width`` columns."""
    return set_cell_size(truncate(text, width), max(width, 0))


def strip_ansi(text: str) -> str:
    """Strip ANSI escape sequences from text."""
    return _ANSI_RE.sub("", text)


def sanitize(text: str) -> str:
    """Drop control characters that would corrupt a panel row.

    Tabs become spaces; C0 and C1 controls and interlinear annotation
    characters are removed.
    """
    cleaned = []
    for ch in strip_ansi(text):
        cp = ord(ch)
        if ch == "\t":
            cleaned.append("    ")
        elif cp >= 32 and not 0x7F <= cp < 0xA0 and not 0xFFF9 <= cp < 0xFFFC:
            cleaned.append(ch)
    return "".join(cleaned)
