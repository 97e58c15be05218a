"""Filter menu: two-level category/option picker overlay."""

from __future__ import annotations

from dataclasses import dataclass, replace

from binocs.store.base import RequestFilters
from binocs.tui import colors
from binocs.tui.window import Window


@dataclass(frozen=True)
class FilterCategory:
    key: str
    label: str
    options: tuple[object, ...]


CATEGORIES: tuple[FilterCategory, ...] = (
    FilterCategory("method", "HTTP Method", ("GET", "POST", "PUT", "PATCH", "DELETE")),
    FilterCategory("status", "Status Code", ("2xx", "3xx", "4xx", "5xx")),
    FilterCategory("has_exception", "Has Exception", (True, False)),
)

CLEAR_LABEL = "(Clear)"


class FilterMenu(Window):
    """Pick one option per category; the last row of each category clears it.

    Selections are pending until the caller reads :attr:`selected_filters`.
    """

    def __init__(self, height: int, width: int, top: int = 0, left: int = 0) -> None:
        super().__init__(height, width, top, left)
        self.selected_index = 0
        self.expanded: int | None = None
        self.option_index = 0
        self.selected_filters = RequestFilters()

    def set_filters(self, filters: RequestFilters) -> None:
        self.selected_filters = replace(filters)

    def carry_state_from(self, other: FilterMenu) -> None:
        self.selected_index = other.selected_index
        self.expanded = other.expanded
        self.option_index = other.option_index
        self.selected_filters = other.selected_filters

    def clear_all(self) -> None:
        self.selected_filters = replace(RequestFilters(), search=self.selected_filters.search)
        self.expanded = None
        self.option_index = 0

    @property
    def current_category(self) -> FilterCategory:
        return CATEGORIES[self.expanded if self.expanded is not None else self.selected_index]

    def move_up(self) -> None:
        if self.expanded is not None:
            self.option_index = max(self.option_index - 1, 0)
        else:
            self.selected_index = max(self.selected_index - 1, 0)

    def move_down(self) -> None:
        if self.expanded is not None:
            # one extra row for the clear option
            self.option_index = min(self.option_index + 1, len(self.current_category.options))
        else:
            self.selected_index = min(self.selected_index + 1, len(CATEGORIES) - 1)

    def select(self) -> None:
        """Expand the highlighted category, or pick the highlighted option."""
        if self.expanded is None:
            self.expanded = self.selected_index
            self.option_index = 0
            return
        category = self.current_category
        if self.option_index >= len(category.options):
            value = None
        else:
            value = category.options[self.option_index]
        self.selected_filters = replace(self.selected_filters, **{category.key: value})
        self.expanded = None
        self.option_index = 0

    def back(self) -> bool:
        """Collapse an open category. Returns True when the menu should close."""
        if self.expanded is not None:
            self.expanded = None
            self.option_index = 0
            return False
        return True

    def draw(self) -> None:
        self.clear()
        self.draw_box("Filters")
        y = 2
        for i, category in enumerate(CATEGORIES):
            if y >= self.height - 3:
                break
            current = getattr(self.selected_filters, category.key)
            label = f"{category.label}: "
            value_text = "Any" if current is None else str(current)
            if i == self.selected_index and self.expanded is None:
                self.fill(y, 2, self.width - 4, colors.SELECTED)
                self.write(y, 3, label, colors.bold(colors.SELECTED))
                self.write(y, 3 + len(label), value_text, colors.SELECTED)
                self.write(y, self.width - 5, "▶", colors.SELECTED)
            else:
                self.write(y, 3, label, colors.MUTED)
                self.write(y, 3 + len(label), value_text, colors.HEADER if current is not None else colors.MUTED)
            y += 1

            if i == self.expanded:
                for oi, option in enumerate(category.options):
                    is_current = current == option and current is not None
                    if oi == self.option_index:
                        self.fill(y, 4, self.width - 8, colors.SELECTED)
                        self.write(y, 5, str(option), colors.SELECTED)
                        if is_current:
                            self.write(y, self.width - 7, "✓", colors.SELECTED)
                    else:
                        self.write(y, 5, str(option), colors.STATUS_SUCCESS if is_current else colors.NORMAL)
                        if is_current:
                            self.write(y, self.width - 7, "✓", colors.STATUS_SUCCESS)
                    y += 1
                if self.option_index >= len(category.options):
                    self.fill(y, 4, self.width - 8, colors.SELECTED)
                    self.write(y, 5, CLEAR_LABEL, colors.SELECTED)
                else:
                    self.write(y, 5, CLEAR_LABEL, colors.MUTED)
                y += 1
            y += 1

        footer_y = self.height - 2
        self.hline(footer_y - 1)
        hints = (
            "Enter:select  Esc:back"
            if self.expanded is not None
            else "Enter:expand  c:clear all  Esc:close"
        )
        self.write(footer_y, max(self.width - len(hints) - 2, 1), hints, colors.KEY_HINT)
