"""Spirit animal overlay. Purely cosmetic; any key closes it."""

from __future__ import annotations

from dataclasses import dataclass

from binocs.store.base import RequestRecord
from binocs.tui import colors
from binocs.tui.text import truncate
from binocs.tui.window import Window


@dataclass(frozen=True)
class Animal:
    name: str
    trait: str
    art: tuple[str, ...]


ANIMALS: tuple[Animal, ...] = (
    Animal("Fox", "Clever & Quick", (
        r" /\   /\ ",
        r"( o . o )",
        r" \  v  / ",
        r"  \___/~~",
    )),
    Animal("Owl", "Wise & Watchful", (
        r" {o,o} ",
        r" /)_)  ",
        r'  " "  ',
    )),
    Animal("Cat", "Independent & Curious", (
        r" |\__/| ",
        r" (=^.^=)",
        r"  (u u)~",
    )),
    Animal("Bear", "Strong & Patient", (
        r" (o)___(o) ",
        r"  ( o o )  ",
        r"   ( Y )   ",
        r"  /|___|\  ",
    )),
    Animal("Rabbit", "Fast & Alert", (
        r" () () ",
        r" (o.o) ",
        r" (> <) ",
    )),
    Animal("Wolf", "Loyal & Fierce", (
        r"  /\___/\  ",
        r" ( >   < ) ",
        r"  \  w  /  ",
        r"   \___/   ",
    )),
    Animal("Turtle", "Steady & Resilient", (
        r"    ____   ",
        r"  _/____\_o",
        r"   u    u  ",
    )),
    Animal("Penguin", "Cool Under Pressure", (
        r"  (o> ",
        r" //\  ",
        r" V_/_ ",
    )),
    Animal("Octopus", "Resourceful & Flexible", (
        r"   ___   ",
        r"  (o o)  ",
        r" /|||||\ ",
        r" ~~~~~~~ ",
    )),
)


def pick_animal(request: RequestRecord) -> Animal:
    """Deterministic pick from the bytes of the request's identifying fields."""
    status = "" if request.status_code is None else str(request.status_code)
    seed = f"{request.id}{request.path}{request.method}{status}"
    return ANIMALS[sum(seed.encode()) % len(ANIMALS)]


class SpiritAnimal(Window):
    WIDTH = 50
    HEIGHT = 18

    def __init__(self, height: int, width: int, top: int = 0, left: int = 0) -> None:
        super().__init__(height, width, top, left)
        self.request: RequestRecord | None = None
        self.animal: Animal | None = None

    def set_request(self, request: RequestRecord) -> None:
        self.request = request
        self.animal = pick_animal(request)

    def carry_state_from(self, other: SpiritAnimal) -> None:
        self.request = other.request
        self.animal = other.animal

    def draw(self) -> None:
        self.clear()
        self.draw_box("Spirit Animal")
        if self.animal is None or self.request is None:
            return
        y = 2
        self.write_centered(y, f"The {self.animal.name}", colors.bold(colors.HEADER))
        self.write_centered(y + 1, f'"{self.animal.trait}"', colors.STATUS_SUCCESS)
        y += 3
        art_width = max(len(line) for line in self.animal.art)
        x = max((self.width - art_width) // 2, 2)
        for line in self.animal.art:
            self.write(y, x, line)
            y += 1
        y += 1
        self.write(y, 2, "Request:", colors.MUTED)
        self.write(y + 1, 2, f"{self.request.method} {truncate(self.request.path, 30)}", colors.MUTED)
        self.write(self.height - 2, 2, "Press any key to close", colors.KEY_HINT)
