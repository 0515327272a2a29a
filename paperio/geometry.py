from __future__ import annotations

from enum import Enum
from typing import Iterator, List, NamedTuple, Tuple


class Direction(Enum):
    # Clockwise order; opposite() relies on it.
    UP = "up"
    RIGHT = "right"
    DOWN = "down"
    LEFT = "left"

    @property
    def delta(self) -> Tuple[int, int]:
        return _DELTAS[self]

    def opposite(self) -> Direction:
        order = list(Direction)
        return order[(order.index(self) + 2) % 4]


_DELTAS = {
    Direction.UP: (0, 1),
    Direction.RIGHT: (1, 0),
    Direction.DOWN: (0, -1),
    Direction.LEFT: (-1, 0),
}


class Cell(NamedTuple):
    """Grid coordinate. Up is +y."""

    x: int
    y: int

    def moved(self, direction: Direction) -> Cell:
        dx, dy = direction.delta
        return Cell(self.x + dx, self.y + dy)

    def neighbors_unchecked(self) -> Iterator[Cell]:
        # May leave the grid; callers bound-check.
        for dx, dy in ((-1, 0), (1, 0), (0, -1), (0, 1)):
            yield Cell(self.x + dx, self.y + dy)

    def to_json(self) -> List[int]:
        return [self.x, self.y]
