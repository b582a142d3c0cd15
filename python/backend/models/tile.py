"""Tile geometry for the sliding-block puzzle."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class Direction(StrEnum):
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"

    @property
    def delta(self) -> tuple[int, int]:
        """``(d_row, d_col)`` for a one-cell step."""
        return _DELTAS[self]

    @property
    def opposite(self) -> Direction:
        return _OPPOSITES[self]


_DELTAS: dict[Direction, tuple[int, int]] = {
    Direction.UP: (-1, 0),
    Direction.DOWN: (1, 0),
    Direction.LEFT: (0, -1),
    Direction.RIGHT: (0, 1),
}

_OPPOSITES: dict[Direction, Direction] = {
    Direction.UP: Direction.DOWN,
    Direction.DOWN: Direction.UP,
    Direction.LEFT: Direction.RIGHT,
    Direction.RIGHT: Direction.LEFT,
}


class Shape(StrEnum):
    SMALL = "1x1"
    HORIZONTAL = "1x2"
    VERTICAL = "2x1"
    LARGE = "2x2"

    @property
    def footprint(self) -> tuple[int, int]:
        """``(height, width)`` in cells."""
        return _FOOTPRINTS[self]

    @property
    def inertia(self) -> float:
        return _INERTIA[self]

    @classmethod
    def from_footprint(cls, height: int, width: int) -> Shape:
        for shape, dims in _FOOTPRINTS.items():
            if dims == (height, width):
                return shape
        raise ValueError(f"No tile shape is {height}×{width}.")


_FOOTPRINTS: dict[Shape, tuple[int, int]] = {
    Shape.SMALL: (1, 1),
    Shape.HORIZONTAL: (1, 2),
    Shape.VERTICAL: (2, 1),
    Shape.LARGE: (2, 2),
}

# Animation pacing only; the rules never look at it.
_INERTIA: dict[Shape, float] = {
    Shape.SMALL: 1.0,
    Shape.HORIZONTAL: 1.2,
    Shape.VERTICAL: 1.2,
    Shape.LARGE: 1.5,
}


@dataclass
class Tile:
    """A rigid rectangular piece.

    ``position`` is the top-left cell as ``(row, col)``. The footprint comes
    from ``shape`` and never changes; only the position moves.
    """

    id: int
    shape: Shape
    position: tuple[int, int]

    # -- geometry -------------------------------------------------------------

    @property
    def height(self) -> int:
        return self.shape.footprint[0]

    @property
    def width(self) -> int:
        return self.shape.footprint[1]

    @property
    def inertia(self) -> float:
        return self.shape.inertia

    def cells(self, position: tuple[int, int] | None = None) -> list[tuple[int, int]]:
        """Cells covered by the tile, row-major.

        Pass *position* to get the footprint at a hypothetical top-left.
        """
        row, col = self.position if position is None else position
        return [
            (row + dr, col + dc)
            for dr in range(self.height)
            for dc in range(self.width)
        ]

    def next_position(self, direction: Direction) -> tuple[int, int]:
        dr, dc = direction.delta
        return (self.position[0] + dr, self.position[1] + dc)

    def copy(self) -> Tile:
        return Tile(id=self.id, shape=self.shape, position=self.position)
