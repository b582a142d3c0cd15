"""Board model for the sliding-block puzzle."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from backend.models.puzzle_map import PuzzleMap
from backend.models.tile import Direction, Shape, Tile

logger = logging.getLogger(__name__)

Cell = tuple[int, int]
StateKey = tuple[tuple[str, int, int, int, int], ...]


@dataclass(frozen=True)
class MoveEntry:
    """One committed move: which tile, which way."""

    tile_id: int
    direction: Direction

    def inverse(self) -> MoveEntry:
        return MoveEntry(self.tile_id, self.direction.opposite)


class Board:
    """Live arrangement of tiles plus the rules that govern it.

    Every board owns its tiles outright. Tiles are looked up by id, so a
    tile object taken from another board (for example a copy) addresses the
    tile with the same id here. Occupied cells are pairwise disjoint and
    inside the grid at every observable instant.
    """

    def __init__(
        self,
        rows: int,
        cols: int,
        tiles: Iterable[Tile],
        goal_cells: frozenset[Cell],
    ) -> None:
        self.rows = rows
        self.cols = cols
        self.goal_cells = goal_cells
        self._tiles: list[Tile] = [t.copy() for t in tiles]
        self._by_id: dict[int, Tile] = {t.id: t for t in self._tiles}
        self._initial: dict[int, Cell] = {t.id: t.position for t in self._tiles}
        self._history: list[MoveEntry] = []
        self._focused: Tile | None = None
        self._occupied: dict[Cell, int] = {}
        self._reindex()

    # -- construction helpers -------------------------------------------------

    @classmethod
    def from_map(cls, puzzle_map: PuzzleMap) -> Board:
        if not puzzle_map.is_valid:
            raise ValueError(
                f"Level {puzzle_map.name!r} is invalid: {'; '.join(puzzle_map.errors)}"
            )
        return cls(
            rows=puzzle_map.rows,
            cols=puzzle_map.cols,
            tiles=puzzle_map.tiles,
            goal_cells=puzzle_map.goal_cells,
        )

    def copy(self) -> Board:
        """Independent sandbox starting from the current positions.

        History and focus are not carried over.
        """
        return Board(self.rows, self.cols, self._tiles, self.goal_cells)

    def sandbox(self) -> Board:
        """Independent copy positioned at this board's starting layout."""
        clone = self.copy()
        for tile in clone._tiles:
            tile.position = self._initial[tile.id]
        clone._initial = dict(self._initial)
        clone._reindex()
        return clone

    # -- queries --------------------------------------------------------------

    @property
    def tiles(self) -> list[Tile]:
        return self._tiles

    @property
    def history(self) -> list[MoveEntry]:
        """Moves made since the last reset, oldest first."""
        return list(self._history)

    @property
    def focused(self) -> Tile | None:
        return self._focused

    def find_tile(self, tile_id: int) -> Tile | None:
        return self._by_id.get(tile_id)

    def get_block_at(self, cell: Cell) -> Tile | None:
        for tile in self._tiles:
            if cell in tile.cells():
                return tile
        return None

    def large_tile(self) -> Tile | None:
        for tile in self._tiles:
            if tile.shape is Shape.LARGE:
                return tile
        return None

    def is_victory(self) -> bool:
        """True when the 2×2 tile lies entirely inside the goal region."""
        large = self.large_tile()
        if large is None:
            return False
        return all(cell in self.goal_cells for cell in large.cells())

    def can_move(self, tile: Tile, direction: Direction) -> bool:
        own = self._by_id.get(tile.id)
        if own is None:
            return False
        nr, nc = own.next_position(direction)
        if nr < 0 or nc < 0 or nr + own.height > self.rows or nc + own.width > self.cols:
            return False
        for cell in own.cells((nr, nc)):
            holder = self._occupied.get(cell)
            if holder is not None and holder != own.id:
                return False
        return True

    def state_key(self) -> StateKey:
        """Order-independent fingerprint of the tile placements."""
        return tuple(
            sorted(
                (t.shape.value, t.position[0], t.position[1], t.height, t.width)
                for t in self._tiles
            )
        )

    # -- mutation -------------------------------------------------------------

    def move_block(self, tile: Tile, direction: Direction) -> bool:
        """Slide *tile* one cell in *direction*.

        Returns False and leaves the board untouched if the tile would leave
        the grid or overlap another tile.
        """
        if not self.can_move(tile, direction):
            return False
        own = self._by_id[tile.id]
        self._shift(own, direction)
        self._history.append(MoveEntry(own.id, direction))
        if self.is_victory():
            logger.debug("Victory after %d moves", len(self._history))
        return True

    def undo(self) -> bool:
        """Revert the most recent move. Returns False with empty history."""
        if not self._history:
            return False
        last = self._history.pop()
        self._shift(self._by_id[last.tile_id], last.direction.opposite)
        return True

    def reset(self) -> None:
        """Return every tile to its starting cell; clear history and focus."""
        for tile in self._tiles:
            tile.position = self._initial[tile.id]
        self._reindex()
        self._history.clear()
        self._focused = None

    def _shift(self, tile: Tile, direction: Direction) -> None:
        for cell in tile.cells():
            del self._occupied[cell]
        tile.position = tile.next_position(direction)
        for cell in tile.cells():
            self._occupied[cell] = tile.id

    def _reindex(self) -> None:
        self._occupied = {cell: t.id for t in self._tiles for cell in t.cells()}

    # -- focus ----------------------------------------------------------------

    def set_focused(self, tile: Tile | None) -> None:
        self._focused = None if tile is None else self._by_id.get(tile.id)

    def move_focus(self, direction: Direction) -> None:
        """Focus the tile just past the focused tile's front edge, if any."""
        if self._focused is None:
            return
        row, col = self._focused.position
        front = {
            Direction.UP: (row - 1, col),
            Direction.DOWN: (row + self._focused.height, col),
            Direction.LEFT: (row, col - 1),
            Direction.RIGHT: (row, col + self._focused.width),
        }[direction]
        neighbour = self.get_block_at(front)
        if neighbour is not None:
            self._focused = neighbour
