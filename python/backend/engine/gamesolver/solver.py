"""Sliding-block puzzle solver — bidirectional breadth-first search."""

from __future__ import annotations

import logging
from collections import deque

from backend.models.board import Board, MoveEntry, StateKey
from backend.models.tile import Direction, Shape

logger = logging.getLogger(__name__)

MovePath = list[MoveEntry]

# (positions, key, occupancy); positions are top-left cell indices in
# board tile order.
_Node = tuple[tuple[int, ...], int, int]
# key -> (parent key, tile index, direction, positions)
_Visited = dict[int, tuple[int | None, int, Direction | None, tuple[int, ...]]]


class _Layout:
    """Bit-level view of a board's geometry used by the search.

    Cells are numbered ``row * cols + col``. A search key packs, for every
    shape, the set of top-left cells of the tiles with that shape, so tiles
    of equal shape are interchangeable exactly as in ``Board.state_key``.
    """

    def __init__(self, board: Board) -> None:
        self.cols = board.cols
        size = board.rows * board.cols
        self.ids = [t.id for t in board.tiles]
        self.shapes = [t.shape for t in board.tiles]
        self.large = next(
            (i for i, t in enumerate(board.tiles) if t.shape is Shape.LARGE), None
        )

        slot = {shape: i for i, shape in enumerate(Shape)}
        steps = {shape: self._steps(shape, board.rows, board.cols, slot[shape] * size)
                 for shape in set(self.shapes)}
        # steps[i][origin] -> ((direction, new origin, entering cells,
        #                       occupancy delta, key delta), ...)
        self.steps = [steps[shape] for shape in self.shapes]
        self.shift = [slot[shape] * size for shape in self.shapes]

        self.win_origins: frozenset[int] = frozenset()
        if self.large is not None:
            large = board.tiles[self.large]
            self.win_origins = frozenset(
                r * self.cols + c
                for r in range(board.rows - 1)
                for c in range(board.cols - 1)
                if all(cell in board.goal_cells for cell in large.cells((r, c)))
            )

    def _mask(self, cells) -> int:
        mask = 0
        for r, c in cells:
            mask |= 1 << (r * self.cols + c)
        return mask

    def _steps(self, shape: Shape, rows: int, cols: int, shift: int) -> dict:
        h, w = shape.footprint
        table: dict[int, tuple] = {}
        for r in range(rows - h + 1):
            for c in range(cols - w + 1):
                here = self._mask((r + dr, c + dc) for dr in range(h) for dc in range(w))
                moves = []
                for direction in Direction:
                    dr, dc = direction.delta
                    nr, nc = r + dr, c + dc
                    if nr < 0 or nc < 0 or nr + h > rows or nc + w > cols:
                        continue
                    there = self._mask(
                        (nr + i, nc + j) for i in range(h) for j in range(w)
                    )
                    origin, target = r * cols + c, nr * cols + nc
                    moves.append((
                        direction,
                        target,
                        there & ~here,
                        here ^ there,
                        ((1 << origin) | (1 << target)) << shift,
                    ))
                table[r * cols + c] = tuple(moves)
        return table

    def node(self, board: Board) -> _Node:
        positions = tuple(t.position[0] * self.cols + t.position[1] for t in board.tiles)
        key = occupancy = 0
        for i, tile in enumerate(board.tiles):
            key |= 1 << (positions[i] + self.shift[i])
            occupancy |= self._mask(tile.cells())
        return positions, key, occupancy

    def successors(self, node: _Node):
        """Yield ``(next_node, tile_index, direction)`` for every legal move.

        Tiles are visited in board order and directions in enumeration order
        so the returned solution is reproducible.
        """
        positions, key, occupancy = node
        for i, origin in enumerate(positions):
            for direction, target, entering, occ_delta, key_delta in self.steps[i][origin]:
                if occupancy & entering:
                    continue
                moved = positions[:i] + (target,) + positions[i + 1:]
                yield (moved, key ^ key_delta, occupancy ^ occ_delta), i, direction

    def is_win(self, positions: tuple[int, ...]) -> bool:
        return self.large is not None and positions[self.large] in self.win_origins


class Solver:
    """Stateless solver — all methods are static.

    The board handed in is only read; the search runs on its own compact
    copy of the tile positions.
    """

    @staticmethod
    def solve(board: Board) -> list[MoveEntry] | None:
        """Return a shortest move sequence that wins *board*.

        ``[]`` means the board is already won, ``None`` that no sequence of
        legal moves reaches a win.
        """
        if board.is_victory():
            return []

        layout = _Layout(board)
        start = layout.node(board)
        forward: _Visited = {start[1]: (None, -1, None, start[0])}
        backward: _Visited = {}
        fq: deque[_Node] = deque([start])
        bq: deque[_Node] = deque()

        while fq or bq:
            # -- one forward layer --------------------------------------------
            for _ in range(len(fq)):
                cur = fq.popleft()
                for nxt, index, direction in layout.successors(cur):
                    positions, key, _ = nxt
                    if key in forward:
                        continue
                    forward[key] = (cur[1], index, direction, positions)
                    fq.append(nxt)

                    # The first win seeds the backward side and meets it at
                    # once, so the search ends here with an empty backward half.
                    if not backward and layout.is_win(positions):
                        backward[key] = (None, -1, None, positions)
                        bq.append(nxt)
                    if key in backward:
                        return Solver._finish(layout, key, forward, backward)

            # -- one backward layer -------------------------------------------
            for _ in range(len(bq)):
                cur = bq.popleft()
                for nxt, index, direction in layout.successors(cur):
                    positions, key, _ = nxt
                    if key in backward:
                        continue
                    backward[key] = (cur[1], index, direction, positions)
                    bq.append(nxt)

                    if key in forward:
                        return Solver._finish(layout, key, forward, backward)

        logger.debug("No solution after visiting %d states", len(forward) + len(backward))
        return None

    @staticmethod
    def hint(board: Board) -> MoveEntry | None:
        """Return the first move of a shortest solution, or ``None``."""
        moves = Solver.solve(board)
        return moves[0] if moves else None

    @staticmethod
    def is_solvable(board: Board) -> bool:
        return Solver.solve(board) is not None

    @staticmethod
    def state_key(board: Board) -> StateKey:
        """Placement fingerprint; tiles of equal shape are interchangeable."""
        return board.state_key()

    # -- helpers --------------------------------------------------------------

    @staticmethod
    def _path(layout: _Layout, visited: _Visited, key: int) -> MovePath:
        """Moves from the root of *visited* to *key*, oldest first."""
        moves: MovePath = []
        parent, index, direction, _ = visited[key]
        while parent is not None:
            moves.append(MoveEntry(layout.ids[index], direction))
            parent, index, direction, _ = visited[parent]
        moves.reverse()
        return moves

    @staticmethod
    def _relabel(layout: _Layout, ours: tuple[int, ...], theirs: tuple[int, ...]) -> dict[int, int]:
        """Map tile ids of *theirs* onto the tiles of *ours* on the same cells.

        Both sides reach the meeting key, but tiles of equal shape may sit on
        swapped cells between them.
        """
        by_place = {(layout.shapes[i], p): layout.ids[i] for i, p in enumerate(ours)}
        return {layout.ids[j]: by_place[(layout.shapes[j], p)] for j, p in enumerate(theirs)}

    @staticmethod
    def _finish(
        layout: _Layout,
        key: int,
        forward: _Visited,
        backward: _Visited,
    ) -> list[MoveEntry]:
        relabel = Solver._relabel(layout, forward[key][3], backward[key][3])
        backward_path = [
            MoveEntry(relabel[m.tile_id], m.direction)
            for m in Solver._path(layout, backward, key)
        ]
        moves = Solver._merge(Solver._path(layout, forward, key), backward_path)
        logger.debug(
            "Solved in %d moves (%d forward / %d backward states)",
            len(moves), len(forward), len(backward),
        )
        return moves

    @staticmethod
    def _merge(forward_path: MovePath, backward_path: MovePath) -> list[MoveEntry]:
        """Join the two halves at the meeting state.

        The backward half holds the moves made walking away from the goal,
        so it is replayed in reverse with every direction flipped.
        """
        return list(forward_path) + [m.inverse() for m in reversed(backward_path)]
