"""Solver test suite.

Every test is hard-killed by ``pytest-timeout`` (configured in
``pyproject.toml``). Returned move lists are replayed through a fresh
board to verify they are legal and end in a win.
"""

from __future__ import annotations

from collections import deque
from pathlib import Path

import pytest

from backend.engine.gamesolver.solver import Solver, _Layout
from backend.models.board import Board, MoveEntry
from backend.models.puzzle_map import PuzzleMap
from backend.models.tile import Direction
from conftest import BOXED, SIDESTEP, TRAPPED, WARMUP, positions


# -- helpers ------------------------------------------------------------------


def _board(text: str, name: str = "level") -> Board:
    return Board.from_map(PuzzleMap.from_text(name, text))


def _replay(board: Board, moves: list[MoveEntry]) -> Board:
    """Apply *moves* to a copy of *board*, asserting each one is legal."""
    sandbox = board.copy()
    for move in moves:
        assert sandbox.move_block(sandbox.find_tile(move.tile_id), move.direction), move
    return sandbox


def _shortest_length(board: Board) -> int | None:
    """Plain one-sided BFS, used as a reference for solution length."""
    start = board.copy()
    seen = {start.state_key()}
    queue = deque([(start, 0)])
    while queue:
        cur, depth = queue.popleft()
        if cur.is_victory():
            return depth
        for tile in cur.tiles:
            for direction in Direction:
                nxt = cur.copy()
                if not nxt.move_block(tile, direction):
                    continue
                key = nxt.state_key()
                if key not in seen:
                    seen.add(key)
                    queue.append((nxt, depth + 1))
    return None


# -- solve --------------------------------------------------------------------


def test_sidestep_solution_is_exact(sidestep: Board) -> None:
    moves = Solver.solve(sidestep)
    assert moves == [
        MoveEntry(2, Direction.RIGHT),
        MoveEntry(2, Direction.RIGHT),
        MoveEntry(1, Direction.DOWN),
    ]
    assert _replay(sidestep, moves).is_victory()


def test_warmup_drops_straight_down() -> None:
    moves = Solver.solve(_board(WARMUP))
    assert moves == [MoveEntry(1, Direction.DOWN), MoveEntry(1, Direction.DOWN)]


@pytest.mark.parametrize("text", [SIDESTEP, WARMUP], ids=["sidestep", "warmup"])
def test_solution_is_shortest(text: str) -> None:
    board = _board(text)
    moves = Solver.solve(board)
    assert moves is not None
    assert len(moves) == _shortest_length(board)
    assert _replay(board, moves).is_victory()


def test_solves_from_current_position(sidestep: Board) -> None:
    sidestep.move_block(sidestep.find_tile(2), Direction.RIGHT)
    moves = Solver.solve(sidestep)
    assert moves == [MoveEntry(2, Direction.RIGHT), MoveEntry(1, Direction.DOWN)]


def test_input_board_is_not_moved(sidestep: Board) -> None:
    sidestep.move_block(sidestep.find_tile(2), Direction.RIGHT)
    before = positions(sidestep)
    history = sidestep.history

    Solver.solve(sidestep)

    assert positions(sidestep) == before
    assert sidestep.history == history


def test_already_won_returns_empty_list() -> None:
    board = _board("10 10\n1*,1*,*\n1*,1*,*\n")
    assert Solver.solve(board) == []
    assert Solver.hint(board) is None
    assert Solver.is_solvable(board)


@pytest.mark.parametrize("text", [BOXED, TRAPPED], ids=["boxed", "trapped"])
def test_unsolvable_returns_none(text: str) -> None:
    board = _board(text)
    assert Solver.solve(board) is None
    assert Solver.hint(board) is None
    assert not Solver.is_solvable(board)


# -- hint / helpers -----------------------------------------------------------


def test_hint_is_first_move_of_solution(sidestep: Board) -> None:
    assert Solver.hint(sidestep) == MoveEntry(2, Direction.RIGHT)
    assert Solver.is_solvable(sidestep)


def test_state_key_matches_board(classic: Board) -> None:
    assert Solver.state_key(classic) == classic.state_key()


def test_merge_reverses_and_inverts_backward_half() -> None:
    forward = [MoveEntry(1, Direction.UP), MoveEntry(2, Direction.LEFT)]
    backward = [MoveEntry(3, Direction.DOWN), MoveEntry(4, Direction.RIGHT)]
    assert Solver._merge(forward, backward) == [
        MoveEntry(1, Direction.UP),
        MoveEntry(2, Direction.LEFT),
        MoveEntry(4, Direction.LEFT),
        MoveEntry(3, Direction.UP),
    ]


def test_merge_with_empty_halves() -> None:
    assert Solver._merge([], []) == []
    assert Solver._merge([MoveEntry(1, Direction.DOWN)], []) == [MoveEntry(1, Direction.DOWN)]


# -- shipped levels -----------------------------------------------------------

LEVELS_DIR = Path(__file__).resolve().parents[2] / "levels"

# Shortest solutions in single-cell moves.
_SHIPPED = {"warmup": 2, "sidestep": 3, "crossing": 18, "classic": 116}


@pytest.mark.parametrize("name", sorted(_SHIPPED))
def test_shipped_level_is_solved(name: str) -> None:
    board = Board.from_map(PuzzleMap.from_file(LEVELS_DIR / f"{name}.txt"))

    moves = Solver.solve(board)

    assert moves is not None
    assert len(moves) == _SHIPPED[name]
    assert _replay(board, moves).is_victory()


def test_every_shipped_level_is_listed() -> None:
    assert {p.stem for p in LEVELS_DIR.glob("*.txt")} == set(_SHIPPED)


def test_relabel_matches_swapped_tiles_of_equal_shape(classic: Board) -> None:
    layout = _Layout(classic)
    ours, _, _ = layout.node(classic)
    i, j = layout.ids.index(7), layout.ids.index(8)
    theirs = list(ours)
    theirs[i], theirs[j] = theirs[j], theirs[i]

    relabel = Solver._relabel(layout, ours, tuple(theirs))

    assert relabel[7] == 8
    assert relabel[8] == 7
    assert all(relabel[t] == t for t in layout.ids if t not in (7, 8))
