"""Board rules: legality, undo, reset, victory, copies and focus."""

from __future__ import annotations

import random

import pytest

from backend.models.board import Board, MoveEntry
from backend.models.puzzle_map import PuzzleMap
from backend.models.tile import Direction
from conftest import positions


def _assert_consistent(board: Board) -> None:
    seen: set[tuple[int, int]] = set()
    for tile in board.tiles:
        for r, c in tile.cells():
            assert 0 <= r < board.rows and 0 <= c < board.cols
            assert (r, c) not in seen
            seen.add((r, c))


# -- move legality ------------------------------------------------------------


def test_legal_move_commits_and_records(sidestep: Board) -> None:
    blocker = sidestep.find_tile(2)
    assert sidestep.move_block(blocker, Direction.RIGHT)
    assert blocker.position == (2, 1)
    assert sidestep.history == [MoveEntry(2, Direction.RIGHT)]


def test_collision_is_rejected_without_side_effects(sidestep: Board) -> None:
    before = positions(sidestep)
    assert not sidestep.move_block(sidestep.find_tile(1), Direction.DOWN)
    assert positions(sidestep) == before
    assert sidestep.history == []


@pytest.mark.parametrize(
    ("tile_id", "direction"),
    [(1, Direction.UP), (1, Direction.LEFT), (2, Direction.LEFT), (2, Direction.DOWN)],
)
def test_leaving_the_grid_is_rejected(sidestep: Board, tile_id: int, direction: Direction) -> None:
    before = positions(sidestep)
    assert not sidestep.move_block(sidestep.find_tile(tile_id), direction)
    assert positions(sidestep) == before


def test_random_play_keeps_tiles_disjoint_and_in_bounds(classic: Board) -> None:
    rng = random.Random(7)
    for _ in range(500):
        tile = rng.choice(classic.tiles)
        direction = rng.choice(list(Direction))
        before = positions(classic)
        history = classic.history
        if classic.move_block(tile, direction):
            _assert_consistent(classic)
            assert classic.history == history + [MoveEntry(tile.id, direction)]
        else:
            assert positions(classic) == before
            assert classic.history == history


def test_tile_from_a_copy_moves_the_matching_tile(classic: Board) -> None:
    other = classic.copy()
    foreign = other.find_tile(7)
    assert classic.move_block(foreign, Direction.DOWN)
    assert classic.find_tile(7).position == (4, 1)
    assert foreign.position == (3, 1)


# -- undo / reset -------------------------------------------------------------


def test_undo_reverses_moves_in_order(classic: Board) -> None:
    start = positions(classic)
    script = [
        (7, Direction.DOWN),
        (8, Direction.DOWN),
        (5, Direction.DOWN),
        (1, Direction.DOWN),
    ]
    snapshots = []
    for tile_id, direction in script:
        snapshots.append(positions(classic))
        assert classic.move_block(classic.find_tile(tile_id), direction)

    for snapshot in reversed(snapshots):
        assert classic.undo()
        assert positions(classic) == snapshot

    assert positions(classic) == start
    assert not classic.undo()


def test_reset_is_idempotent(classic: Board) -> None:
    start = positions(classic)
    classic.move_block(classic.find_tile(7), Direction.DOWN)
    classic.set_focused(classic.find_tile(1))

    classic.reset()
    once = positions(classic)
    classic.reset()

    assert positions(classic) == once == start
    assert classic.history == []
    assert classic.focused is None


# -- victory ------------------------------------------------------------------


def test_victory_when_large_tile_inside_goal(sidestep: Board) -> None:
    blocker = sidestep.find_tile(2)
    large = sidestep.find_tile(1)
    assert not sidestep.is_victory()
    sidestep.move_block(blocker, Direction.RIGHT)
    sidestep.move_block(blocker, Direction.RIGHT)
    assert not sidestep.is_victory()
    assert sidestep.move_block(large, Direction.DOWN)
    assert sidestep.is_victory()


def test_victory_does_not_need_full_goal_coverage() -> None:
    puzzle_map = PuzzleMap.from_text("wide", "10 10\n1*,1*,*\n1*,1*,*\n")
    board = Board.from_map(puzzle_map)
    assert board.is_victory()


# -- lookup, copies and focus -------------------------------------------------


def test_get_block_at(classic: Board) -> None:
    assert classic.get_block_at((1, 2)).id == 1
    assert classic.get_block_at((3, 3)).id == 6
    assert classic.get_block_at((4, 1)) is None
    assert classic.get_block_at((9, 9)) is None


def test_copy_is_an_independent_sandbox(classic: Board) -> None:
    classic.move_block(classic.find_tile(7), Direction.DOWN)
    clone = classic.copy()

    assert positions(clone) == positions(classic)
    assert clone.history == []
    assert clone.goal_cells is classic.goal_cells

    clone.move_block(clone.find_tile(8), Direction.DOWN)
    assert classic.find_tile(8).position == (3, 2)

    clone.reset()
    assert positions(clone) == positions(classic)


def test_sandbox_starts_from_initial_layout(classic: Board) -> None:
    start = positions(classic)
    classic.move_block(classic.find_tile(7), Direction.DOWN)
    sandbox = classic.sandbox()
    assert positions(sandbox) == start
    assert sandbox.move_block(sandbox.find_tile(7), Direction.DOWN)
    assert classic.find_tile(7).position == (4, 1)


def test_board_from_invalid_map_raises() -> None:
    with pytest.raises(ValueError):
        Board.from_map(PuzzleMap.from_text("broken", "10 10\n2,3\n"))


def test_move_focus_follows_front_edge(classic: Board) -> None:
    classic.set_focused(classic.find_tile(1))
    classic.move_focus(Direction.UP)
    assert classic.focused.id == 1

    classic.move_focus(Direction.DOWN)
    assert classic.focused.id == 5

    classic.set_focused(classic.find_tile(1))
    classic.move_focus(Direction.LEFT)
    assert classic.focused.id == 2
    classic.move_focus(Direction.DOWN)
    assert classic.focused.id == 4


def test_move_focus_without_focus_is_noop(classic: Board) -> None:
    classic.move_focus(Direction.RIGHT)
    assert classic.focused is None


def test_state_key_ignores_move_order(classic: Board) -> None:
    other = classic.copy()
    classic.move_block(classic.find_tile(7), Direction.DOWN)
    classic.move_block(classic.find_tile(8), Direction.DOWN)
    other.move_block(other.find_tile(8), Direction.DOWN)
    other.move_block(other.find_tile(7), Direction.DOWN)
    assert classic.state_key() == other.state_key()


def test_state_key_ignores_tile_identity(classic: Board) -> None:
    # Tiles 7 and 8 swap places: same shapes on the same cells.
    other = classic.copy()
    for tile_id, direction in [
        (7, Direction.DOWN),
        (8, Direction.DOWN),
        (7, Direction.UP),
        (7, Direction.RIGHT),
        (8, Direction.LEFT),
        (8, Direction.UP),
    ]:
        assert other.move_block(other.find_tile(tile_id), direction)
    assert other.find_tile(7).position == (3, 2)
    assert other.find_tile(8).position == (3, 1)
    assert other.state_key() == classic.state_key()
