"""Core gameplay logic — processes moves, limits and the win condition."""

from __future__ import annotations

import logging
from enum import StrEnum

from backend.engine.gamesolver import Solver
from backend.engine.gamestate import GameState
from backend.models.board import Board, Cell, MoveEntry
from backend.models.puzzle_map import PuzzleMap
from backend.models.savestore import SaveStore, Stats
from backend.models.tile import Direction, Tile

logger = logging.getLogger(__name__)


class Mode(StrEnum):
    NORMAL = "normal"
    TIME_LIMIT = "time_limit"
    MOVE_LIMIT = "move_limit"


class GamePlay:
    """Orchestrates a single game session on one level.

    When a *store* and *user* are given, completion stats are read at start
    and every finished or saved game is written back.
    """

    def __init__(
        self,
        puzzle_map: PuzzleMap,
        mode: Mode = Mode.NORMAL,
        store: SaveStore | None = None,
        user: str | None = None,
    ) -> None:
        self.puzzle_map = puzzle_map
        self.mode = Mode(mode)
        self.store = store
        self.user = user
        self.state = GameState(Board.from_map(puzzle_map))
        self.stats = self._read_stats()

    @property
    def board(self) -> Board:
        return self.state.board

    # -- movement -------------------------------------------------------------

    def move(self, direction: Direction) -> bool:
        """Slide the focused tile. Returns False if nothing moved."""
        focused = self.board.focused
        if focused is None:
            return False
        return self.move_tile(focused, direction)

    def move_tile(self, tile: Tile, direction: Direction) -> bool:
        if self.is_won or self.is_failed:
            return False
        return self.board.move_block(tile, direction)

    def undo(self) -> bool:
        return self.board.undo()

    def restart(self) -> None:
        self.board.reset()
        self.state.restart()

    # -- focus ----------------------------------------------------------------

    def focus_at(self, cell: Cell) -> Tile | None:
        tile = self.board.get_block_at(cell)
        self.board.set_focused(tile)
        return tile

    def move_focus(self, direction: Direction) -> None:
        self.board.move_focus(direction)

    def cycle_focus(self, step: int = 1) -> Tile:
        """Focus the next tile in board order (the first if none is focused)."""
        tiles = self.board.tiles
        focused = self.board.focused
        if focused is None:
            index = 0 if step > 0 else len(tiles) - 1
        else:
            index = (tiles.index(focused) + step) % len(tiles)
        self.board.set_focused(tiles[index])
        return tiles[index]

    # -- solver helpers -------------------------------------------------------

    def hint(self) -> MoveEntry | None:
        return Solver.hint(self.board)

    def apply_hint(self) -> MoveEntry | None:
        """Play the next move of a shortest solution and focus its tile."""
        move = self.hint()
        if move is None:
            return None
        tile = self.board.find_tile(move.tile_id)
        self.board.set_focused(tile)
        self.move_tile(tile, move.direction)
        return move

    def solve(self) -> list[MoveEntry] | None:
        return Solver.solve(self.board)

    # -- queries --------------------------------------------------------------

    @property
    def is_won(self) -> bool:
        return self.state.is_solved

    @property
    def is_failed(self) -> bool:
        if self.mode is Mode.TIME_LIMIT:
            return self.state.elapsed_time > self.puzzle_map.time_limit
        if self.mode is Mode.MOVE_LIMIT:
            return self.state.moves > self.puzzle_map.move_limit
        return False

    # -- results & persistence ------------------------------------------------

    def finish(self) -> tuple[bool, bool]:
        """Stop the clock and record the outcome.

        Returns ``(new_best_time, new_best_moves)``; both False unless the
        game was won with a better result than any before.
        """
        self.state.pause()
        elapsed_ms = self.state.elapsed_ms
        moves = self.state.moves
        new_time = new_moves = False

        if self.is_won:
            best_time, best_moves = self.stats.best_time_ms, self.stats.best_moves
            new_time = best_time is None or elapsed_ms < best_time
            new_moves = best_moves is None or moves < best_moves
            self.stats = Stats(
                completed_count=self.stats.completed_count + 1,
                best_time_ms=elapsed_ms if new_time else best_time,
                best_moves=moves if new_moves else best_moves,
            )
            logger.info(
                "%s cleared %s in %d moves, %.1fs",
                self.user or "guest", self.puzzle_map.name, moves, elapsed_ms / 1000,
            )
        else:
            logger.info("%s failed %s (%s)", self.user or "guest", self.puzzle_map.name, self.mode)

        if self.can_save:
            self.store.save_result(
                self.puzzle_map, self.user, self.stats, self.mode,
                self.board.history, elapsed_ms,
            )
        return new_time, new_moves

    @property
    def can_save(self) -> bool:
        return self.store is not None and self.user is not None

    def leave(self) -> bool:
        """Save an unfinished game before leaving it.

        Guests (no store or no user) and finished games are not saved.
        Returns True if a save was written.
        """
        if not self.can_save or self.is_won or self.is_failed:
            return False
        self.save()
        logger.info("Saved %s for %s on leaving", self.puzzle_map.name, self.user)
        return True

    def save(self) -> None:
        store, user = self._require_store()
        store.save_manual(
            self.puzzle_map, user, self.stats, self.mode,
            self.board.history, self.state.elapsed_ms,
        )

    def load(self) -> int:
        """Restore the saved game onto the board; returns elapsed ms."""
        store, user = self._require_store()
        elapsed_ms = store.load(self.board, self.puzzle_map, user)
        self.state.set_elapsed(elapsed_ms / 1000)
        self.state.resume()
        return elapsed_ms

    # -- helpers --------------------------------------------------------------

    def _read_stats(self) -> Stats:
        if not self.can_save:
            return Stats()
        return self.store.get_stats(self.user, self.puzzle_map) or Stats()

    def _require_store(self) -> tuple[SaveStore, str]:
        if self.store is None or self.user is None:
            raise RuntimeError("Saving needs a save store and a user name.")
        return self.store, self.user
