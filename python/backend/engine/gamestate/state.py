"""Tracks the mutable state of a game in progress."""

from __future__ import annotations

import time

from backend.models.board import Board


class GameState:
    """Holds the current board and the elapsed play time."""

    def __init__(self, board: Board) -> None:
        self.board = board
        self._start_time: float = time.time()
        self._elapsed_banked: float = 0.0
        self._running: bool = True

    # -- time tracking --------------------------------------------------------

    @property
    def elapsed_time(self) -> float:
        """Seconds played, excluding paused stretches."""
        if self._running:
            return self._elapsed_banked + (time.time() - self._start_time)
        return self._elapsed_banked

    @property
    def elapsed_ms(self) -> int:
        return int(self.elapsed_time * 1000)

    @property
    def is_running(self) -> bool:
        return self._running

    def pause(self) -> None:
        if self._running:
            self._elapsed_banked += time.time() - self._start_time
            self._running = False

    def resume(self) -> None:
        if not self._running:
            self._start_time = time.time()
            self._running = True

    def set_elapsed(self, seconds: float) -> None:
        """Restart the clock as if *seconds* had already been played."""
        self._elapsed_banked = seconds
        self._start_time = time.time()

    def restart(self) -> None:
        self.set_elapsed(0.0)
        self._running = True

    # -- moves ----------------------------------------------------------------

    @property
    def moves(self) -> int:
        return len(self.board.history)

    @property
    def is_solved(self) -> bool:
        return self.board.is_victory()
