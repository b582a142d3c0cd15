"""Per-user save files with checksum verification and history repair.

One file per user, ``<save_dir>/<user>.sav``::

    classic
    [classic,5d41402abc4b2a76b9719d911017c592]{<body>}
    [warmup,...]{<body>}

The first line names the most recently saved-in-progress map (or ``null``).
Each further line stores one map's entry. ``<body>`` is nine
comma-separated fields::

    mapChecksum,completedCount,bestTimeMs,bestMoves,inGame,mode,movesSoFar,elapsedMs,history

with ``history`` written as ``;``-terminated ``tileId:DIRECTION`` tokens.
The bracketed checksum is the MD5 of ``<body>``; ``mapChecksum`` is the MD5
of the level file the entry was recorded against.
"""

from __future__ import annotations

import hashlib
import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path

from backend.models.board import Board, MoveEntry
from backend.models.puzzle_map import PuzzleMap
from backend.models.tile import Direction

logger = logging.getLogger(__name__)

SAVE_EXT = ".sav"
NO_RECENT_MAP = "null"
CREDIT_PER_MOVE_MS = 1000

_LINE_RE = re.compile(
    r"^\[(?P<name>[^,\]]+),(?P<checksum>[0-9a-fA-F]{32})\]\{(?P<body>.+)\}$"
)
_HEX32_RE = re.compile(r"^[0-9a-fA-F]{32}$")
_COUNT_RE = re.compile(r"^\d+$")
_HISTORY_RE = re.compile(r"^(?:\d+:(?:UP|DOWN|LEFT|RIGHT);)*$")
_USER_RE = re.compile(r"[\w.-]+")

Confirm = Callable[[str], bool]


# -- errors -------------------------------------------------------------------


class SaveError(Exception):
    """Base class for save-file problems."""


class SaveNotFoundError(SaveError):
    """No save file for the user, or no entry for the map."""


class SaveFormatError(SaveError):
    """The save file does not match the expected structure."""


class IntegrityDeclinedError(SaveError):
    """A checksum or history check failed and the user declined repair."""


# -- records ------------------------------------------------------------------


@dataclass(frozen=True)
class Stats:
    completed_count: int = 0
    best_time_ms: int | None = None
    best_moves: int | None = None


@dataclass
class SaveEntry:
    """One user's progress on one map."""

    map_name: str
    map_checksum: str
    completed_count: int = 0
    best_time_ms: int | None = None
    best_moves: int | None = None
    in_game: bool = False
    mode: str = "normal"
    moves_so_far: int = 0
    elapsed_ms: int = 0
    history: list[MoveEntry] = field(default_factory=list)

    @property
    def stats(self) -> Stats:
        return Stats(self.completed_count, self.best_time_ms, self.best_moves)

    def to_body(self) -> str:
        history = "".join(f"{m.tile_id}:{m.direction.name};" for m in self.history)
        return ",".join(
            [
                self.map_checksum,
                str(self.completed_count),
                str(self.best_time_ms or 0),
                str(self.best_moves or 0),
                "true" if self.in_game else "false",
                self.mode,
                str(self.moves_so_far),
                str(self.elapsed_ms),
                history,
            ]
        )

    def line_checksum(self) -> str:
        return _md5(self.to_body())

    def to_line(self) -> str:
        return f"[{self.map_name},{self.line_checksum()}]{{{self.to_body()}}}"

    @classmethod
    def from_body(cls, map_name: str, body: str, lineno: int) -> SaveEntry:
        parts = body.split(",", 8)
        if len(parts) != 9:
            raise SaveFormatError(f"line {lineno}: expected 9 fields, got {len(parts)}")
        (map_checksum, completed, best_time, best_moves,
         in_game, mode, moves, elapsed, history) = parts

        if not _HEX32_RE.match(map_checksum):
            raise SaveFormatError(f"line {lineno}: bad map checksum")
        if in_game not in ("true", "false"):
            raise SaveFormatError(f"line {lineno}: bad in-game flag {in_game!r}")
        if not mode:
            raise SaveFormatError(f"line {lineno}: empty mode")
        if not _HISTORY_RE.match(history):
            raise SaveFormatError(f"line {lineno}: malformed move history")

        completed_count = _count(completed, "completed count", lineno)
        entry = cls(
            map_name=map_name,
            map_checksum=map_checksum.lower(),
            completed_count=completed_count,
            best_time_ms=_count(best_time, "best time", lineno),
            best_moves=_count(best_moves, "best moves", lineno),
            in_game=in_game == "true",
            mode=mode,
            moves_so_far=_count(moves, "moves so far", lineno),
            elapsed_ms=_count(elapsed, "elapsed time", lineno),
            history=[_parse_move(token) for token in history.split(";") if token],
        )
        if completed_count == 0:
            entry.best_time_ms = None
            entry.best_moves = None
        return entry


@dataclass
class _SaveFile:
    recent_line: str
    entries: dict[str, SaveEntry]
    intact: dict[str, bool]


# -- store --------------------------------------------------------------------


class SaveStore:
    """Reads and writes save files under *save_dir*.

    *confirm* is asked a yes/no question whenever an integrity check fails.
    Without one every such question is answered "no".
    """

    def __init__(self, save_dir: Path, confirm: Confirm | None = None) -> None:
        self.save_dir = Path(save_dir)
        self.confirm: Confirm = confirm or (lambda _message: False)

    def path_for(self, user: str) -> Path:
        if not is_valid_user_name(user):
            raise ValueError(f"Invalid user name {user!r}.")
        return self.save_dir / f"{user}{SAVE_EXT}"

    # -- queries --------------------------------------------------------------

    def get_stats(self, user: str, puzzle_map: PuzzleMap) -> Stats | None:
        """Completion stats for *puzzle_map*, or None if there are none."""
        if not is_valid_user_name(user):
            logger.warning("No stats for invalid user name %r", user)
            return None
        try:
            save = self._read(user)
        except SaveFormatError as exc:
            logger.warning("Ignoring unreadable save for %s: %s", user, exc)
            return None
        if save is None or puzzle_map.name not in save.entries:
            return None

        entry = save.entries[puzzle_map.name]
        if not save.intact[puzzle_map.name]:
            if not self.confirm(
                f"The saved record for {puzzle_map.name} failed its checksum. "
                "Trust it anyway?"
            ):
                return None
            logger.warning("Re-checksumming %s for %s on request", puzzle_map.name, user)
            self._write(user, save.recent_line, save.entries.values())
        return entry.stats

    def get_recent_map_name(self, user: str) -> str | None:
        if not is_valid_user_name(user):
            return None
        path = self.path_for(user)
        if not path.exists():
            return None
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except OSError as exc:
            logger.warning("Cannot read %s: %s", path, exc)
            return None
        if not lines or lines[0] in ("", NO_RECENT_MAP):
            return None
        return lines[0]

    # -- loading --------------------------------------------------------------

    def load(self, board: Board, puzzle_map: PuzzleMap, user: str) -> int:
        """Restore the saved game for *puzzle_map* onto *board*.

        Returns the elapsed time in milliseconds. The board is only touched
        once every check has passed or been repaired.
        """
        save = self._read(user)
        if save is None:
            raise SaveNotFoundError(f"No save file for {user}.")
        entry = save.entries.get(puzzle_map.name)
        if entry is None:
            raise SaveNotFoundError(f"No saved game for {puzzle_map.name}.")

        if not save.intact[puzzle_map.name]:
            self._ask_or_abort(
                f"The saved record for {puzzle_map.name} failed its checksum. "
                "Continue anyway?",
                "record checksum mismatch",
            )
            self._write(user, save.recent_line, save.entries.values())

        if entry.map_checksum != puzzle_map.checksum:
            self._ask_or_abort(
                f"The level {puzzle_map.name} changed since this game was saved. "
                "Continue anyway?",
                "level checksum mismatch",
            )
            entry.map_checksum = puzzle_map.checksum
            self._write(user, save.recent_line, save.entries.values())

        valid = self.validate_history(board, entry.history)
        if valid < len(entry.history):
            self._ask_or_abort(
                f"Only {valid} of {len(entry.history)} saved moves are legal. "
                "Keep the legal part?",
                "move history is inconsistent",
            )
            logger.warning(
                "Truncating %s history for %s from %d to %d moves",
                puzzle_map.name, user, len(entry.history), valid,
            )
            entry.history = entry.history[:valid]
            entry.moves_so_far = valid
            entry.elapsed_ms = valid * CREDIT_PER_MOVE_MS
            self._write(user, save.recent_line, save.entries.values())

        board.reset()
        for move in entry.history:
            board.move_block(board.find_tile(move.tile_id), move.direction)
        return entry.elapsed_ms

    @staticmethod
    def validate_history(board: Board, history: Iterable[MoveEntry]) -> int:
        """Count how many moves replay legally from the board's start.

        Counting stops at the first rejected move. *board* is not modified.
        """
        sandbox = board.sandbox()
        valid = 0
        for move in history:
            tile = sandbox.find_tile(move.tile_id)
            if tile is None or not sandbox.move_block(tile, move.direction):
                break
            valid += 1
        return valid

    # -- saving ---------------------------------------------------------------

    def save_result(
        self,
        puzzle_map: PuzzleMap,
        user: str,
        stats: Stats,
        mode: str,
        history: list[MoveEntry],
        elapsed_ms: int,
    ) -> None:
        """Record a finished game (won or lost)."""
        self._save(puzzle_map, user, stats, mode, history, elapsed_ms, in_game=False)

    def save_manual(
        self,
        puzzle_map: PuzzleMap,
        user: str,
        stats: Stats,
        mode: str,
        history: list[MoveEntry],
        elapsed_ms: int,
    ) -> None:
        """Record a game in progress and mark its map as most recent."""
        self._save(puzzle_map, user, stats, mode, history, elapsed_ms, in_game=True)

    def reset_all_saves(self, user: str) -> None:
        path = self.path_for(user)
        path.unlink(missing_ok=True)
        logger.info("Deleted saves for %s", user)

    # -- persistence ----------------------------------------------------------

    def _save(
        self,
        puzzle_map: PuzzleMap,
        user: str,
        stats: Stats,
        mode: str,
        history: list[MoveEntry],
        elapsed_ms: int,
        in_game: bool,
    ) -> None:
        try:
            save = self._read(user)
        except SaveFormatError as exc:
            logger.warning("Replacing unreadable save for %s: %s", user, exc)
            save = None
        entries = save.entries if save is not None else {}

        entry = entries.get(puzzle_map.name) or SaveEntry(
            map_name=puzzle_map.name, map_checksum=puzzle_map.checksum
        )
        entry.map_checksum = puzzle_map.checksum
        entry.completed_count = stats.completed_count
        entry.best_time_ms = stats.best_time_ms
        entry.best_moves = stats.best_moves
        entry.in_game = in_game
        entry.mode = str(mode)
        entry.history = list(history)
        entry.moves_so_far = len(entry.history)
        entry.elapsed_ms = int(elapsed_ms)
        entries[puzzle_map.name] = entry

        recent = puzzle_map.name if in_game else NO_RECENT_MAP
        self._write(user, recent, entries.values())
        logger.debug("Saved %s for %s (%d moves)", puzzle_map.name, user, entry.moves_so_far)

    def _read(self, user: str) -> _SaveFile | None:
        path = self.path_for(user)
        if not path.exists():
            return None
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except (OSError, UnicodeDecodeError) as exc:
            raise SaveFormatError(f"cannot read {path.name}: {exc}") from exc
        if not lines or not lines[0].strip():
            raise SaveFormatError("save file is empty")

        entries: dict[str, SaveEntry] = {}
        intact: dict[str, bool] = {}
        for lineno, line in enumerate(lines[1:], start=2):
            match = _LINE_RE.match(line.strip())
            if match is None:
                raise SaveFormatError(f"line {lineno}: malformed record")
            name = match["name"]
            if name in entries:
                raise SaveFormatError(f"line {lineno}: duplicate record for {name}")
            entries[name] = SaveEntry.from_body(name, match["body"], lineno)
            intact[name] = _md5(match["body"]) == match["checksum"].lower()
        return _SaveFile(lines[0], entries, intact)

    def _write(self, user: str, recent_line: str, entries: Iterable[SaveEntry]) -> None:
        path = self.path_for(user)
        path.parent.mkdir(parents=True, exist_ok=True)
        lines = [recent_line] + [entry.to_line() for entry in entries]
        tmp = path.with_name(path.name + ".tmp")
        tmp.write_text("\n".join(lines) + "\n", encoding="utf-8")
        tmp.replace(path)

    def _ask_or_abort(self, question: str, reason: str) -> None:
        if not self.confirm(question):
            raise IntegrityDeclinedError(f"Load cancelled: {reason}.")


# -- helpers ------------------------------------------------------------------


def is_valid_user_name(name: str) -> bool:
    """User names become file names: letters, digits, underscore, dot and dash."""
    return bool(_USER_RE.fullmatch(name)) and name not in (".", "..")


def _md5(text: str) -> str:
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def _count(value: str, label: str, lineno: int) -> int:
    if not _COUNT_RE.match(value):
        raise SaveFormatError(f"line {lineno}: {label} must be a non-negative integer")
    return int(value)


def _parse_move(token: str) -> MoveEntry:
    tile_id, direction = token.split(":")
    return MoveEntry(int(tile_id), Direction[direction])
