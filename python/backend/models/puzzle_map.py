"""Level file parsing and validation.

A level file looks like::

    300 120
    2,1,1,3
    2,1,1,3
    4,5,5,6
    4,7*,8*,6
    9,*,*,10

The first line holds the time limit (seconds) and the move limit. Every
following line is one grid row of comma-separated cells: empty for a free
cell, otherwise a tile id. A trailing ``*`` marks the cell as part of the
goal region.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from pathlib import Path

from backend.models.tile import Shape, Tile

logger = logging.getLogger(__name__)

GOAL_MARK = "*"
MIN_GOAL_CELLS = 4


@dataclass(frozen=True)
class PuzzleMap:
    """Immutable parsed level.

    Construction never raises on bad level data; check ``is_valid`` (and
    ``errors`` for the reasons) before building a board from it.
    """

    name: str
    time_limit: int
    move_limit: int
    rows: int
    cols: int
    layout: tuple[tuple[int, ...], ...]
    goal_cells: frozenset[tuple[int, int]]
    tiles: tuple[Tile, ...]
    checksum: str
    errors: tuple[str, ...] = field(default=())

    # -- construction helpers -------------------------------------------------

    @classmethod
    def from_file(cls, path: Path) -> PuzzleMap:
        """Parse the level at *path*; the map name is the file stem."""
        path = Path(path)
        try:
            raw = path.read_bytes()
        except OSError as exc:
            return cls._invalid(path.stem, b"", f"cannot read level file: {exc}")
        return cls.from_bytes(path.stem, raw)

    @classmethod
    def from_text(cls, name: str, text: str) -> PuzzleMap:
        return cls.from_bytes(name, text.encode("utf-8"))

    @classmethod
    def from_bytes(cls, name: str, raw: bytes) -> PuzzleMap:
        checksum = hashlib.md5(raw).hexdigest()
        errors: list[str] = []

        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError:
            return cls._invalid(name, raw, "level file is not valid UTF-8")

        lines = text.splitlines()
        while lines and not lines[-1].strip():
            lines.pop()
        if not lines:
            return cls._invalid(name, raw, "level file is empty")

        time_limit, move_limit = 0, 0
        limits = lines[0].split()
        try:
            time_limit, move_limit = int(limits[0]), int(limits[1])
        except (IndexError, ValueError):
            errors.append(f"cannot parse time/move limits from {lines[0]!r}")

        raw_rows = [line.strip().split(",") for line in lines[1:]]
        rows = len(raw_rows)
        cols = max((len(parts) for parts in raw_rows), default=0)
        if rows == 0 or cols == 0:
            errors.append("grid is empty")

        layout: list[list[int]] = []
        goal: set[tuple[int, int]] = set()
        for r, parts in enumerate(raw_rows):
            row = [0] * cols
            for c, token in enumerate(parts):
                token = token.strip()
                if token.endswith(GOAL_MARK):
                    goal.add((r, c))
                    token = token[:-1].strip()
                if not token:
                    continue
                try:
                    value = int(token)
                except ValueError:
                    value = -1
                if value < 0:
                    errors.append(f"bad cell {token!r} at row {r + 1}, column {c + 1}")
                    continue
                row[c] = value
            layout.append(row)

        tiles = _build_tiles(layout, errors)

        large = [t for t in tiles if t.shape is Shape.LARGE]
        if len(large) != 1:
            errors.append(f"expected exactly one 2×2 tile, found {len(large)}")
        if len(goal) < MIN_GOAL_CELLS:
            errors.append(
                f"goal region has {len(goal)} cells, needs at least {MIN_GOAL_CELLS}"
            )

        for message in errors:
            logger.warning("Level %s: %s", name, message)

        return cls(
            name=name,
            time_limit=time_limit,
            move_limit=move_limit,
            rows=rows,
            cols=cols,
            layout=tuple(tuple(row) for row in layout),
            goal_cells=frozenset(goal),
            tiles=tuple(tiles),
            checksum=checksum,
            errors=tuple(errors),
        )

    @classmethod
    def _invalid(cls, name: str, raw: bytes, reason: str) -> PuzzleMap:
        logger.warning("Level %s: %s", name, reason)
        return cls(
            name=name,
            time_limit=0,
            move_limit=0,
            rows=0,
            cols=0,
            layout=(),
            goal_cells=frozenset(),
            tiles=(),
            checksum=hashlib.md5(raw).hexdigest(),
            errors=(reason,),
        )

    # -- queries --------------------------------------------------------------

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def large_tile(self) -> Tile | None:
        for tile in self.tiles:
            if tile.shape is Shape.LARGE:
                return tile
        return None


def _build_tiles(layout: list[list[int]], errors: list[str]) -> list[Tile]:
    """Group cells by id and turn each legal group into a tile.

    Illegal groups are reported in *errors* and skipped.
    """
    cells_by_id: dict[int, list[tuple[int, int]]] = {}
    for r, row in enumerate(layout):
        for c, tile_id in enumerate(row):
            if tile_id != 0:
                cells_by_id.setdefault(tile_id, []).append((r, c))

    tiles: list[Tile] = []
    for tile_id in sorted(cells_by_id):
        cells = cells_by_id[tile_id]
        min_r = min(r for r, _ in cells)
        max_r = max(r for r, _ in cells)
        min_c = min(c for _, c in cells)
        max_c = max(c for _, c in cells)
        height = max_r - min_r + 1
        width = max_c - min_c + 1

        if len(cells) not in (1, 2, 4):
            errors.append(f"tile {tile_id} covers {len(cells)} cells")
            continue
        if height > 2 or width > 2 or height * width != len(cells):
            errors.append(f"tile {tile_id} has illegal shape {height}×{width}")
            continue

        shape = Shape.from_footprint(height, width)
        tiles.append(Tile(id=tile_id, shape=shape, position=(min_r, min_c)))
    return tiles
