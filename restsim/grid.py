# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# grid.py
# -----------------------------------------------------------------------------
# Purpose:
#   Rasterize the pixel-space layout into a tile grid tagged with the fixture
#   type covering each cell. Built once per init, read-only afterwards.
#
# Design notes:
#   - A cell takes the type of a fixture when the fixture rectangle contains
#     the cell's top-left pixel. Later fixtures override earlier ones.
#   - Cells are stored row-major; (x, y) = (column, row).
#
# Usage:
#   grid = build_grid(layout); grid.at(3, 4)
# -----------------------------------------------------------------------------

from __future__ import annotations
import math
from dataclasses import dataclass
from typing import Iterator, List, Tuple

from .entities import Cell, Layout

FLOOR = "FLOOR"
WALL = "WALL"
DOOR = "DOOR"
STALL = "STALL"
URINAL = "URINAL"
SINK = "SINK"
QUEUE = "QUEUE"
BLOCKED = "BLOCKED"

CELL_TYPES = (FLOOR, WALL, DOOR, STALL, URINAL, SINK, QUEUE, BLOCKED)
WALKABLE = frozenset((FLOOR, DOOR, QUEUE, SINK))

_KIND_TO_CELL = {
    "wall": WALL,
    "door": DOOR,
    "stall": STALL,
    "urinal": URINAL,
    "sink": SINK,
}


@dataclass(frozen=True)
class Grid:
    width: int
    height: int
    cells: Tuple[str, ...]           # row-major CellType names
    grid_size: float = 20.0

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def at(self, x: int, y: int) -> str:
        return self.cells[y * self.width + x]

    def walkable(self, x: int, y: int) -> bool:
        return self.in_bounds(x, y) and self.at(x, y) in WALKABLE

    def iter_cells(self) -> Iterator[Tuple[int, int, str]]:
        for idx, kind in enumerate(self.cells):
            yield idx % self.width, idx // self.width, kind

    def to_cell(self, px: float, py: float) -> Cell:
        """Pixel coordinates -> containing cell (clamped at zero)."""
        return (max(0, int(math.floor(px / self.grid_size))), max(0, int(math.floor(py / self.grid_size))))

    def cell_center_px(self, gx: float, gy: float) -> Tuple[float, float]:
        """Tile-space coordinates (possibly fractional) -> pixel centre."""
        return (gx * self.grid_size + self.grid_size / 2.0, gy * self.grid_size + self.grid_size / 2.0)


def build_grid(layout: Layout) -> Grid:
    g = layout.grid_size
    width = max(1, int(math.ceil(layout.width / g)))
    height = max(1, int(math.ceil(layout.height / g)))
    cells: List[str] = []
    for y in range(height):
        for x in range(width):
            kind = FLOOR
            px, py = x * g, y * g
            for f in layout.fixtures:
                if f.contains(px, py):
                    kind = _KIND_TO_CELL[f.kind]
            cells.append(kind)
    return Grid(width=width, height=height, cells=tuple(cells), grid_size=g)
