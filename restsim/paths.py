# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# paths.py
# -----------------------------------------------------------------------------
# Purpose:
#   Path producers: given a start and goal cell, return the ordered cells that
#   lead from start (exclusive) to goal (inclusive). Requests are awaited by
#   the driver as asyncio tasks, so completion may land several ticks later.
#
# Design notes:
#   - Producers never fail. GridPathProducer searches around walls and
#     occupied fixtures; when the goal is unreachable it degrades to the
#     straight-line approach of LinePathProducer.
#   - Every successive cell differs from the previous one by at most one tile
#     on each axis.
#
# Usage:
#   producer = GridPathProducer(grid); cells = await producer.produce_path(a, b)
# -----------------------------------------------------------------------------

from __future__ import annotations
import asyncio
import logging
from collections import deque
from typing import Dict, List, Optional

from .entities import Cell
from .grid import Grid

log = logging.getLogger(__name__)

# Fixed neighbour order keeps searches deterministic: orthogonal moves first.
_MOVES = (
    (0, -1), (1, 0), (0, 1), (-1, 0),
    (1, -1), (1, 1), (-1, 1), (-1, -1),
)


def line_path(start: Cell, goal: Cell) -> List[Cell]:
    """Monotonic straight-line approach; Chebyshev distance drops by one per cell."""
    x, y = start
    tx, ty = goal
    out: List[Cell] = []
    while (x, y) != (tx, ty):
        if x < tx:
            x += 1
        elif x > tx:
            x -= 1
        if y < ty:
            y += 1
        elif y > ty:
            y -= 1
        out.append((x, y))
    return out


class PathProducer:
    """Interface: route(start, goal) -> list of cells ending at goal.

    produce_path() is the awaitable form used on an event loop; route() is the
    same answer computed inline when no loop is running.
    """

    def route(self, start: Cell, goal: Cell) -> List[Cell]:
        raise NotImplementedError

    async def produce_path(self, start: Cell, goal: Cell) -> List[Cell]:
        await asyncio.sleep(0)
        return self.route(start, goal)


class LinePathProducer(PathProducer):
    def route(self, start: Cell, goal: Cell) -> List[Cell]:
        return line_path(start, goal)


class GridPathProducer(PathProducer):
    """Breadth-first search over walkable cells with 8-connected moves."""

    def __init__(self, grid: Grid):
        self.grid = grid

    def route(self, start: Cell, goal: Cell) -> List[Cell]:
        found = self.search(start, goal)
        if found is None:
            log.debug("no route %s -> %s, falling back to straight line", start, goal)
            return line_path(start, goal)
        return found

    def _passable(self, cell: Cell, start: Cell, goal: Cell) -> bool:
        if cell == start or cell == goal:
            return self.grid.in_bounds(*cell)
        return self.grid.walkable(*cell)

    def search(self, start: Cell, goal: Cell) -> Optional[List[Cell]]:
        if start == goal:
            return []
        if not (self.grid.in_bounds(*start) and self.grid.in_bounds(*goal)):
            return None
        parents: Dict[Cell, Cell] = {start: start}
        frontier = deque([start])
        while frontier:
            cur = frontier.popleft()
            if cur == goal:
                break
            cx, cy = cur
            for dx, dy in _MOVES:
                nxt = (cx + dx, cy + dy)
                if nxt in parents or not self._passable(nxt, start, goal):
                    continue
                if dx and dy:
                    # no squeezing diagonally between two blocked cells
                    side_a = self._passable((cx + dx, cy), start, goal)
                    side_b = self._passable((cx, cy + dy), start, goal)
                    if not side_a and not side_b:
                        continue
                parents[nxt] = cur
                frontier.append(nxt)
        if goal not in parents:
            return None
        path: List[Cell] = []
        node = goal
        while node != start:
            path.append(node)
            node = parents[node]
        path.reverse()
        return path


def make_path_producer(mode: str, grid: Grid) -> PathProducer:
    if mode == "line":
        return LinePathProducer()
    return GridPathProducer(grid)
