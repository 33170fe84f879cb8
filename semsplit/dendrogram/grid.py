"""
Character-grid rendering of a merge tree.

Leaves are laid out one per row (in the order produced by
ordering.leaf_order) and distances along the x-axis. Lines are drawn by
adding connector stubs to cells, never by replacing cells, so crossings
and joins always resolve to the matching box-drawing glyph.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from ..domain import MergeEvent
from .clusters import merge_endpoints
from .connectors import DOWN, LEFT, RIGHT, UP, Cell

LEAF_STYLE = "cyan"
MERGED_STYLE = "green"
UNMERGED_STYLE = "grey50"
THRESHOLD_STYLE = "red"


@dataclass
class DendrogramGrid:
    width: int
    height: int
    cells: List[List[Cell]]
    threshold_column: Optional[int] = None
    overflow: int = 0

    def glyph_rows(self) -> List[str]:
        return ["".join(cell.glyph for cell in row) for row in self.cells]


@dataclass
class _ClusterState:
    trunk_row: int
    last_column: int = 0
    style: str = LEAF_STYLE
    merged: bool = field(default=False)


def distance_to_column(distance: float, scale: float, width: int) -> int:
    """Linear x-axis mapping, rounded half-up and clamped to the grid."""
    if width <= 1 or scale <= 0:
        return 0
    column = math.floor(distance / scale * (width - 1) + 0.5)
    return max(0, min(width - 1, column))


def blank_grid(width: int, height: int) -> DendrogramGrid:
    cells = [[Cell() for _ in range(width)] for _ in range(height)]
    return DendrogramGrid(width=width, height=height, cells=cells)


def render_grid(
    order: Sequence[int],
    merges: Sequence[MergeEvent],
    max_distance: float,
    threshold: float,
    width: int,
    height: int,
) -> DendrogramGrid:
    """
    Paint the merge tree into a height x width grid.

    order is the leaf ordering; leaf order[r] is drawn on row r. The
    grid always has the requested size; only the first height leaves
    are drawn and the remaining leaf count is reported as the grid's
    overflow.
    """

    num_leaves = len(order)
    rows = max(0, min(height, num_leaves))
    grid = blank_grid(width, max(height, 0))
    grid.overflow = num_leaves - rows
    if num_leaves == 0 or not merges or width <= 0:
        return grid

    scale = max_distance if max_distance > 0 else 1.0
    row_of = {leaf: row for row, leaf in enumerate(order)}

    parent = list(range(num_leaves))
    states: Dict[int, _ClusterState] = {
        leaf: _ClusterState(trunk_row=row_of[leaf])
        for leaf in range(num_leaves)
    }

    def find(i: int) -> int:
        while parent[i] != i:
            parent[i] = parent[parent[i]]
            i = parent[i]
        return i

    def add(row: int, column: int, direction: str, style: str) -> None:
        if 0 <= row < rows and 0 <= column < width:
            grid.cells[row][column].add(direction, style)

    def horizontal(row: int, start: int, end: int, style: str) -> None:
        if end <= start:
            return
        add(row, start, RIGHT, style)
        for column in range(start + 1, end):
            add(row, column, LEFT, style)
            add(row, column, RIGHT, style)
        add(row, end, LEFT, style)

    for merge, (a, b) in zip(merges, merge_endpoints(merges, num_leaves)):
        root_a = find(a)
        root_b = find(b)
        if root_a == root_b:
            continue

        column = distance_to_column(merge.distance, scale, width)
        style = MERGED_STYLE if merge.distance <= threshold else UNMERGED_STYLE
        first = states[root_a]
        second = states[root_b]

        for child in (first, second):
            # A leaf's own line starts at the label edge.
            if not child.merged:
                add(child.trunk_row, 0, LEFT, LEAF_STYLE)
            horizontal(child.trunk_row, child.last_column, column, child.style)

        top = min(first.trunk_row, second.trunk_row)
        bottom = max(first.trunk_row, second.trunk_row)
        add(top, column, DOWN, style)
        for row in range(top + 1, bottom):
            add(row, column, UP, style)
            add(row, column, DOWN, style)
        add(bottom, column, UP, style)

        survivor, absorbed = (root_b, root_a) if root_b > root_a else (root_a, root_b)
        parent[absorbed] = survivor
        states[survivor] = _ClusterState(
            trunk_row=(first.trunk_row + second.trunk_row) // 2,
            last_column=column,
            style=style,
            merged=True,
        )
        del states[absorbed]

    for state in states.values():
        if state.merged:
            horizontal(state.trunk_row, state.last_column, min(width - 1, state.last_column + 1), state.style)
        else:
            add(state.trunk_row, 0, LEFT, LEAF_STYLE)
            horizontal(state.trunk_row, 0, width - 1, LEAF_STYLE)

    threshold_column = distance_to_column(threshold, scale, width)
    grid.threshold_column = threshold_column
    for row in range(rows):
        cell = grid.cells[row][threshold_column]
        if cell.is_blank:
            cell.marker = True
        cell.style = THRESHOLD_STYLE

    return grid
