from semsplit.dendrogram.grid import (
    LEAF_STYLE,
    THRESHOLD_STYLE,
    distance_to_column,
    render_grid,
)
from semsplit.domain import MergeEvent


def test_no_leaves_gives_blank_grid_of_requested_size():
    grid = render_grid([], [], 1.0, 0.5, 12, 4)
    assert len(grid.cells) == 4
    assert all(len(row) == 12 for row in grid.cells)
    assert all(cell.glyph == " " for row in grid.cells for cell in row)
    assert grid.overflow == 0


def test_no_merges_gives_blank_grid():
    grid = render_grid([0, 1, 2], [], 1.0, 0.5, 8, 3)
    assert grid.glyph_rows() == [" " * 8] * 3


def test_distance_to_column_scales_rounds_and_clamps():
    assert distance_to_column(0.0, 1.0, 11) == 0
    assert distance_to_column(0.5, 1.0, 11) == 5
    assert distance_to_column(0.25, 1.0, 5) == 1
    assert distance_to_column(0.375, 1.0, 5) == 2
    assert distance_to_column(5.0, 1.0, 11) == 10
    assert distance_to_column(0.5, 1.0, 1) == 0


def test_two_leaves_join_with_corner_glyphs():
    merges = [MergeEvent(left=0, right=1, distance=1.0)]
    grid = render_grid([0, 1], merges, 1.0, 0.5, 5, 2)
    assert grid.glyph_rows() == ["────┐", "────┘"]
    assert grid.threshold_column == 2
    # The threshold line recolors existing strokes instead of replacing them.
    assert grid.cells[0][2].style == THRESHOLD_STYLE
    assert grid.cells[0][1].style == LEAF_STYLE


def test_open_end_and_threshold_marker():
    merges = [MergeEvent(left=0, right=1, distance=0.5)]
    grid = render_grid([0, 1], merges, 1.0, 0.9, 10, 2)
    assert grid.glyph_rows() == [
        "─────┬─ ┆ ",
        "─────┘  ┆ ",
    ]


def test_unmerged_leaf_runs_full_width():
    merges = [MergeEvent(left=0, right=1, distance=0.5)]
    grid = render_grid([0, 1, 2], merges, 1.0, 1.0, 5, 3)
    assert grid.glyph_rows() == [
        "──┬─┆",
        "──┘ ┆",
        "─────",
    ]
    assert grid.cells[2][4].style == THRESHOLD_STYLE


def test_nested_merge_draws_tee_on_inner_trunk():
    merges = [
        MergeEvent(left=0, right=1, distance=0.25),
        MergeEvent(left=3, right=2, distance=0.75),
    ]
    grid = render_grid([0, 1, 2], merges, 1.0, 0.0, 5, 3)
    assert grid.glyph_rows() == [
        "─┬─┐ ",
        "─┘ ├─",
        "───┘ ",
    ]


def test_overflow_rows_are_not_drawn():
    merges = [
        MergeEvent(left=0, right=1, distance=0.2),
        MergeEvent(left=3, right=2, distance=0.6),
    ]
    grid = render_grid([0, 1, 2], merges, 0.6, 0.3, 10, 2)
    assert len(grid.cells) == 2
    assert grid.overflow == 1


def test_zero_max_distance_is_scaled_as_one():
    merges = [MergeEvent(left=0, right=1, distance=0.0)]
    grid = render_grid([0, 1], merges, 0.0, 0.0, 4, 2)
    assert grid.threshold_column == 0
