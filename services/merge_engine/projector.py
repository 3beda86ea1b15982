"""Single-cell edits on a grid with row-level structural sharing."""
from __future__ import annotations

import logging

from models.schemas import Grid

from .coercion import coerce_input

logger = logging.getLogger(__name__)


def apply_cell_edit(grid: Grid, row: int, col: int, raw_text: str) -> Grid:
    """Return a new grid with ``[row][col]`` set from typed text.

    Only the edited row is rebuilt; all other row objects are shared with the
    input grid, which is left untouched. Editing past the end of the row pads
    it with absent cells. A row index past the end of the grid is a no-op.
    """
    if row < 0 or col < 0:
        raise ValueError(f"Cell position must be non-negative, got ({row}, {col})")

    if row >= len(grid):
        logger.warning(f"[EDIT] Row {row} does not exist (grid has {len(grid)} rows); edit ignored")
        return grid

    new_row = list(grid[row])
    if col >= len(new_row):
        new_row.extend([None] * (col + 1 - len(new_row)))
    new_row[col] = coerce_input(raw_text)

    edited = list(grid)
    edited[row] = new_row
    return edited
