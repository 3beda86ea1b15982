"""Positional merge of sheets that share one layout.

The first grid is the template: it fixes the shape and owns every
non-numeric cell. Later grids add into numeric positions by (row, col) index
and may contribute whole rows past the end of the template.
"""
from __future__ import annotations

import logging
from typing import List, Sequence

from models.schemas import Grid, MergeResult, SourceFile

from .coercion import as_number
from .errors import InsufficientInputs

logger = logging.getLogger(__name__)

MIN_MERGE_INPUTS = 2


def merge_grids(grids: Sequence[Grid]) -> Grid:
    """Combine grids cell by cell.

    - both cells numeric: the output holds their sum
    - otherwise: the output keeps what it already had (first writer wins)
    - a row missing from the output is appended as a copy
    - columns past the end of an existing output row are not merged

    Inputs are never mutated; every output row is a new list.
    """
    if len(grids) < MIN_MERGE_INPUTS:
        raise InsufficientInputs(len(grids), MIN_MERGE_INPUTS)

    merged: Grid = [list(row) for row in grids[0]]

    for grid in grids[1:]:
        for r, row in enumerate(grid):
            if r >= len(merged):
                merged.append(list(row))
                continue

            target = merged[r]
            for c, value in enumerate(row):
                if c >= len(target):
                    # Template row is shorter; no back-fill.
                    break
                a = as_number(target[c])
                b = as_number(value)
                if a is None or b is None:
                    continue
                try:
                    target[c] = a + b
                except OverflowError:
                    logger.warning(f"[MERGE] Sum at ({r}, {c}) is out of float range; cell kept")

    return merged


def build_merge_result(
    sources: Sequence[SourceFile],
    file_name: str = "merged_output.xlsx",
) -> MergeResult:
    """Merge the grids of ready source files, in the order given."""
    ready: List[SourceFile] = [s for s in sources if s.is_ready]
    data = merge_grids([s.grid for s in ready])
    logger.info(
        f"[MERGE] Merged {len(ready)} files into {len(data)} rows "
        f"({', '.join(s.name for s in ready)})"
    )
    return MergeResult(
        file_name=file_name,
        data=data,
        headers=list(data[0]) if data else [],
        source_ids=[s.id for s in ready],
    )
