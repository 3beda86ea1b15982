"""Merge Engine - positional summation of same-layout sheets.

This package handles:
1. Deciding which cells count as numbers (coercion)
2. Merging an ordered list of grids into one
3. Applying single-cell edits without mutating shared rows
"""

from .coercion import as_number, coerce_input
from .errors import (
    DecodeError,
    InsufficientInputs,
    MergeEngineError,
    MergeNotAvailable,
    SourceNotFound,
    SourceNotReady,
)
from .merge import MIN_MERGE_INPUTS, build_merge_result, merge_grids
from .projector import apply_cell_edit

__all__ = [
    # Coercion
    "as_number",
    "coerce_input",
    # Merge
    "MIN_MERGE_INPUTS",
    "merge_grids",
    "build_merge_result",
    # Edits
    "apply_cell_edit",
    # Errors
    "MergeEngineError",
    "InsufficientInputs",
    "MergeNotAvailable",
    "DecodeError",
    "SourceNotReady",
    "SourceNotFound",
]
