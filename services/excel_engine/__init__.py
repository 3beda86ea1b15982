"""Excel Engine - XLSX bytes to Grid and back.

This module handles:
1. Decoding the first worksheet of an uploaded workbook into a Grid
2. Encoding a Grid as a single-sheet XLSX workbook for download
"""

from services.merge_engine.errors import DecodeError

from .parser import (
    col_index_to_letter,
    col_letter_to_index,
    parse_cell_ref,
    parse_workbook,
)
from .writer import sanitize_sheet_label, serialize_grid

__all__ = [
    # Decode
    "parse_workbook",
    "DecodeError",
    # Encode
    "serialize_grid",
    "sanitize_sheet_label",
    # Cell references
    "col_letter_to_index",
    "col_index_to_letter",
    "parse_cell_ref",
]
