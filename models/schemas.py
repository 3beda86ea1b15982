from __future__ import annotations

from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, Field


# =============================================================================
# GRID: plain nested lists, shared by the engine and the API
# =============================================================================

# None marks an absent position (short row or a gap between populated cells).
CellValue = Union[bool, int, float, str, None]
Row = List[CellValue]
Grid = List[Row]


class FileStatus(str, Enum):
    PROCESSING = "processing"
    DONE = "done"
    ERROR = "error"


class SourceFile(BaseModel):
    """One uploaded spreadsheet and, once decoded, its first sheet.

    Instances are treated as snapshots: a status change or an edit replaces
    the whole object in the session rather than mutating it.
    """

    id: str
    name: str
    size: int = 0
    status: FileStatus = FileStatus.PROCESSING
    grid: Optional[Grid] = None  # set iff status == done
    error: Optional[str] = None  # set iff status == error

    @property
    def is_ready(self) -> bool:
        return self.status == FileStatus.DONE and self.grid is not None


class MergeResult(BaseModel):
    """Derived output of a merge. Never edited directly."""

    file_name: str = "merged_output.xlsx"
    data: Grid
    headers: Row = Field(default_factory=list)  # first row of data
    source_ids: List[str] = Field(default_factory=list)


# =============================================================================
# API PAYLOADS
# =============================================================================

class CellEditRequest(BaseModel):
    """Single-cell edit coming from the editing surface."""

    row: int = Field(ge=0)  # 0-indexed
    col: int = Field(ge=0)  # 0-indexed
    value: str  # raw text as typed; numeric literals become numbers


class SourceFileSummary(BaseModel):
    id: str
    name: str
    size: int
    status: FileStatus
    error: Optional[str] = None
    row_count: int = 0
    grid: Optional[Grid] = None


class SessionSnapshot(BaseModel):
    id: str
    files: List[SourceFileSummary] = Field(default_factory=list)
    merged: Optional[MergeResult] = None
    summary: Optional[str] = None
