"""Merge Session - Ordered source files, their merged result and its summary.

This is the single owner of mutable state for one user workspace.
It handles:
1. Source file lifecycle (processing -> done | error, removal)
2. Merging the ready files on request
3. Applying cell edits and recomputing an existing merge
4. Invalidating the merge and summary when the file set changes

Flow:
    upload -> register_upload -> decode (worker thread) -> complete/fail
    edit   -> apply_cell_edit -> recompute merge if one is materialized
"""
from __future__ import annotations

import logging
import uuid
from typing import Dict, List, Optional

from starlette.concurrency import run_in_threadpool

from models.schemas import FileStatus, Grid, MergeResult, SourceFile
from services.excel_engine import parse_workbook
from services.merge_engine import (
    MIN_MERGE_INPUTS,
    DecodeError,
    InsufficientInputs,
    MergeNotAvailable,
    SourceNotFound,
    SourceNotReady,
    apply_cell_edit,
    build_merge_result,
)
from services.ai_summarizer import SheetSummarizer

logger = logging.getLogger(__name__)


class MergeSession:
    """Holds uploaded sheets in display order plus derived results.

    Every state change replaces whole objects (SourceFile snapshots, grids,
    merge results), so a reader holding an earlier snapshot never observes a
    partial update.
    """

    def __init__(self, session_id: str | None = None, output_filename: str = "merged_output.xlsx"):
        self.id = session_id or uuid.uuid4().hex
        self.output_filename = output_filename
        self._files: Dict[str, SourceFile] = {}  # insertion order is display order
        self._merged: Optional[MergeResult] = None
        self._summary: Optional[str] = None

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def files(self) -> List[SourceFile]:
        return list(self._files.values())

    @property
    def ready_files(self) -> List[SourceFile]:
        return [f for f in self._files.values() if f.is_ready]

    @property
    def merged(self) -> Optional[MergeResult]:
        return self._merged

    @property
    def summary(self) -> Optional[str]:
        return self._summary

    def get_file(self, file_id: str) -> SourceFile:
        try:
            return self._files[file_id]
        except KeyError:
            raise SourceNotFound(file_id) from None

    def invalidate(self) -> None:
        """Drop the merged result and anything derived from it."""
        self._merged = None
        self._summary = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def register_upload(self, name: str, size: int = 0) -> SourceFile:
        source = SourceFile(id=uuid.uuid4().hex[:12], name=name, size=size)
        self._files[source.id] = source
        self.invalidate()
        logger.info(f"[DECODE] Registered {name} ({size:,} bytes) as {source.id}")
        return source

    def _finish(self, file_id: str, **update) -> Optional[SourceFile]:
        current = self._files.get(file_id)
        if current is None:
            logger.info(f"[DECODE] Discarding late result for removed file {file_id}")
            return None
        if current.status != FileStatus.PROCESSING:
            logger.warning(f"[DECODE] File {file_id} already {current.status.value}; result ignored")
            return current

        finished = current.model_copy(update=update)
        self._files[file_id] = finished
        return finished

    def complete_decode(self, file_id: str, grid: Grid) -> Optional[SourceFile]:
        return self._finish(file_id, status=FileStatus.DONE, grid=grid, error=None)

    def fail_decode(self, file_id: str, message: str) -> Optional[SourceFile]:
        return self._finish(file_id, status=FileStatus.ERROR, grid=None, error=message)

    async def decode(self, file_id: str, content: bytes) -> Optional[SourceFile]:
        """Parse bytes off the event loop, then publish the terminal status."""
        try:
            grid = await run_in_threadpool(parse_workbook, content)
        except DecodeError as e:
            logger.error(f"[DECODE] Failed to read file {file_id}: {e}")
            return self.fail_decode(file_id, str(e))

        source = self.complete_decode(file_id, grid)
        if source is not None:
            logger.info(f"[DECODE] {source.name}: {len(grid)} rows")
        return source

    async def ingest(self, name: str, content: bytes) -> Optional[SourceFile]:
        source = self.register_upload(name, len(content))
        return await self.decode(source.id, content)

    def remove(self, file_id: str) -> SourceFile:
        try:
            removed = self._files.pop(file_id)
        except KeyError:
            raise SourceNotFound(file_id) from None
        self.invalidate()
        logger.info(f"[MERGE] Removed {removed.name}; merged result invalidated")
        return removed

    # ------------------------------------------------------------------
    # Merge and edits
    # ------------------------------------------------------------------

    def merge(self) -> MergeResult:
        ready = self.ready_files
        if len(ready) < MIN_MERGE_INPUTS:
            raise InsufficientInputs(len(ready), MIN_MERGE_INPUTS)

        self._merged = build_merge_result(ready, self.output_filename)
        self._summary = None
        return self._merged

    def apply_edit(self, file_id: str, row: int, col: int, raw_text: str) -> Grid:
        """Edit one cell of a source file and refresh the merge if it is shown."""
        source = self.get_file(file_id)
        if not source.is_ready:
            raise SourceNotReady(f"File {source.name} is {source.status.value}; only parsed files can be edited")

        grid = apply_cell_edit(source.grid, row, col, raw_text)
        if grid is source.grid:
            return grid

        self._files[file_id] = source.model_copy(update={"grid": grid})

        if self._merged is not None:
            ready = self.ready_files
            if len(ready) >= MIN_MERGE_INPUTS:
                self._merged = build_merge_result(ready, self.output_filename)
                self._summary = None
            else:
                logger.info(f"[EDIT] Only {len(ready)} ready file(s); merged result kept as-is")

        return grid

    async def summarize(self, summarizer: SheetSummarizer) -> str:
        if self._merged is None:
            raise MergeNotAvailable("Merge the files before requesting a summary")

        merged = self._merged
        summary = await summarizer.summarize(merged.data)
        # A newer merge may have landed while the summary was in flight
        if self._merged is merged:
            self._summary = summary
        return summary
