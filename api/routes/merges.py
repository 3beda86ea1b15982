"""API routes for merging same-layout spreadsheets.

- Create a merge session
- Upload XLSX files -> parse first sheet to a grid
- Edit cells of any uploaded file (the merge follows)
- Merge, export the merge to XLSX, summarize it with AI
"""
from __future__ import annotations

import asyncio
import logging
from typing import List

from fastapi import APIRouter, File, HTTPException, UploadFile
from fastapi.responses import Response

from models.schemas import (
    CellEditRequest,
    MergeResult,
    SessionSnapshot,
    SourceFile,
    SourceFileSummary,
)
from services.ai_summarizer import get_summarizer
from services.app_config import get_app_settings
from services.excel_engine import serialize_grid
from services.merge_engine import (
    InsufficientInputs,
    MergeNotAvailable,
    SourceNotFound,
    SourceNotReady,
)
from services.merge_session import MergeSession

logger = logging.getLogger(__name__)


router = APIRouter(prefix="/merges", tags=["merges"])

# In-memory storage for active merge sessions
_sessions: dict[str, MergeSession] = {}

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
INSUFFICIENT_FILES_MESSAGE = "Select at least 2 successfully parsed files to merge."


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("/", response_model=SessionSnapshot)
async def create_session() -> SessionSnapshot:
    """Start an empty merge session."""
    session = MergeSession(output_filename=get_app_settings().merge_output_filename)
    _sessions[session.id] = session
    return _snapshot(session)


@router.get("/{session_id}", response_model=SessionSnapshot)
async def get_session(session_id: str) -> SessionSnapshot:
    return _snapshot(_get_session(session_id))


@router.delete("/{session_id}")
async def delete_session(session_id: str):
    _get_session(session_id)
    del _sessions[session_id]
    return {"status": "deleted", "id": session_id}


@router.post("/{session_id}/files", response_model=SessionSnapshot)
async def upload_files(session_id: str, files: List[UploadFile] = File(...)) -> SessionSnapshot:
    """Upload one or more XLSX files and decode each one's first sheet.

    A file that cannot be read is kept with status "error"; it does not
    prevent the other files from being decoded.
    """
    session = _get_session(session_id)
    settings = get_app_settings()

    payloads = []
    for upload in files:
        if not upload.filename:
            raise HTTPException(400, "No filename provided")
        if not upload.filename.lower().endswith(settings.allowed_extensions):
            raise HTTPException(400, f"Only {', '.join(settings.allowed_extensions)} files are supported")

        content = await upload.read()
        if len(content) > settings.max_upload_bytes:
            raise HTTPException(413, f"{upload.filename} exceeds {settings.max_upload_bytes:,} bytes")
        payloads.append((upload.filename, content))

    registered = [session.register_upload(name, len(content)) for name, content in payloads]
    await asyncio.gather(
        *(session.decode(source.id, content) for source, (_, content) in zip(registered, payloads))
    )

    return _snapshot(session)


@router.delete("/{session_id}/files/{file_id}", response_model=SessionSnapshot)
async def remove_file(session_id: str, file_id: str) -> SessionSnapshot:
    """Remove a file. Any merged result and summary are discarded."""
    session = _get_session(session_id)
    try:
        session.remove(file_id)
    except SourceNotFound:
        raise HTTPException(404, "File not found")
    return _snapshot(session)


@router.post("/{session_id}/files/{file_id}/cell")
async def edit_cell(session_id: str, file_id: str, edit: CellEditRequest):
    """Edit a single cell of an uploaded file.

    Text that reads as a number is stored as a number. If the files were
    already merged, the merged result is recomputed and returned.
    """
    session = _get_session(session_id)
    try:
        session.apply_edit(file_id, edit.row, edit.col, edit.value)
    except SourceNotFound:
        raise HTTPException(404, "File not found")
    except SourceNotReady as e:
        raise HTTPException(409, str(e))

    return {
        "file": _file_summary(session.get_file(file_id)).model_dump(mode="json"),
        "merged": session.merged.model_dump(mode="json") if session.merged else None,
    }


@router.post("/{session_id}/merge", response_model=MergeResult)
async def merge_files(session_id: str) -> MergeResult:
    """Merge every successfully parsed file, in upload order."""
    session = _get_session(session_id)
    try:
        return session.merge()
    except InsufficientInputs:
        raise HTTPException(400, INSUFFICIENT_FILES_MESSAGE)


@router.post("/{session_id}/export/file")
async def export_merged(session_id: str):
    """Download the merged result as a single-sheet XLSX file."""
    session = _get_session(session_id)
    merged = session.merged
    if merged is None:
        raise HTTPException(409, "Nothing merged yet")

    settings = get_app_settings()
    content = serialize_grid(merged.data, settings.merge_sheet_label)
    logger.info(f"[EXPORT] {session_id}: {len(merged.data)} rows, {len(content):,} bytes")

    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{merged.file_name}"'},
    )


@router.post("/{session_id}/summary")
async def summarize_merged(session_id: str):
    """Ask the AI service for a short summary of the merged result."""
    session = _get_session(session_id)
    try:
        summary = await session.summarize(get_summarizer())
    except MergeNotAvailable:
        raise HTTPException(409, "Nothing merged yet")
    return {"summary": summary}


# =============================================================================
# HELPERS
# =============================================================================

def _get_session(session_id: str) -> MergeSession:
    session = _sessions.get(session_id)
    if session is None:
        raise HTTPException(404, "Merge session not found")
    return session


def _file_summary(source: SourceFile) -> SourceFileSummary:
    return SourceFileSummary(
        id=source.id,
        name=source.name,
        size=source.size,
        status=source.status,
        error=source.error,
        row_count=len(source.grid) if source.grid is not None else 0,
        grid=source.grid,
    )


def _snapshot(session: MergeSession) -> SessionSnapshot:
    return SessionSnapshot(
        id=session.id,
        files=[_file_summary(f) for f in session.files],
        merged=session.merged,
        summary=session.summary,
    )
