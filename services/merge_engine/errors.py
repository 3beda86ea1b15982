"""Domain errors raised by the merge engine and the session layer.

Routes translate these into HTTP responses; nothing here is fatal to the
process.
"""
from __future__ import annotations


class MergeEngineError(Exception):
    """Base class for merge-related failures."""


class InsufficientInputs(MergeEngineError):
    """Raised when fewer than two ready grids are handed to a merge."""

    def __init__(self, available: int, required: int = 2):
        self.available = available
        self.required = required
        super().__init__(
            f"Merging needs at least {required} successfully parsed files, got {available}"
        )


class DecodeError(MergeEngineError):
    """The uploaded bytes could not be read as a spreadsheet."""


class SourceNotReady(MergeEngineError):
    """The targeted source file has no decoded grid (still processing or failed)."""


class SourceNotFound(KeyError):
    """No source file with the given id exists in the session."""


class MergeNotAvailable(MergeEngineError):
    """An operation needs a merged result but none is currently materialized."""
