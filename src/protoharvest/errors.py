"""Exception hierarchy for the harvest pipeline.

Severity is decided by the caller:
  ReadError      — catalog or source tree unreadable; aborts the run.
  FetchError     — source acquisition failed; aborts the run.
  CompileError   — schema compiler failed or produced unparseable output;
                   fatal for the current API only.
  WriteError     — output could not be written; fatal for the current API.
  NotFoundError  — a resolved logical path has no physical file; a WriteError.
"""

from __future__ import annotations


class HarvestError(Exception):
    """Base class for every error raised by protoharvest."""


class ReadError(HarvestError):
    """Raised when the catalog or the source tree cannot be read."""


class FetchError(HarvestError):
    """Raised when a source repository could not be cloned."""


class CompileError(HarvestError):
    """Raised when the schema compiler fails.

    Attributes:
        output: Combined stdout/stderr of the compiler, if any.
    """

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output

    def __str__(self) -> str:
        base = super().__str__()
        if self.output.strip():
            return f"{base}\n{self.output.rstrip()}"
        return base


class WriteError(HarvestError):
    """Raised when an output file or directory cannot be written."""


class NotFoundError(WriteError):
    """Raised when a logical path has no physical counterpart."""

    def __init__(self, logical_path: str, message: str | None = None) -> None:
        super().__init__(message or f"No physical file found for '{logical_path}'")
        self.logical_path = logical_path
