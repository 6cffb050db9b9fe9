"""
Report engine errors.

Only NotFoundError and PersistenceFailureError are expected to reach callers;
the others are raised and absorbed inside the engine.
"""

from __future__ import annotations


class ReportEngineError(Exception):
    """Base class for report engine failures."""


class ToolUnavailableError(ReportEngineError):
    """Raised when the report-building tool is missing, times out or exits non-zero."""


class NotFoundError(ReportEngineError):
    """Raised when a requested run, script or report does not exist."""


class IndexCorruptError(ReportEngineError):
    """Raised when a project ledger cannot be parsed."""


class PersistenceFailureError(ReportEngineError):
    """Raised when the artifact directory of a run cannot be created or written."""
