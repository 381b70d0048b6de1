from __future__ import annotations

"""Exception hierarchy for the weekly report.

Every failure the controller reports to the user derives from ReportError, so the
operation boundaries (save / clear / load / write-through) can catch one type.
"""

__all__ = [
    "ReportError",
    "ConfigError",
    "DataNotLoadedError",
    "RowLabelError",
    "DocumentStoreError",
    "SignatureCaptureError",
    "ReportBusyError",
    "ReadOnlyFieldError",
    "TechnicianNotCollectedError",
]


class ReportError(Exception):
    """Base exception for report errors."""


class ConfigError(ReportError):
    pass


class DataNotLoadedError(ReportError):
    """Raised when a save is attempted before the required sections were loaded."""


class RowLabelError(ReportError):
    """Raised when a section's row labels are missing or cannot key a row."""


class DocumentStoreError(ReportError):
    """Raised by document store backends when a list/get/put/delete fails."""


class SignatureCaptureError(ReportError):
    """Raised when the drawing surface produced no usable image."""


class ReportBusyError(ReportError):
    """Raised when a save or clear is already running."""


class ReadOnlyFieldError(ReportError):
    """Raised on a direct edit of a derived column."""


class TechnicianNotCollectedError(ReportError):
    """Raised when technician info is set on a section that does not collect it."""
