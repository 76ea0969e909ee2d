"""Exceptions raised by the import pipeline."""

from __future__ import annotations

from typing import Any


class RowValidationError(ValueError):
    """A single CSV row could not be turned into a property draft."""


class SourceFileError(ValueError):
    """The staged CSV file cannot be opened or parsed."""


class HeaderValidationError(SourceFileError):
    """The CSV header row is missing required columns."""


class ImportAbortedError(RuntimeError):
    """The source stream failed; the whole job stops."""

    def __init__(self, job_id: str, reason: str, result: Any = None) -> None:
        super().__init__(f"Import {job_id} aborted: {reason}")
        self.job_id = job_id
        self.reason = reason
        # Partial ImportResult covering rows handled before the failure
        self.result = result


class InvalidUploadError(ValueError):
    """The submitted file is missing, not a CSV, or unreadable."""


class UploadTooLargeError(InvalidUploadError):
    """The submitted file exceeds the configured size limit."""


class QueuePublishError(RuntimeError):
    """The job message could not be handed to the broker."""
