"""
Error taxonomy for video uploads.

Transfer errors (TransportError, ProtocolError, FormatError) are caught per task
by the orchestrator and never abort a batch. ValidationError is raised to the
caller at admission time, before any task exists.
"""
from typing import Optional


class UploadError(Exception):
    """Base class for all uploader errors."""


class ValidationError(UploadError):
    """Payload rejected before admission (too large, wrong type)."""

    def __init__(self, message: str, filename: Optional[str] = None):
        super().__init__(message)
        self.filename = filename


class TransportError(UploadError):
    """Network-level failure (connection refused/reset, timeout)."""


class ProtocolError(UploadError):
    """Server answered with a non-2xx status."""

    def __init__(self, status_code: int, detail: Optional[str] = None):
        message = f"HTTP Error: {status_code}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class FormatError(UploadError):
    """Successful response whose body is not the expected JSON object."""


class BatchInProgressError(UploadError):
    """A batch is already running for this registry."""


class UnknownTaskError(UploadError, KeyError):
    """No task with the given id."""

    def __str__(self) -> str:
        return Exception.__str__(self)


class TaskStateError(UploadError):
    """Operation not allowed in the task's current status."""
