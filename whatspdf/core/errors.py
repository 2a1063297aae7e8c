"""Error kinds raised and recorded by the job-progress client."""
from __future__ import annotations

GENERIC_PROCESSING_ERROR = "Error processing file"


class JobError(RuntimeError):
    """Base error for a single processing session."""

    def __init__(self, message: str = GENERIC_PROCESSING_ERROR) -> None:
        super().__init__(message)
        self.message = message


class SubmissionError(JobError):
    """Raised when the backend refuses the job or cannot be reached."""

    def __init__(self, message: str = GENERIC_PROCESSING_ERROR, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class StreamDecodeError(JobError):
    """A progress notification could not be decoded."""

    def __init__(self, message: str, *, payload: str | None = None) -> None:
        super().__init__(message)
        self.payload = payload


class ConnectionLost(JobError):
    """The progress stream closed before the job finished."""


class ProcessingFailed(JobError):
    """The backend reported a pipeline failure on the stream."""


class JobInProgressError(JobError):
    """A caller tried to start a job while another one is processing."""


__all__ = [
    "GENERIC_PROCESSING_ERROR",
    "ConnectionLost",
    "JobError",
    "JobInProgressError",
    "ProcessingFailed",
    "StreamDecodeError",
    "SubmissionError",
]
