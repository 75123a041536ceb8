"""Custom exception classes for stockbatch."""

from typing import Optional


class StockBatchError(Exception):
    """Base exception for all application errors."""

    pass


class PreconditionError(StockBatchError):
    """A run was requested with inputs it cannot start from."""

    pass


class NoCredentialsError(PreconditionError):
    """No API key is configured for the active provider."""

    def __init__(self, message: str = "Please enter at least one API key.") -> None:
        super().__init__(message)


class NoJobsError(PreconditionError):
    """The run has nothing to process."""

    def __init__(self, message: str = "No jobs to process.") -> None:
        super().__init__(message)


class SchedulerError(StockBatchError):
    """Errors from the run controller."""

    pass


class RunInProgressError(SchedulerError):
    """A run is already active on this scheduler."""

    def __init__(self, message: str = "A run is already in progress.") -> None:
        super().__init__(message)


class JobStoreError(StockBatchError):
    """Errors from the job state store."""

    pass


class JobNotFoundError(JobStoreError):
    """No job with the given id is known to the store."""

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class JobInFlightError(JobStoreError):
    """The job is being processed and cannot be deleted or reset."""

    def __init__(self, job_id: str, action: str = "delete") -> None:
        self.job_id = job_id
        super().__init__(f"Cannot {action} item while it is processing.")


class InvalidTransitionError(JobStoreError):
    """The job's current status does not allow the requested transition."""

    def __init__(self, job_id: str, status: str, target: str) -> None:
        self.job_id = job_id
        super().__init__(f"Cannot move job {job_id} from {status} to {target}.")


class HistoryError(StockBatchError):
    """Saved batch history could not be read or written."""

    pass


class GenerationError(StockBatchError):
    """Errors raised by a generation capability."""

    pass


class ProviderError(GenerationError):
    """An AI provider returned an error."""

    def __init__(self, status_code: Optional[int], message: str) -> None:
        self.status_code = status_code
        if status_code is None:
            super().__init__(f"Provider error: {message}")
        else:
            super().__init__(f"API Error {status_code}: {message}")


class JobAbortedError(GenerationError):
    """The job vanished from the working set while it was being processed."""

    def __init__(self, message: str = "file aborted") -> None:
        super().__init__(message)
