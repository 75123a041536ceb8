"""Utility modules for stockbatch."""

from stockbatch.utils.classify import ErrorKind, classify_error, truncate_error
from stockbatch.utils.errors import (
    GenerationError,
    HistoryError,
    InvalidTransitionError,
    JobAbortedError,
    JobInFlightError,
    JobNotFoundError,
    JobStoreError,
    NoCredentialsError,
    NoJobsError,
    PreconditionError,
    ProviderError,
    RunInProgressError,
    SchedulerError,
    StockBatchError,
)

__all__ = [
    "StockBatchError",
    "PreconditionError",
    "NoCredentialsError",
    "NoJobsError",
    "SchedulerError",
    "RunInProgressError",
    "JobStoreError",
    "JobNotFoundError",
    "JobInFlightError",
    "InvalidTransitionError",
    "HistoryError",
    "GenerationError",
    "ProviderError",
    "JobAbortedError",
    "ErrorKind",
    "classify_error",
    "truncate_error",
]
