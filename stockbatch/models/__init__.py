"""Pydantic data models for stockbatch."""

from stockbatch.models.credential import Credential
from stockbatch.models.job import GenerationResult, Job, JobStatus
from stockbatch.models.run import RunMode, RunState, RunStatus, RunSummary

__all__ = [
    "Credential",
    "GenerationResult",
    "Job",
    "JobStatus",
    "RunMode",
    "RunState",
    "RunStatus",
    "RunSummary",
]
