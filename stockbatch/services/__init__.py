"""Service layer for stockbatch."""

from stockbatch.services.batch import (
    build_file_jobs,
    build_idea_slots,
    build_prompt_slots,
    select_jobs_for_run,
)
from stockbatch.services.credential_pool import CredentialPool
from stockbatch.services.history import HistoryStore, create_history_store
from stockbatch.services.job_queue import JobQueue
from stockbatch.services.job_store import JobStateStore
from stockbatch.services.scheduler import RunContext, Scheduler

__all__ = [
    "CredentialPool",
    "JobQueue",
    "JobStateStore",
    "RunContext",
    "Scheduler",
    "HistoryStore",
    "create_history_store",
    "select_jobs_for_run",
    "build_prompt_slots",
    "build_idea_slots",
    "build_file_jobs",
]
