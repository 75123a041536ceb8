"""FastAPI routes exposing the job queue to observers."""

import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from stockbatch.api.deps import get_scheduler_dep, get_settings_dep
from stockbatch.config import Settings
from stockbatch.models.job import Job
from stockbatch.models.run import RunMode, RunStatus
from stockbatch.services.batch import select_jobs_for_run
from stockbatch.services.scheduler import Scheduler
from stockbatch.utils.errors import (
    InvalidTransitionError,
    JobInFlightError,
    JobNotFoundError,
    PreconditionError,
    RunInProgressError,
    StockBatchError,
)

logger = logging.getLogger(__name__)

# Create router
router = APIRouter(prefix="/api")


# ==================== Exception Handlers ====================


async def stockbatch_exception_handler(request: Request, exc: StockBatchError) -> JSONResponse:
    """Handle application-specific errors."""
    status_code = 500

    if isinstance(exc, JobNotFoundError):
        status_code = 404
    elif isinstance(exc, (JobInFlightError, InvalidTransitionError, RunInProgressError)):
        status_code = 409
    elif isinstance(exc, PreconditionError):
        status_code = 400

    return JSONResponse(
        status_code=status_code,
        content={
            "detail": str(exc),
            "error_type": type(exc).__name__,
        },
    )


# ==================== Request/Response Models ====================


class JobsResponse(BaseModel):
    """Snapshot of every job plus per-status counts."""

    jobs: List[Job]
    counts: Dict[str, int]


class RunRequest(BaseModel):
    """Request model for starting a run."""

    mode: RunMode = RunMode.METADATA
    worker_count: Optional[int] = Field(default=None, ge=1, le=10)


class RunStartedResponse(BaseModel):
    status: str
    queued: int
    effective_concurrency: int
    message: str


class JobActionResponse(BaseModel):
    job_id: str
    status: str
    message: str


# ==================== Endpoints ====================


@router.get("/jobs", response_model=JobsResponse)
async def list_jobs(scheduler: Scheduler = Depends(get_scheduler_dep)) -> JobsResponse:
    """Current state of every job."""
    counts = scheduler.store.counts()
    return JobsResponse(
        jobs=scheduler.store.snapshot(),
        counts={status.value: count for status, count in counts.items()},
    )


@router.get("/run", response_model=RunStatus)
async def get_run_status(scheduler: Scheduler = Depends(get_scheduler_dep)) -> RunStatus:
    return scheduler.status()


@router.post("/run", response_model=RunStartedResponse)
async def start_run(
    request: RunRequest,
    scheduler: Scheduler = Depends(get_scheduler_dep),
    settings: Settings = Depends(get_settings_dep),
) -> RunStartedResponse:
    """
    Start processing pending and failed jobs with the configured API keys.

    When every job already finished, the batch is reset and run again.
    """
    if scheduler.is_running:
        raise RunInProgressError()
    if not settings.api_keys:
        raise PreconditionError("Please enter at least one API key.")

    jobs = select_jobs_for_run(scheduler.store)
    scheduler.start(jobs, settings.api_keys, request.worker_count, request.mode)
    status = scheduler.status()
    return RunStartedResponse(
        status=status.state.value,
        queued=len(jobs),
        effective_concurrency=status.effective_concurrency,
        message=f"Starting queue: {len(jobs)} items in {request.mode.value.upper()}",
    )


@router.post("/run/cancel", response_model=RunStatus)
async def cancel_run(scheduler: Scheduler = Depends(get_scheduler_dep)) -> RunStatus:
    """Stop dequeuing; in-flight jobs are allowed to finish."""
    scheduler.cancel()
    return scheduler.status()


@router.post("/jobs/{job_id}/retry", response_model=JobActionResponse)
async def retry_job(
    job_id: str, scheduler: Scheduler = Depends(get_scheduler_dep)
) -> JobActionResponse:
    job = scheduler.retry_job(job_id)
    return JobActionResponse(
        job_id=job.id,
        status=job.status.value,
        message=f"{job.display_name()} will be processed on the next run",
    )


@router.delete("/jobs/{job_id}", response_model=JobActionResponse)
async def delete_job(
    job_id: str, scheduler: Scheduler = Depends(get_scheduler_dep)
) -> JobActionResponse:
    job = scheduler.delete_job(job_id)
    return JobActionResponse(
        job_id=job.id,
        status="deleted",
        message=f"Deleted {job.display_name()}",
    )
