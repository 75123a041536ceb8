"""Authoritative per-job state, published to observers on a fixed cadence."""

import asyncio
import inspect
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, Iterable, List, Optional

from stockbatch.models.job import GenerationResult, Job, JobStatus
from stockbatch.utils.errors import (
    InvalidTransitionError,
    JobInFlightError,
    JobNotFoundError,
)

logger = logging.getLogger(__name__)

Subscriber = Callable[[List[Job]], Any]

# Statuses a run may pick up
RUNNABLE_STATUSES = (JobStatus.PENDING, JobStatus.FAILED)


class JobStateStore:
    """Single writer-of-record for job status.

    Workers mutate records through ``apply`` and the ``mark_*`` helpers.
    Observers never see the live records: they receive snapshots, either on
    demand or from the periodic publisher started with ``publishing``.
    """

    def __init__(self, jobs: Iterable[Job] = ()) -> None:
        self._jobs: Dict[str, Job] = {}
        self._subscribers: List[Subscriber] = []
        self.add(jobs)

    # ==================== Records ====================

    def add(self, jobs: Iterable[Job]) -> None:
        """Append jobs, keeping insertion order. Existing ids are replaced."""
        for job in jobs:
            self._jobs[job.id] = job

    def replace_all(self, jobs: Iterable[Job]) -> None:
        self._jobs = {}
        self.add(jobs)

    def clear(self) -> int:
        count = len(self._jobs)
        self._jobs = {}
        return count

    def get(self, job_id: str) -> Optional[Job]:
        return self._jobs.get(job_id)

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._jobs

    def __len__(self) -> int:
        return len(self._jobs)

    def apply(self, job_id: str, mutation: Callable[[Job], Job]) -> Job:
        """
        Atomically replace one job's record.

        Args:
            job_id: Id of the job to mutate
            mutation: Function from the current record to its replacement

        Returns:
            The new record

        Raises:
            JobNotFoundError: If the job is not in the store
            ValueError: If the replacement breaks the job invariants
        """
        current = self._jobs.get(job_id)
        if current is None:
            raise JobNotFoundError(job_id)
        updated = mutation(current)
        if updated.id != job_id:
            raise ValueError(f"mutation changed job id {job_id} -> {updated.id}")
        self._jobs[job_id] = updated
        return updated

    def remove(self, job_id: str) -> Job:
        """
        Delete a job that is not being processed.

        Raises:
            JobNotFoundError: If the job is not in the store
            JobInFlightError: If the job is currently processing
        """
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        if job.status == JobStatus.PROCESSING:
            raise JobInFlightError(job_id)
        del self._jobs[job_id]
        return job

    def snapshot(self) -> List[Job]:
        """Ordered, independently mutable copy of every job."""
        return [job.model_copy(deep=True) for job in self._jobs.values()]

    def counts(self) -> Dict[JobStatus, int]:
        totals = {status: 0 for status in JobStatus}
        for job in self._jobs.values():
            totals[job.status] += 1
        return totals

    # ==================== Transitions ====================

    def mark_processing(self, job_id: str) -> Job:
        """
        Claim a pending or failed job for a worker.

        Raises:
            JobNotFoundError: If the job is not in the store
            InvalidTransitionError: If the job is processing or completed
        """
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        if job.status not in RUNNABLE_STATUSES:
            raise InvalidTransitionError(
                job_id, job.status.value, JobStatus.PROCESSING.value
            )
        return self.apply(
            job_id,
            lambda j: j.replace(
                status=JobStatus.PROCESSING, result=None, artifact=None, error=None
            ),
        )

    def mark_completed(self, job_id: str, outcome: GenerationResult) -> Job:
        return self.apply(
            job_id,
            lambda j: j.replace(
                status=JobStatus.COMPLETED,
                result=outcome.result,
                artifact=outcome.artifact,
                error=None,
            ),
        )

    def mark_failed(self, job_id: str, error: str) -> Job:
        return self.apply(
            job_id,
            lambda j: j.replace(
                status=JobStatus.FAILED, result=None, artifact=None, error=error
            ),
        )

    def mark_pending(self, job_id: str) -> Job:
        return self.apply(
            job_id,
            lambda j: j.replace(
                status=JobStatus.PENDING, result=None, artifact=None, error=None
            ),
        )

    def reset(self, job_id: str) -> Job:
        """Explicit retry: put a finished job back to pending."""
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        if job.status == JobStatus.PROCESSING:
            raise JobInFlightError(job_id, action="retry")
        return self.mark_pending(job_id)

    # ==================== Observers ====================

    def subscribe(self, callback: Subscriber) -> None:
        if callback not in self._subscribers:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    async def publish(self) -> None:
        """Send the current snapshot to every subscriber."""
        for callback in list(self._subscribers):
            try:
                outcome = callback(self.snapshot())
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                logger.exception(f"Job observer {callback!r} failed: {e}")

    @asynccontextmanager
    async def publishing(self, interval: float) -> AsyncIterator[None]:
        """Publish snapshots every ``interval`` seconds for the duration of the block."""

        async def _loop() -> None:
            while True:
                await asyncio.sleep(interval)
                await self.publish()

        task = asyncio.create_task(_loop())
        try:
            yield
        finally:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            await self.publish()
