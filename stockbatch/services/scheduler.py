"""Run controller: bounded workers over a rotating pool of API keys."""

import asyncio
import inspect
import logging
import time
from datetime import datetime
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from stockbatch.config import Settings, get_settings
from stockbatch.models.credential import Credential
from stockbatch.models.job import GenerationResult, Job, JobStatus
from stockbatch.models.run import RunMode, RunState, RunStatus, RunSummary
from stockbatch.services.credential_pool import CredentialPool
from stockbatch.services.job_queue import JobQueue
from stockbatch.services.job_store import RUNNABLE_STATUSES, JobStateStore
from stockbatch.utils.classify import ErrorKind, classify_error, truncate_error
from stockbatch.utils.errors import NoJobsError, RunInProgressError

logger = logging.getLogger(__name__)

Generator = Callable[[Job, str, RunMode], Awaitable[Any]]
CompletionListener = Callable[[RunSummary, List[Job]], Any]


class RunContext:
    """Everything one run owns: its queue, its key pool and its workers."""

    def __init__(
        self,
        job_ids: Sequence[str],
        pool: CredentialPool,
        mode: RunMode,
        effective_concurrency: int,
    ) -> None:
        self.job_ids = list(job_ids)
        self.queue = JobQueue(self.job_ids)
        self.pool = pool
        self.mode = mode
        self.effective_concurrency = effective_concurrency
        self.active_workers = 0
        self.stop_event = asyncio.Event()
        self.finished = False
        self.started_at = datetime.utcnow()

    @property
    def stopped(self) -> bool:
        return self.stop_event.is_set()


class Scheduler:
    """Distributes jobs across API keys with bounded concurrency.

    One run at a time: ``start`` seeds a fresh RunContext and spawns
    ``min(worker_count, len(keys))`` workers. Each worker loops until the
    queue is empty or the run is cancelled. Provider failures never leave
    the worker; callers observe outcomes through the JobStateStore and the
    completion listeners.
    """

    def __init__(
        self,
        store: JobStateStore,
        generate: Generator,
        settings: Optional[Settings] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the Scheduler.

        Args:
            store: Job state store shared with observers
            generate: Async capability processing one job with one key
            settings: Timing and limit settings (defaults to environment)
            clock: Monotonic clock used for key cooldowns
        """
        self.store = store
        self.generate = generate
        self.settings = settings or get_settings()
        self.clock = clock
        self.context: Optional[RunContext] = None
        self._task: Optional[asyncio.Task] = None
        self._listeners: List[CompletionListener] = []

    # ==================== Lifecycle ====================

    @property
    def state(self) -> RunState:
        ctx = self.context
        if ctx is None or ctx.finished:
            return RunState.IDLE
        if ctx.queue:
            return RunState.RUNNING
        return RunState.DRAINING

    @property
    def is_running(self) -> bool:
        return self.state != RunState.IDLE

    def on_complete(self, listener: CompletionListener) -> None:
        """Register a callback receiving (summary, snapshot) when a run ends."""
        self._listeners.append(listener)

    def effective_concurrency(self, worker_count: Optional[int], key_count: int) -> int:
        requested = worker_count if worker_count is not None else self.settings.worker_count
        requested = max(1, min(requested, self.settings.max_worker_count))
        return max(1, min(requested, key_count))

    def start(
        self,
        jobs: Sequence[Job],
        credentials: Sequence[str],
        worker_count: Optional[int] = None,
        mode: RunMode = RunMode.METADATA,
    ) -> "asyncio.Task[RunSummary]":
        """
        Validate inputs, seed the queue and spawn workers.

        Must be called from a running event loop. Nothing is spawned and no
        job is touched when a precondition fails.

        Only jobs whose stored record is pending or failed are queued, each
        id once. Completed jobs stay completed until explicitly retried.

        Args:
            jobs: Jobs to process, in queue order
            credentials: API keys for the active provider
            worker_count: Requested concurrency, clamped to 1..max_worker_count
            mode: What the jobs generate, forwarded to the capability

        Returns:
            Task resolving to the RunSummary

        Raises:
            RunInProgressError: If a run is already active
            NoCredentialsError: If no usable key is given
            NoJobsError: If no given job is pending or failed
        """
        if self.is_running:
            raise RunInProgressError()
        pool = CredentialPool(credentials, clock=self.clock)

        runnable = {}
        for job in jobs:
            record = self.store.get(job.id) or job
            if record.status in RUNNABLE_STATUSES:
                runnable.setdefault(job.id, job)
        if not runnable:
            raise NoJobsError()

        skipped = len(jobs) - len(runnable)
        if skipped:
            logger.info(f"Skipping {skipped} finished, in-flight or repeated jobs")

        self.store.add(job for job in runnable.values() if job.id not in self.store)
        concurrency = self.effective_concurrency(worker_count, len(pool))
        ctx = RunContext(list(runnable), pool, mode, concurrency)
        self.context = ctx

        logger.info(
            f"Starting queue: {len(ctx.queue)} items in {mode.value.upper()} "
            f"using {self.settings.api_provider}"
        )
        logger.info(f"Spawning {concurrency} workers...")
        self._task = asyncio.create_task(self._run(ctx))
        return self._task

    async def run(
        self,
        jobs: Sequence[Job],
        credentials: Sequence[str],
        worker_count: Optional[int] = None,
        mode: RunMode = RunMode.METADATA,
    ) -> RunSummary:
        """Start a run and wait for it to finish."""
        return await self.start(jobs, credentials, worker_count, mode)

    async def wait(self) -> Optional[RunSummary]:
        """Wait for the current run. Returns None when nothing was started."""
        if self._task is None:
            return None
        return await self._task

    def cancel(self) -> bool:
        """
        Stop dequeuing. In-flight generation calls are allowed to finish.

        Returns:
            True if a run was active
        """
        ctx = self.context
        if ctx is None or ctx.finished:
            return False
        if not ctx.stopped:
            logger.warning("Stop requested; finishing in-flight jobs")
            ctx.stop_event.set()
        return True

    # ==================== Job actions ====================

    def delete_job(self, job_id: str) -> Job:
        """Remove a job unless it is processing. Stale queue entries are skipped."""
        job = self.store.remove(job_id)
        logger.warning(f"Deleted job: {job.display_name()}")
        return job

    def retry_job(self, job_id: str) -> Job:
        """Reset a job to pending; it is picked up by the next run."""
        job = self.store.reset(job_id)
        logger.info(f"Job {job.display_name()} reset to pending")
        return job

    def status(self) -> RunStatus:
        ctx = self.context
        if ctx is None:
            return RunStatus(state=RunState.IDLE)
        return RunStatus(
            state=self.state,
            mode=ctx.mode,
            queued=len(ctx.queue),
            active_workers=ctx.active_workers,
            effective_concurrency=ctx.effective_concurrency,
            cooling_keys=ctx.pool.cooling(),
            cancelled=ctx.stopped,
        )

    # ==================== Run loop ====================

    async def _run(self, ctx: RunContext) -> RunSummary:
        try:
            async with self.store.publishing(self.settings.publish_interval_seconds):
                while True:
                    workers = [
                        asyncio.create_task(self._worker(ctx, worker_id))
                        for worker_id in range(1, ctx.effective_concurrency + 1)
                    ]
                    await asyncio.gather(*workers)
                    await asyncio.sleep(self.settings.settle_delay_seconds)
                    if ctx.stopped or not ctx.queue:
                        break
                    logger.info(f"{len(ctx.queue)} items requeued after workers exited; respawning")
        finally:
            ctx.finished = True

        summary = self._summarize(ctx)
        if summary.cancelled:
            logger.warning(
                f"Run stopped: {summary.completed} completed, {summary.failed} failed, "
                f"{summary.pending} pending"
            )
        else:
            logger.info(
                f"All workers finished: {summary.completed} completed, "
                f"{summary.failed} failed"
            )
        await self._notify(summary)
        return summary

    async def _worker(self, ctx: RunContext, worker_id: int) -> None:
        ctx.active_workers += 1
        try:
            await self._pause(ctx, self.settings.worker_stagger_seconds * (worker_id - 1))
            while not ctx.stopped:
                job_id = ctx.queue.dequeue_head()
                if job_id is None:
                    logger.debug(f"Worker {worker_id}: queue empty, exiting")
                    return

                job = self.store.get(job_id)
                if job is None or job.status not in RUNNABLE_STATUSES:
                    # Deleted or finished while queued
                    continue

                credential = ctx.pool.acquire()
                if credential is None:
                    ctx.queue.requeue_head(job_id)
                    await self._pause(ctx, self.settings.no_key_backoff_seconds)
                    continue

                await self._process(ctx, job_id, credential)
        finally:
            ctx.active_workers -= 1

    async def _process(self, ctx: RunContext, job_id: str, credential: Credential) -> None:
        job = self.store.mark_processing(job_id)
        try:
            outcome = await self.generate(job, credential.token, ctx.mode)
            if not isinstance(outcome, GenerationResult):
                outcome = GenerationResult.model_validate(outcome)
        except asyncio.CancelledError:
            ctx.pool.release(credential)
            if job_id in self.store:
                self.store.mark_pending(job_id)
            raise
        except Exception as e:
            self._handle_failure(ctx, job, credential, e)
            return

        ctx.pool.release(credential)
        if job_id not in self.store:
            return
        self.store.mark_completed(job_id, outcome)
        logger.info(f"Key {credential.index} [Success] {job.display_name()}")

    def _handle_failure(
        self, ctx: RunContext, job: Job, credential: Credential, exc: Exception
    ) -> None:
        kind = classify_error(exc)

        if kind == ErrorKind.ABORTED:
            ctx.pool.release(credential)
            return

        if kind == ErrorKind.TRANSIENT:
            ctx.pool.cool_down(credential, self.settings.key_cooldown_seconds)
            ctx.queue.requeue_tail(job.id)
            if job.id in self.store:
                self.store.mark_pending(job.id)
            logger.warning(f"Key {credential.index} Limited. Cooling down.")
            return

        ctx.pool.release(credential)
        message = truncate_error(exc, self.settings.error_max_length)
        if job.id in self.store:
            self.store.mark_failed(job.id, message)
        logger.error(f"Key {credential.index} [Failed] {job.display_name()}: {message}")

    async def _pause(self, ctx: RunContext, seconds: float) -> None:
        """Sleep, waking early if the run is cancelled."""
        if seconds <= 0:
            await asyncio.sleep(0)
            return
        try:
            await asyncio.wait_for(ctx.stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    # ==================== Completion ====================

    def _summarize(self, ctx: RunContext) -> RunSummary:
        totals = {status: 0 for status in JobStatus}
        for job_id in ctx.job_ids:
            job = self.store.get(job_id)
            if job is not None:
                totals[job.status] += 1
        return RunSummary(
            mode=ctx.mode,
            total=sum(totals.values()),
            completed=totals[JobStatus.COMPLETED],
            failed=totals[JobStatus.FAILED],
            pending=totals[JobStatus.PENDING] + totals[JobStatus.PROCESSING],
            cancelled=ctx.stopped,
            started_at=ctx.started_at,
        )

    async def _notify(self, summary: RunSummary) -> None:
        snapshot = self.store.snapshot()
        for listener in list(self._listeners):
            try:
                outcome = listener(summary, snapshot)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                logger.exception(f"Run completion listener failed: {e}")
