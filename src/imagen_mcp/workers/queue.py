"""Job queue: bounded-concurrency dispatch of Imagen jobs onto executors.

The store is the durable source of truth. The in-memory ``_running`` set is
what admission control consults; both are updated on every transition.
Cancellation is cooperative: a running job is only flagged, and the flag is
checked before dispatch and again when the executor returns.
"""

import asyncio
import logging
from collections.abc import Mapping
from datetime import datetime, timedelta
from typing import Any

from imagen_mcp.config import Settings, settings as default_settings
from imagen_mcp.db.base import utcnow
from imagen_mcp.errors.exceptions import ValidationError, error_message
from imagen_mcp.logging_config import bind_job_context, clear_job_context
from imagen_mcp.models.enums import JobStatus, JobType
from imagen_mcp.models.job import Job
from imagen_mcp.models.results import normalize_result
from imagen_mcp.repositories.job_repo import JobRepository, JobStore, row_to_job
from imagen_mcp.services.id_generator import generate_id
from imagen_mcp.workers.base import BaseExecutor, ExecutorContext
from imagen_mcp.workers.registry import get_executor

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Job cancelled by user"


class JobQueue:
    """Admits jobs, runs at most ``max_concurrent`` of them, and records outcomes."""

    def __init__(
        self,
        store: JobStore,
        context: ExecutorContext | None = None,
        max_concurrent: int | None = None,
        executors: Mapping[str, BaseExecutor] | None = None,
        config: Settings | None = None,
    ):
        self.store = store
        self.context = context
        self.config = config or (context.settings if context else default_settings)
        self.max_concurrent = (
            max_concurrent if max_concurrent is not None else self.config.max_concurrent_jobs
        )
        if self.max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self._executors = dict(executors or {})
        self._running: set[str] = set()
        self._cancelled: dict[str, datetime] = {}
        self._tasks: dict[str, asyncio.Task] = {}
        self._dispatchers: set[asyncio.Task] = set()
        self._dispatch_lock = asyncio.Lock()
        self._sweeper: asyncio.Task | None = None
        self._closing = False

    @property
    def running_count(self) -> int:
        return len(self._running)

    def is_cancel_requested(self, job_id: str) -> bool:
        return job_id in self._cancelled

    def executor_for(self, job_type: str) -> BaseExecutor | None:
        return self._executors.get(job_type) or get_executor(job_type)

    # ------------------------------------------------------------------
    # Caller-facing operations
    # ------------------------------------------------------------------

    async def create_job(self, job_type: str, params: dict[str, Any]) -> str:
        """Persist a pending job and run one dispatch pass.

        Raises:
            ValidationError: Unknown job type or missing params; nothing is stored.
        """
        try:
            kind = JobType(job_type)
        except ValueError:
            raise ValidationError(
                f"Unknown job type: {job_type}",
                details={"allowed": [t.value for t in JobType]},
            ) from None
        if not isinstance(params, dict):
            raise ValidationError("Job params are required and must be an object")
        if self.executor_for(kind) is None:
            raise ValidationError(f"No executor registered for job type: {kind}")

        job = Job(id=generate_id(), type=kind, params=params, created_at=utcnow())
        await self.store.create_job(job)
        logger.info("Job %s created (type=%s)", job.id, kind)

        await self.process_jobs()
        return job.id

    async def get_job(self, job_id: str) -> Job | None:
        return await self.store.get_job(job_id)

    async def list_jobs(self, status: JobStatus | None = None, limit: int = 50) -> list[Job]:
        return await self.store.list_jobs(status, limit)

    async def cancel_job(self, job_id: str) -> bool:
        """Cancel a job. Returns False if it does not exist or is already terminal.

        A pending job fails immediately. A running job is only flagged; its
        executor keeps going and the flag decides the outcome when it returns.
        """

        async def cancel(repo: JobRepository) -> bool:
            row = await repo.get(job_id)
            if row is None or JobStatus(row.status).is_terminal:
                return False
            if row.status == JobStatus.PENDING and job_id not in self._running:
                await repo.set_error(job_id, CANCELLED_MESSAGE)
            else:
                self._cancelled[job_id] = utcnow()
            return True

        cancelled = await self.store.transaction(cancel)
        if cancelled:
            logger.info("Job %s cancellation requested", job_id)
        return cancelled

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def process_jobs(self) -> None:
        """One dispatch pass: fill free slots with the oldest pending jobs.

        Concurrent triggers queue up on the dispatch lock and run one after
        another.
        """
        async with self._dispatch_lock:
            while len(self._running) < self.max_concurrent and not self._closing:
                job = await self._claim_next()
                if job is None:
                    break
                task = asyncio.create_task(self._run_job(job), name=f"imagen-job-{job.id}")
                self._tasks[job.id] = task
                task.add_done_callback(self._job_done)

    async def _claim_next(self) -> Job | None:
        """Move the oldest pending job not tracked locally to running."""
        tracked = set(self._running)

        async def claim(repo: JobRepository) -> Job | None:
            for row in await repo.list_active():
                if row.status != JobStatus.PENDING or row.id in tracked:
                    continue
                if row.id in self._cancelled:
                    await repo.set_error(row.id, CANCELLED_MESSAGE)
                    logger.info("Job %s cancelled before dispatch", row.id)
                    continue
                await repo.set_status(row.id, JobStatus.RUNNING, started_at=utcnow())
                return row_to_job(row)
            return None

        job = await self.store.transaction(claim)
        if job is not None:
            self._running.add(job.id)
            logger.info("Job %s dispatched (type=%s, running=%d/%d)",
                        job.id, job.type, len(self._running), self.max_concurrent)
        return job

    async def _run_job(self, job: Job) -> None:
        bind_job_context(job.id, job.type)
        try:
            executor = self.executor_for(job.type)
            try:
                if executor is None:
                    raise ValidationError(f"No executor registered for job type: {job.type}")
                result = await executor.execute(self.context, job.params)
                outcome = normalize_result(result)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                if self.config.debug:
                    logger.exception("Job %s failed", job.id)
                else:
                    logger.error("Job %s failed: %s", job.id, error_message(exc))
                await self._settle(job.id, error=error_message(exc))
            else:
                await self._settle(job.id, result=outcome)
        except asyncio.CancelledError:
            if job.id in self._cancelled:
                await self._settle(job.id, error=CANCELLED_MESSAGE)
            raise
        finally:
            self._running.discard(job.id)
            self._cancelled.pop(job.id, None)
            self._tasks.pop(job.id, None)
            clear_job_context()
            if not self._closing:
                self._schedule_dispatch()

    async def _settle(
        self, job_id: str, result: dict[str, Any] | None = None, error: str | None = None
    ) -> None:
        """Record the outcome unless the job is already terminal; a cancel flag wins."""

        async def settle(repo: JobRepository) -> str | None:
            row = await repo.get(job_id)
            if row is None:
                return None
            if JobStatus(row.status).is_terminal:
                return row.status
            if job_id in self._cancelled:
                await repo.set_error(job_id, CANCELLED_MESSAGE)
                return "cancelled"
            if error is not None:
                await repo.set_error(job_id, error)
                return JobStatus.FAILED
            await repo.set_result(job_id, result or {})
            return JobStatus.COMPLETED

        outcome = await self.store.transaction(settle)
        if outcome is None:
            logger.warning("Job %s disappeared before its outcome was recorded", job_id)
        else:
            logger.info("Job %s finished: %s", job_id, outcome)

    def _schedule_dispatch(self) -> None:
        task = asyncio.create_task(self.process_jobs(), name="imagen-dispatch")
        self._dispatchers.add(task)
        task.add_done_callback(self._dispatch_done)

    def _dispatch_done(self, task: asyncio.Task) -> None:
        self._dispatchers.discard(task)
        self._report_failure(task, "Job dispatch pass failed")

    def _job_done(self, task: asyncio.Task) -> None:
        self._report_failure(task, "Job bookkeeping failed")

    @staticmethod
    def _report_failure(task: asyncio.Task, message: str) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        logger.critical("%s (%s)", message, task.get_name(), exc_info=exc)
        task.get_loop().call_exception_handler(
            {"message": message, "exception": exc, "task": task}
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def resume_interrupted(self) -> int:
        """Reset jobs left running by a previous process to pending, atomically."""

        async def reset(repo: JobRepository) -> list[str]:
            ids = []
            for row in await repo.list_active():
                if row.status == JobStatus.RUNNING and row.id not in self._running:
                    await repo.set_status(row.id, JobStatus.PENDING)
                    ids.append(row.id)
            return ids

        ids = await self.store.transaction(reset)
        if ids:
            logger.info("Resuming %d interrupted job(s): %s", len(ids), ", ".join(ids))
        return len(ids)

    async def start(self) -> None:
        """Resume interrupted jobs, start the cancellation sweeper, dispatch."""
        from imagen_mcp.workers.scheduler import run_cancellation_sweeper

        self._closing = False
        await self.resume_interrupted()
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(
                run_cancellation_sweeper(self, self.config.cancel_sweep_interval_seconds),
                name="imagen-cancel-sweeper",
            )
        await self.process_jobs()

    async def stop(self) -> None:
        """Stop the sweeper and in-flight work.

        Executor tasks are cancelled; flagged jobs are recorded as cancelled,
        the rest stay running in the store and resume on the next start.
        """
        self._closing = True
        if self._sweeper is not None:
            self._sweeper.cancel()
            await asyncio.gather(self._sweeper, return_exceptions=True)
            self._sweeper = None

        tasks = list(self._tasks.values()) + list(self._dispatchers)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Job queue stopped (%d task(s) cancelled)", len(tasks))

    async def purge_cancellations(self, retention_seconds: int | None = None) -> int:
        """Drop cancel flags whose job is gone or terminal for longer than the retention."""
        if retention_seconds is None:
            retention_seconds = self.config.cancel_retention_seconds
        cutoff = utcnow() - timedelta(seconds=retention_seconds)
        removed = 0
        for job_id, flagged_at in list(self._cancelled.items()):
            if job_id in self._running:
                continue
            job = await self.store.get_job(job_id)
            if job is None or (job.is_terminal and (job.completed_at or flagged_at) < cutoff):
                self._cancelled.pop(job_id, None)
                removed += 1
        return removed
