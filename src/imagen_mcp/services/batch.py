"""Batch orchestration: submit many generate jobs and poll them to one report."""

import asyncio
import json
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Any

import pydantic

from imagen_mcp.db.base import utcnow
from imagen_mcp.errors.exceptions import DEFAULT_FAILURE_MESSAGE, ValidationError
from imagen_mcp.models.batch import BatchConfig, BatchItemResult, BatchJobItem, BatchResult
from imagen_mcp.models.enums import BatchItemStatus, JobStatus, JobType
from imagen_mcp.models.results import primary_output
from imagen_mcp.repositories.job_repo import JobStore
from imagen_mcp.workers.queue import JobQueue

logger = logging.getLogger(__name__)

MISSING_JOB_ID = "N/A"
DEFAULT_TIMEOUT_MS = 600_000
DEFAULT_POLL_INTERVAL_MS = 2000


def batch_item_to_generate_params(item: BatchJobItem, output_dir: str) -> dict[str, Any]:
    """Generate-job params for one batch item; unset options are left out."""
    params: dict[str, Any] = item.model_dump(exclude_none=True, exclude={"output_filename"})
    if item.output_filename:
        params["output_path"] = str(Path(output_dir) / item.output_filename)
    params["return_base64"] = False
    return params


def validate_batch_config(data: Any) -> BatchConfig:
    """Check a parsed batch config before anything is submitted.

    Raises:
        ValidationError: With a message naming the first offending field.
    """
    if not isinstance(data, dict):
        raise ValidationError("Invalid batch config: top level must be a JSON object")
    jobs = data.get("jobs")
    if not isinstance(jobs, list) or not jobs:
        raise ValidationError('Invalid batch config: "jobs" array is required and must not be empty')
    for i, job in enumerate(jobs):
        prompt = job.get("prompt") if isinstance(job, dict) else None
        if not isinstance(prompt, str) or not prompt.strip():
            raise ValidationError(
                f"Invalid batch config: jobs[{i}].prompt is required and must be a string"
            )
    try:
        return BatchConfig.model_validate(data)
    except pydantic.ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise ValidationError(
            f"Invalid batch config: {location}: {first['msg']}",
            details=exc.errors(include_url=False),
        ) from exc


def load_batch_config(path: str | Path) -> BatchConfig:
    """Read and validate a JSON batch config file. I/O errors propagate."""
    content = Path(path).read_text(encoding="utf-8")
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise ValidationError(f"Invalid batch config: {path} is not valid JSON ({exc})") from exc
    return validate_batch_config(data)


def _iso(value: datetime) -> str:
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class BatchProcessor:
    """Submits one generate job per batch item and waits for all of them."""

    def __init__(
        self,
        queue: JobQueue,
        store: JobStore,
        output_dir: str,
        poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ):
        self.queue = queue
        self.store = store
        self.output_dir = output_dir
        self.poll_interval_ms = poll_interval_ms
        # Used when the batch file sets no timeout of its own
        self.timeout_ms = timeout_ms

    async def execute_batch(self, config: BatchConfig) -> BatchResult:
        """Run the batch. Individual job failures end up in the report, never raised."""
        started_at = utcnow()
        started = time.monotonic()
        output_dir = config.output_dir or self.output_dir
        total = len(config.jobs)

        logger.info("Starting batch with %d jobs (output_dir=%s)", total, output_dir)

        job_ids: list[str | None] = []
        for i, item in enumerate(config.jobs):
            logger.info("Queueing job %d/%d: %s", i + 1, total, item.prompt[:50])
            try:
                job_id = await self.queue.create_job(
                    JobType.GENERATE, batch_item_to_generate_params(item, output_dir)
                )
            except Exception:
                logger.exception("Failed to create job %d/%d", i + 1, total)
                job_id = None
            job_ids.append(job_id)

        results = await self._wait_for_jobs(
            job_ids, config.jobs, config.timeout or self.timeout_ms, started
        )

        finished_at = utcnow()
        result = BatchResult(
            total=total,
            succeeded=sum(1 for r in results if r.status is BatchItemStatus.COMPLETED),
            failed=sum(
                1 for r in results
                if r.status in (BatchItemStatus.FAILED, BatchItemStatus.CANCELLED)
            ),
            results=results,
            started_at=_iso(started_at),
            finished_at=_iso(finished_at),
            total_duration_ms=int((time.monotonic() - started) * 1000),
        )
        logger.info(
            "Batch finished: total=%d succeeded=%d failed=%d duration=%dms",
            result.total, result.succeeded, result.failed, result.total_duration_ms,
        )
        return result

    async def _wait_for_jobs(
        self,
        job_ids: list[str | None],
        items: list[BatchJobItem],
        timeout_ms: int,
        started: float,
    ) -> list[BatchItemResult]:
        results = [
            BatchItemResult(job_id=job_id, prompt=item.prompt)
            if job_id
            else BatchItemResult(
                job_id=MISSING_JOB_ID,
                prompt=item.prompt,
                status=BatchItemStatus.FAILED,
                error="Failed to create job",
            )
            for job_id, item in zip(job_ids, items)
        ]
        deadline = started + timeout_ms / 1000

        while True:
            for job_id, entry in zip(job_ids, results):
                if entry.status.is_terminal:
                    continue
                await self._refresh(job_id, entry)

            pending = [r for r in results if not r.status.is_terminal]
            if not pending:
                break

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.warning("Batch timeout reached, cancelling %d job(s)", len(pending))
                for job_id, entry in zip(job_ids, results):
                    if entry.status.is_terminal:
                        continue
                    await self.queue.cancel_job(job_id)
                    entry.status = BatchItemStatus.CANCELLED
                    entry.error = "Timeout"
                break

            completed = sum(1 for r in results if r.status is BatchItemStatus.COMPLETED)
            logger.info(
                "Batch progress: %d completed, %d failed, %d pending",
                completed, len(results) - completed - len(pending), len(pending),
            )
            await asyncio.sleep(min(self.poll_interval_ms / 1000, remaining))

        return results

    async def _refresh(self, job_id: str, entry: BatchItemResult) -> None:
        job = await self.store.get_job(job_id)
        if job is None:
            entry.status = BatchItemStatus.FAILED
            entry.error = "Job not found"
        elif job.status is JobStatus.COMPLETED:
            entry.status = BatchItemStatus.COMPLETED
            entry.output_path = primary_output(job.result)
            entry.duration_ms = job.duration_ms
        elif job.status is JobStatus.FAILED:
            entry.status = BatchItemStatus.FAILED
            entry.error = job.error if job.error and job.error.strip() else DEFAULT_FAILURE_MESSAGE
            entry.duration_ms = job.duration_ms

    @staticmethod
    def format_result_as_json(result: BatchResult) -> str:
        return result.model_dump_json(indent=2, exclude_none=True)

    @staticmethod
    def format_result_as_text(result: BatchResult) -> str:
        lines = [
            "=== Batch Processing Result ===",
            f"Total Jobs: {result.total}",
            f"Succeeded: {result.succeeded}",
            f"Failed: {result.failed}",
            f"Duration: {result.total_duration_ms}ms",
            f"Started: {result.started_at}",
            f"Finished: {result.finished_at}",
            "",
            "=== Individual Results ===",
        ]
        count = len(result.results)
        for i, r in enumerate(result.results, start=1):
            lines.append(f"\n[{i}/{count}] {r.status.value.upper()}")
            lines.append(f"  Job ID: {r.job_id}")
            lines.append(f"  Prompt: {r.prompt}")
            if r.output_path:
                lines.append(f"  Output: {r.output_path}")
            if r.error and r.error.strip():
                lines.append(f"  Error: {r.error}")
            elif r.status in (BatchItemStatus.FAILED, BatchItemStatus.CANCELLED):
                lines.append("  Error: No error message recorded")
            if r.duration_ms is not None:
                lines.append(f"  Duration: {r.duration_ms}ms")
        return "\n".join(lines)
