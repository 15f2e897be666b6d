"""Job repository and the process-wide Job Store."""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, TypeVar

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from imagen_mcp.db.base import as_utc, utcnow
from imagen_mcp.db.models.job import JobRow
from imagen_mcp.models.enums import ACTIVE_STATUSES, JobStatus
from imagen_mcp.models.job import Job
from imagen_mcp.repositories.base import BaseRepository

logger = logging.getLogger(__name__)

R = TypeVar("R")


def row_to_job(row: JobRow) -> Job:
    return Job(
        id=row.id,
        type=row.type,
        status=row.status,
        params=row.params,
        result=row.result,
        error=row.error or None,
        created_at=as_utc(row.created_at),
        started_at=as_utc(row.started_at),
        completed_at=as_utc(row.completed_at),
    )


class JobRepository(BaseRepository[JobRow]):
    """Session-scoped job queries. Callers own the commit."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, JobRow)

    async def get(self, job_id: str) -> JobRow | None:
        return await self.get_by_pk(job_id)

    async def insert(self, job: Job) -> JobRow:
        return await self.create(
            id=job.id,
            type=str(job.type),
            status=str(JobStatus.PENDING),
            params=job.params,
            created_at=job.created_at,
        )

    async def set_status(
        self,
        job_id: str,
        status: JobStatus,
        started_at: datetime | None = None,
        completed_at: datetime | None = None,
    ) -> bool:
        """Change status; only the timestamps given are written."""
        row = await self.get(job_id)
        if row is None:
            return False
        values: dict[str, Any] = {"status": str(status)}
        if started_at is not None:
            values["started_at"] = started_at
        if completed_at is not None:
            values["completed_at"] = completed_at
        await self.update(row, **values)
        return True

    async def set_result(self, job_id: str, result: dict[str, Any]) -> bool:
        row = await self.get(job_id)
        if row is None:
            return False
        await self.update(
            row,
            result=result,
            status=str(JobStatus.COMPLETED),
            completed_at=utcnow(),
        )
        return True

    async def set_error(self, job_id: str, message: str) -> bool:
        row = await self.get(job_id)
        if row is None:
            return False
        await self.update(
            row,
            error=message,
            status=str(JobStatus.FAILED),
            completed_at=utcnow(),
        )
        return True

    async def list_recent(self, status: JobStatus | None = None, limit: int = 50) -> list[JobRow]:
        """Newest first, optionally filtered by status."""
        criteria = [JobRow.status == str(status)] if status is not None else []
        return await self.select_where(*criteria, order_by=JobRow.created_at.desc(), limit=limit)

    async def list_active(self) -> list[JobRow]:
        """Pending and running jobs, oldest first (admission order)."""
        return await self.select_where(
            JobRow.status.in_([str(s) for s in ACTIVE_STATUSES]),
            order_by=JobRow.created_at.asc(),
        )

    async def count_by_status(self) -> dict[str, int]:
        stmt = select(JobRow.status, func.count()).group_by(JobRow.status)
        result = await self.session.execute(stmt)
        counts = {str(s): 0 for s in JobStatus}
        for status, count in result.all():
            counts[status] = count
        return counts


class JobStore:
    """Durable job persistence shared by the queue and the batch processor.

    Every method runs in its own session and commits before returning.
    Access is serialized with an ``asyncio.Lock``; ``transaction`` holds the
    lock for its whole callback, so the callback must use the repository it
    is given rather than calling back into the store. Storage errors are not
    retried and propagate to the caller.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Hold the store lock for one session and commit on a clean exit."""
        async with self._lock:
            async with self._session_factory() as session:
                yield session
                await session.commit()

    @asynccontextmanager
    async def _repository(self) -> AsyncIterator[JobRepository]:
        async with self.session() as session:
            yield JobRepository(session)

    async def create_job(self, job: Job) -> None:
        """Insert a new pending job. Fails on a duplicate id."""
        async with self._repository() as repo:
            await repo.insert(job)

    async def get_job(self, job_id: str) -> Job | None:
        async with self._repository() as repo:
            row = await repo.get(job_id)
            return row_to_job(row) if row else None

    async def update_job_status(
        self,
        job_id: str,
        status: JobStatus,
        started_at: datetime | None = None,
        completed_at: datetime | None = None,
    ) -> None:
        async with self._repository() as repo:
            await repo.set_status(job_id, status, started_at, completed_at)

    async def update_job_result(self, job_id: str, result: dict[str, Any]) -> None:
        """Store the result and mark the job completed (last write wins)."""
        async with self._repository() as repo:
            await repo.set_result(job_id, result)

    async def update_job_error(self, job_id: str, message: str) -> None:
        """Store the error and mark the job failed (last write wins)."""
        async with self._repository() as repo:
            await repo.set_error(job_id, message)

    async def list_jobs(self, status: JobStatus | None = None, limit: int = 50) -> list[Job]:
        async with self._repository() as repo:
            rows = await repo.list_recent(status, limit)
            return [row_to_job(r) for r in rows]

    async def get_running_jobs(self) -> list[Job]:
        """All pending and running jobs, oldest first."""
        async with self._repository() as repo:
            rows = await repo.list_active()
            return [row_to_job(r) for r in rows]

    async def count_by_status(self) -> dict[str, int]:
        async with self._repository() as repo:
            return await repo.count_by_status()

    async def transaction(self, fn: Callable[[JobRepository], Awaitable[R]]) -> R:
        """Run ``fn`` with one repository; its writes commit together or not at all."""
        async with self._repository() as repo:
            return await fn(repo)
