"""CLI for inspecting and clearing stuck jobs in the job database."""

import argparse
import asyncio

from imagen_mcp.config import Settings, settings as default_settings
from imagen_mcp.logging_config import setup_logging
from imagen_mcp.models.enums import JobStatus
from imagen_mcp.repositories.job_repo import JobRepository, JobStore

CLEARED_MESSAGE = "Cleared by admin"


async def clear_jobs(store: JobStore, statuses: tuple[JobStatus, ...]) -> int:
    """Fail every job in ``statuses`` in one transaction. Returns the count."""

    async def clear(repo: JobRepository) -> int:
        count = 0
        for row in await repo.list_active():
            if row.status in statuses:
                await repo.set_error(row.id, CLEARED_MESSAGE)
                count += 1
        return count

    return await store.transaction(clear)


async def report(store: JobStore) -> list[str]:
    counts = await store.count_by_status()
    lines = [
        "=== Current Job Status ===",
        f"Total jobs: {sum(counts.values())}",
        f"Pending: {counts[JobStatus.PENDING]}",
        f"Running: {counts[JobStatus.RUNNING]}",
        f"Failed: {counts[JobStatus.FAILED]}",
        f"Completed: {counts[JobStatus.COMPLETED]}",
        "",
        "=== Recent Jobs (last 10) ===",
    ]
    for i, job in enumerate(await store.list_jobs(limit=10), start=1):
        lines.append(f"{i}. [{job.status}] {job.id} - {job.type} - {job.created_at.isoformat()}")
        if job.error:
            lines.append(f"   Error: {job.error[:100]}")
    return lines


async def run(args: argparse.Namespace, config: Settings) -> None:
    from imagen_mcp.db.engine import create_db_engine, create_session_factory, init_db

    engine = create_db_engine(config=config)
    try:
        await init_db(engine)
        store = JobStore(create_session_factory(engine))
        print(f"Database path: {config.database_path}\n")
        print("\n".join(await report(store)))

        if args.clear_all:
            cleared = await clear_jobs(store, (JobStatus.PENDING, JobStatus.RUNNING))
            print(f"\nCleared {cleared} pending/running jobs")
        else:
            if args.clear_pending:
                cleared = await clear_jobs(store, (JobStatus.PENDING,))
                print(f"\nCleared {cleared} pending jobs")
            if args.clear_running:
                cleared = await clear_jobs(store, (JobStatus.RUNNING,))
                print(f"\nCleared {cleared} running jobs")
    finally:
        await engine.dispose()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="imagen-jobs",
        description="Show job status counts and clear stuck jobs. "
        "Stop the MCP server first; clearing a job it is running races with it.",
    )
    parser.add_argument("--clear-pending", action="store_true", help="Mark pending jobs failed")
    parser.add_argument("--clear-running", action="store_true", help="Mark running jobs failed")
    parser.add_argument("--clear-all", action="store_true", help="Mark all pending and running jobs failed")
    args = parser.parse_args(argv)

    setup_logging(default_settings)
    asyncio.run(run(args, default_settings))


if __name__ == "__main__":
    main()
