"""Shared test fixtures."""

import httpx
import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from helpers import FakeImagenAPI
from imagen_mcp.config import Settings
from imagen_mcp.db.engine import create_session_factory, init_db
from imagen_mcp.models.enums import JobType
from imagen_mcp.repositories.history_repo import HistoryStore
from imagen_mcp.repositories.job_repo import JobStore
from imagen_mcp.services.imagen_client import ImagenClient
from imagen_mcp.services.output_paths import OutputManager
from imagen_mcp.services.rate_limiter import RateLimiter
from imagen_mcp.workers.base import BaseExecutor, ExecutorContext
from imagen_mcp.workers.queue import JobQueue


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        _env_file=None,
        output_dir=str(tmp_path / "out"),
        db=str(tmp_path / "jobs.db"),
        max_concurrent_jobs=2,
        google_project_id="test-project",
        google_api_key="test-key",
        cancel_sweep_interval_seconds=3600,
    )


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite async engine for testing."""
    engine = create_async_engine("sqlite+aiosqlite:///", echo=False)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def store(db_engine):
    return JobStore(create_session_factory(db_engine))


@pytest.fixture
def history(store):
    return HistoryStore(store)


@pytest.fixture
async def make_queue(store, test_settings):
    """Factory for job queues wired to one executor for every job type."""
    queues: list[JobQueue] = []

    def _make(executor: BaseExecutor, max_concurrent: int = 2, context=None) -> JobQueue:
        queue = JobQueue(
            store,
            context,
            max_concurrent=max_concurrent,
            executors={job_type: executor for job_type in JobType},
            config=test_settings,
        )
        queues.append(queue)
        return queue

    yield _make
    for queue in queues:
        await queue.stop()


@pytest.fixture
def imagen_api():
    return FakeImagenAPI()


@pytest.fixture
async def executor_context(test_settings, imagen_api, history):
    """Executor context whose Imagen client talks to the fake API."""
    http = httpx.AsyncClient(transport=httpx.MockTransport(imagen_api.handler))
    client = ImagenClient(test_settings, RateLimiter(max_calls=100, window_ms=1000), http_client=http)
    yield ExecutorContext(
        settings=test_settings,
        client=client,
        outputs=OutputManager(test_settings.output_dir),
        history=history,
    )
    await http.aclose()
