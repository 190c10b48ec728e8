"""
Pytest configuration and shared fixtures.
"""

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta
from pathlib import Path

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from prometheus_client import CollectorRegistry

from queuectl.api.main import create_app
from queuectl.config import Settings
from queuectl.db import Database, SqlJobStore
from queuectl.errors import ExecutionError
from queuectl.observability.metrics import MetricsCollector
from queuectl.service import JobQueue
from queuectl.types.job import CommandOutput
from queuectl.utils import utcnow


class FakeExecutor:
    """
    Scripted CommandExecutor.

    Each run() consumes the next script entry: None succeeds, a string fails
    with that reason, an exception instance is raised as-is. Once the script
    is exhausted the last entry repeats.
    """

    def __init__(self, *script: str | BaseException | None):
        self.script = list(script) or [None]
        self.commands: list[str] = []

    async def run(self, command: str, timeout: float | None = None) -> CommandOutput:
        self.commands.append(command)
        step = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(step, BaseException):
            raise step
        if isinstance(step, str):
            raise ExecutionError(step, exit_code=1)
        return CommandOutput(exit_code=0, stdout="", stderr="", duration_seconds=0.0)


class FakeClock:
    """Manually advanced clock returning naive UTC datetimes."""

    def __init__(self, start: datetime | None = None):
        self.now = start or utcnow()

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """File-backed SQLite so concurrent sessions see one database."""
    return f"sqlite+aiosqlite:///{tmp_path / 'queuectl.db'}"


@pytest.fixture
def test_settings(database_url: str) -> Settings:
    """Create test settings."""
    return Settings(
        database_url=database_url,
        log_level="DEBUG",
        log_format="console",
        poll_interval_seconds=0.05,
        reaper_interval_seconds=0.05,
        reaper_stale_after_seconds=60,
    )


@pytest_asyncio.fixture
async def database(test_settings: Settings) -> AsyncGenerator[Database]:
    """A fresh database with the schema created."""
    db = Database.from_settings(test_settings)
    await db.create_schema()
    yield db
    await db.close()


@pytest.fixture
def store(database: Database) -> SqlJobStore:
    return SqlJobStore(database)


@pytest.fixture
def metrics() -> MetricsCollector:
    """Metrics on a private registry, so collectors never clash between tests."""
    return MetricsCollector(CollectorRegistry())


@pytest.fixture
def make_executor() -> type[FakeExecutor]:
    """Factory for scripted executors, e.g. make_executor(None, "exit code 1")."""
    return FakeExecutor


@pytest.fixture
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def clock() -> FakeClock:
    # A little ahead of real time so freshly created jobs are eligible
    return FakeClock(utcnow() + timedelta(seconds=1))


@pytest.fixture
def queue(
    store: SqlJobStore,
    test_settings: Settings,
    executor: FakeExecutor,
    metrics: MetricsCollector,
) -> JobQueue:
    return JobQueue(
        store,
        test_settings,
        config_store=store,
        executor=executor,
        metrics=metrics,
    )


@pytest.fixture
def app(queue: JobQueue, test_settings: Settings) -> FastAPI:
    """FastAPI app bound to the test queue; no lifespan needed."""
    return create_app(queue=queue, settings=test_settings)


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """Create an async HTTP client for testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
