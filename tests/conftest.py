"""pytest fixtures for virtualroom tests.

Provides:
- utc_timezone: Autouse fixture enforcing UTC timezone
- settings: Test settings with zero poll intervals
- job_repository: Scripted in-memory job repository
- wardrobe / feedback_client: In-memory collaborators recording their calls
- session_factory: Function-scoped SQLite store in a temp directory
- uow_factory: Function-scoped UnitOfWork factory
"""

import asyncio
import os
from typing import Callable, Optional

import pytest
import pytest_asyncio

from virtualroom.core.config import Settings
from virtualroom.core.database import create_schema, dispose_session_factory, setup_db_session
from virtualroom.models.feedback import FeedbackChannel, FeedbackRecord, FeedbackValue
from virtualroom.models.job import GenerationJob, JobKind, JobStatus
from virtualroom.models.payloads import JobRequest
from virtualroom.services.exceptions import NotFoundError
from virtualroom.uow import create_uow_factory


class FakeJobRepository:
    """JobRepository double driven by per-job response scripts.

    ``get`` pops scripted responses in order and keeps returning the last one
    once the script is exhausted. Exceptions in a script are raised.
    """

    def __init__(self):
        self.responses: dict[str, list] = {}
        self.get_calls: list[str] = []
        self.created: list[JobRequest] = []
        self.create_error: Optional[Exception] = None
        self.listing: list[GenerationJob] = []
        self.retried: list[str] = []
        self.deleted: list[str] = []
        # Called with the job id after a response is picked, before it is returned
        self.on_get: Optional[Callable[[str], None]] = None
        self.gate: Optional[asyncio.Event] = None
        self._created_count = 0

    def script(self, job_id: str, *responses) -> None:
        self.responses.setdefault(job_id, []).extend(responses)

    async def create(self, request: JobRequest) -> GenerationJob:
        self.created.append(request)
        if self.create_error is not None:
            raise self.create_error
        self._created_count += 1
        return GenerationJob(id=f"job-{self._created_count}", kind=request.kind)

    async def get(self, job_id: str) -> GenerationJob:
        self.get_calls.append(job_id)
        if self.gate is not None:
            await self.gate.wait()
        await asyncio.sleep(0)
        queue = self.responses[job_id]
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if self.on_get is not None:
            self.on_get(job_id)
        if isinstance(item, Exception):
            raise item
        return item

    async def get_status_only(self, job_id: str) -> JobStatus:
        return (await self.get(job_id)).status

    async def list(self, kind: Optional[JobKind] = None) -> list[GenerationJob]:
        return [job for job in self.listing if kind is None or job.kind == kind]

    async def retry(self, job_id: str) -> GenerationJob:
        self.retried.append(job_id)
        return GenerationJob(id=job_id, kind=JobKind.CLASSIC_TRY_ON, status=JobStatus.PENDING)

    async def delete(self, job_id: str) -> None:
        self.deleted.append(job_id)


class FakeWardrobe:
    """WardrobeClient double recording every save."""

    def __init__(self, error: Optional[Exception] = None):
        self.saved: list[tuple[str, Optional[bool]]] = []
        self.error = error

    async def add(self, job_id: str, liked: Optional[bool] = None):
        self.saved.append((job_id, liked))
        if self.error is not None:
            raise self.error
        return {"id": f"wardrobe-{job_id}"}


class FakeFeedbackClient:
    """FeedbackClient double keeping records in memory."""

    def __init__(self):
        self.records: dict[tuple[str, FeedbackChannel], FeedbackRecord] = {}
        self.calls: list[str] = []

    async def get(self, job_id: str, channel: FeedbackChannel) -> Optional[FeedbackRecord]:
        self.calls.append("get")
        return self.records.get((job_id, channel))

    async def set(
        self, job_id: str, job_kind: JobKind, channel: FeedbackChannel, value: FeedbackValue
    ) -> FeedbackRecord:
        self.calls.append("set")
        record = FeedbackRecord(job_id=job_id, job_kind=job_kind, channel=channel, value=value)
        self.records[(job_id, channel)] = record
        return record

    async def remove(self, job_id: str, channel: FeedbackChannel) -> None:
        self.calls.append("remove")
        if (job_id, channel) not in self.records:
            raise NotFoundError(f"No feedback for {job_id}")
        del self.records[(job_id, channel)]


@pytest.fixture(scope="session", autouse=True)
def utc_timezone():
    """Enforce UTC timezone for all tests."""
    os.environ["TZ"] = "UTC"
    yield


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings for tests: no delays between polls, store in a temp directory."""
    return Settings(
        app_env="test",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        download_dir=str(tmp_path / "downloads"),
        poll_interval_classic_seconds=0,
        error_backoff_classic_seconds=0,
        poll_interval_avatar_seconds=0,
        error_backoff_avatar_seconds=0,
        poll_interval_product_seconds=0,
        error_backoff_product_seconds=0,
        poll_interval_text_seconds=0,
        error_backoff_text_seconds=0,
    )


@pytest.fixture
def job_repository() -> FakeJobRepository:
    return FakeJobRepository()


@pytest.fixture
def wardrobe() -> FakeWardrobe:
    return FakeWardrobe()


@pytest.fixture
def feedback_client() -> FakeFeedbackClient:
    return FakeFeedbackClient()


@pytest_asyncio.fixture(scope="function")
async def session_factory(settings: Settings):
    """Provide a session factory over a fresh SQLite file with tables created."""
    factory = setup_db_session(settings.database_url)
    await create_schema(factory)
    yield factory
    await dispose_session_factory(factory)


@pytest_asyncio.fixture(scope="function")
async def uow_factory(session_factory):
    """Provide function-scoped UnitOfWork factory."""
    return create_uow_factory(session_factory)
