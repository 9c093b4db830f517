"""Unit of Work and local store tests.

Tests focus on:
- Successful commits persist changes
- Exceptions trigger rollback
- Active-jobs registry TTL pruning and ordering
- Workflow session persistence
"""

from datetime import timedelta

import pytest

from virtualroom.core.timezone import utcnow
from virtualroom.models.active_job import ActiveJob
from virtualroom.models.job import GenerationJob, JobKind, JobStatus
from virtualroom.services.active_jobs import ActiveJobRegistry
from virtualroom.services.workflow import WorkflowSession, WorkflowSessionStore


@pytest.mark.asyncio
async def test_uow_commits_on_successful_exit(uow_factory):
    """Changes made within the context persist after the context exits."""
    async with await uow_factory() as uow:
        await uow.active_jobs.upsert(ActiveJob(job_id="job-1", kind=JobKind.CLASSIC_TRY_ON))

    async with await uow_factory() as uow:
        found = await uow.active_jobs.get("job-1")
        assert found is not None
        assert found.kind == JobKind.CLASSIC_TRY_ON
        assert found.status == JobStatus.PENDING


@pytest.mark.asyncio
async def test_uow_rollback_on_exception(uow_factory):
    """An exception rolls the transaction back and propagates."""
    with pytest.raises(ValueError, match="Simulated error"):
        async with await uow_factory() as uow:
            await uow.active_jobs.upsert(ActiveJob(job_id="job-1", kind=JobKind.AVATAR_CREATION))
            raise ValueError("Simulated error")

    async with await uow_factory() as uow:
        assert await uow.active_jobs.get("job-1") is None


@pytest.mark.asyncio
async def test_upsert_replaces_existing_entry(uow_factory):
    async with await uow_factory() as uow:
        await uow.active_jobs.upsert(ActiveJob(job_id="job-1", kind=JobKind.CLASSIC_TRY_ON))

    async with await uow_factory() as uow:
        await uow.active_jobs.upsert(
            ActiveJob(job_id="job-1", kind=JobKind.CLASSIC_TRY_ON, status=JobStatus.PROCESSING)
        )
        entries = await uow.active_jobs.list_newest_first()

    assert [(e.job_id, e.status) for e in entries] == [("job-1", JobStatus.PROCESSING)]


class TestActiveJobRegistry:
    @pytest.mark.asyncio
    async def test_track_update_and_forget(self, uow_factory):
        registry = ActiveJobRegistry(uow_factory)
        await registry.track(GenerationJob(id="job-1", kind=JobKind.CLASSIC_TRY_ON))

        assert await registry.update_status("job-1", JobStatus.PROCESSING) is True
        assert await registry.update_status("unknown", JobStatus.PROCESSING) is False
        latest = await registry.latest()
        assert latest.job_id == "job-1"
        assert latest.status == JobStatus.PROCESSING

        assert await registry.forget("job-1") is True
        assert await registry.forget("job-1") is False
        assert await registry.latest() is None

    @pytest.mark.asyncio
    async def test_expired_entries_are_pruned(self, uow_factory):
        now = utcnow()
        async with await uow_factory() as uow:
            await uow.active_jobs.upsert(
                ActiveJob(
                    job_id="stale",
                    kind=JobKind.CLASSIC_TRY_ON,
                    created_at=now - timedelta(hours=2),
                )
            )
            await uow.active_jobs.upsert(
                ActiveJob(
                    job_id="older",
                    kind=JobKind.TEXT_TO_FASHION,
                    created_at=now - timedelta(minutes=30),
                )
            )
            await uow.active_jobs.upsert(
                ActiveJob(job_id="newest", kind=JobKind.AVATAR_CREATION, created_at=now)
            )

        entries = await ActiveJobRegistry(uow_factory, ttl_seconds=3600).active()

        assert [e.job_id for e in entries] == ["newest", "older"]
        async with await uow_factory() as uow:
            assert await uow.active_jobs.get("stale") is None


class TestWorkflowSessionStore:
    @pytest.mark.asyncio
    async def test_load_without_saved_drafts(self, uow_factory):
        session = await WorkflowSessionStore(uow_factory).load()

        assert session.active_kind == JobKind.CLASSIC_TRY_ON
        assert session.step == 1
        assert session.is_valid() is False

    @pytest.mark.asyncio
    async def test_save_and_load(self, uow_factory):
        store = WorkflowSessionStore(uow_factory)
        session = WorkflowSession()
        session.set_field("person", "self_image", "file://a.jpg")
        session.set_active_kind(JobKind.AVATAR_CREATION)
        session.set_field(None, "face_image", "file://face.jpg")
        session.next_step()
        session.next_step()

        await store.save(session)
        restored = await store.load()

        assert restored.active_kind == JobKind.AVATAR_CREATION
        assert restored.step == 3
        assert restored.payload().face_image == "file://face.jpg"
        assert restored.payload(JobKind.CLASSIC_TRY_ON).self_image == "file://a.jpg"

    @pytest.mark.asyncio
    async def test_save_overwrites_previous_drafts(self, uow_factory):
        store = WorkflowSessionStore(uow_factory)
        session = WorkflowSession()
        session.set_field("garment", "garment_description", "red dress")
        await store.save(session)

        session.reset()
        session.set_active_kind(JobKind.TEXT_TO_FASHION)
        await store.save(session)
        restored = await store.load()

        assert restored.active_kind == JobKind.TEXT_TO_FASHION
        assert restored.payload(JobKind.CLASSIC_TRY_ON).garment_description is None

    @pytest.mark.asyncio
    async def test_clear(self, uow_factory):
        store = WorkflowSessionStore(uow_factory)
        session = WorkflowSession(active_kind=JobKind.PRODUCT_TO_MODEL)
        await store.save(session)

        await store.clear()

        assert (await store.load()).active_kind == JobKind.CLASSIC_TRY_ON


def test_persisted_timestamps_are_utc_aware():
    entry = ActiveJob(job_id="job-1", kind=JobKind.CLASSIC_TRY_ON)

    assert utcnow().utcoffset() == timedelta(0)
    assert entry.created_at.utcoffset() == timedelta(0)
