"""Tests for the job cache: map/list consistency and monotonic status."""

from datetime import datetime, timedelta, timezone

from virtualroom.models.job import GenerationJob, JobKind, JobStatus
from virtualroom.services.job_cache import JobCache

CLASSIC = JobKind.CLASSIC_TRY_ON
AVATAR = JobKind.AVATAR_CREATION


def job(job_id: str, status: JobStatus = JobStatus.PENDING, kind: JobKind = CLASSIC, **fields):
    return GenerationJob(id=job_id, kind=kind, status=status, **fields)


def listed(cache: JobCache, job_id: str, kind: JobKind = CLASSIC) -> GenerationJob:
    return next(j for j in cache.list_jobs(kind) if j.id == job_id)


class TestUpsert:
    """Single-item writes."""

    def test_upsert_does_not_add_to_list(self):
        cache = JobCache()

        assert cache.upsert(job("a")) is True

        assert cache.get("a") is not None
        assert cache.list_jobs(CLASSIC) == []

    def test_upsert_updates_listed_job_in_place(self):
        cache = JobCache()
        cache.insert_at_head(job("a"))
        cache.insert_at_head(job("b"))

        cache.upsert(job("a", JobStatus.PROCESSING))

        assert [j.id for j in cache.list_jobs(CLASSIC)] == ["b", "a"]
        assert listed(cache, "a").status == JobStatus.PROCESSING

    def test_regression_is_rejected(self):
        cache = JobCache()
        cache.insert_at_head(job("a", JobStatus.PROCESSING))

        assert cache.upsert(job("a", JobStatus.PENDING)) is False

        assert cache.get("a").status == JobStatus.PROCESSING

    def test_terminal_status_is_final(self):
        cache = JobCache()
        cache.insert_at_head(job("a", JobStatus.COMPLETED, result_asset="https://x/r.jpg"))

        assert cache.upsert(job("a", JobStatus.FAILED, error_info="late")) is False
        assert cache.upsert(job("a", JobStatus.PROCESSING)) is False

        assert cache.get("a").result_asset == "https://x/r.jpg"

    def test_same_status_replaces_entry(self):
        cache = JobCache()
        cache.insert_at_head(job("a", JobStatus.PROCESSING))

        assert cache.upsert(job("a", JobStatus.PROCESSING)) is True


class TestConsistency:
    """get() and list_jobs() always agree on a job."""

    def test_out_of_order_updates_keep_views_equal(self):
        cache = JobCache()
        cache.insert_at_head(job("a"))

        updates = [
            job("a", JobStatus.PROCESSING),
            job("a", JobStatus.PENDING),
            job("a", JobStatus.COMPLETED, result_asset="https://x/result.jpg"),
            job("a", JobStatus.PROCESSING),
            job("a", JobStatus.PENDING),
        ]
        for update in updates:
            cache.upsert(update)
            assert cache.get("a") == listed(cache, "a")

        assert cache.get("a").status == JobStatus.COMPLETED
        assert listed(cache, "a").result_asset == "https://x/result.jpg"

    def test_insert_at_head_orders_newest_first(self):
        cache = JobCache()
        for job_id in ("a", "b", "c"):
            cache.insert_at_head(job(job_id))

        assert [j.id for j in cache.list_jobs(CLASSIC)] == ["c", "b", "a"]

    def test_insert_at_head_moves_existing_job(self):
        cache = JobCache()
        cache.insert_at_head(job("a"))
        cache.insert_at_head(job("b"))

        cache.insert_at_head(job("a", JobStatus.PROCESSING))

        assert [j.id for j in cache.list_jobs(CLASSIC)] == ["a", "b"]

    def test_lists_are_per_kind(self):
        cache = JobCache()
        cache.insert_at_head(job("a"))
        cache.insert_at_head(job("b", kind=AVATAR))

        assert [j.id for j in cache.list_jobs(CLASSIC)] == ["a"]
        assert [j.id for j in cache.list_jobs(AVATAR)] == ["b"]


class TestRemove:
    def test_remove_clears_map_and_lists(self):
        cache = JobCache()
        cache.insert_at_head(job("a"))
        cache.insert_at_head(job("b"))

        cache.remove("a")

        assert cache.get("a") is None
        assert [j.id for j in cache.list_jobs(CLASSIC)] == ["b"]

    def test_remove_unknown_job_is_noop(self):
        cache = JobCache()
        seen = []
        cache.watch("missing", seen.append)

        cache.remove("missing")

        assert seen == []


class TestSetList:
    def test_set_list_orders_by_creation(self):
        cache = JobCache()
        now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        jobs = [
            job("old", created_at=now - timedelta(hours=2)),
            job("new", created_at=now),
            job("mid", created_at=now - timedelta(hours=1)),
            job("avatar", kind=AVATAR, created_at=now),
        ]

        cache.set_list(CLASSIC, jobs)

        assert [j.id for j in cache.list_jobs(CLASSIC)] == ["new", "mid", "old"]
        assert cache.get("avatar") is None

    def test_set_list_accepts_timestamps_without_offset(self):
        cache = JobCache()
        server_job = GenerationJob.model_validate(
            {"id": "server", "kind": "classic-try-on", "created_at": "2020-01-01T00:00:00"}
        )

        cache.set_list(CLASSIC, [server_job, job("local")])

        assert [j.id for j in cache.list_jobs(CLASSIC)] == ["local", "server"]
        assert server_job.created_at.tzinfo == timezone.utc

    def test_set_list_keeps_newer_cached_status(self):
        cache = JobCache()
        cache.insert_at_head(job("a", JobStatus.COMPLETED, result_asset="https://x/r.jpg"))

        cache.set_list(CLASSIC, [job("a", JobStatus.PROCESSING)])

        assert cache.get("a").status == JobStatus.COMPLETED
        assert listed(cache, "a") == cache.get("a")


class TestWatch:
    def test_listener_sees_accepted_changes_only(self):
        cache = JobCache()
        seen = []
        cache.watch("a", seen.append)

        cache.insert_at_head(job("a"))
        cache.upsert(job("a", JobStatus.PROCESSING))
        cache.upsert(job("a", JobStatus.PENDING))
        cache.remove("a")

        assert [j.status if j else None for j in seen] == [
            JobStatus.PENDING,
            JobStatus.PROCESSING,
            None,
        ]

    def test_unwatch(self):
        cache = JobCache()
        seen = []
        unwatch = cache.watch("a", seen.append)

        unwatch()
        unwatch()
        cache.upsert(job("a"))

        assert seen == []
