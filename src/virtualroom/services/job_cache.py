"""Local mirror of generation jobs, keyed by id and listed by kind.

The cache holds one GenerationJob per id. Per-kind lists hold ids only and are
resolved against the same map, so the single-item view and the list view of a
job can never disagree.

Status is monotonic: an update that would move a cached job backwards
(processing -> pending, or out of a terminal state) is ignored. This keeps the
cache correct when responses for the same job arrive out of order.
"""

from typing import Callable, Optional

import structlog

from virtualroom.models.job import GenerationJob, JobKind

logger = structlog.get_logger(__name__)

JobListener = Callable[[Optional[GenerationJob]], None]


class JobCache:
    """Reactive job store shared by the poller, mutations and result screens.

    Listeners registered with ``watch`` are called synchronously after every
    accepted change to their job (with None when the job is removed).
    """

    def __init__(self) -> None:
        self._jobs: dict[str, GenerationJob] = {}
        self._lists: dict[JobKind, list[str]] = {kind: [] for kind in JobKind}
        self._listeners: dict[str, list[JobListener]] = {}

    def get(self, job_id: str) -> Optional[GenerationJob]:
        return self._jobs.get(job_id)

    def list_jobs(self, kind: JobKind) -> list[GenerationJob]:
        """Jobs of one kind, newest first."""
        return [self._jobs[job_id] for job_id in self._lists[kind] if job_id in self._jobs]

    def upsert(self, job: GenerationJob) -> bool:
        """Write a newer observation of a job.

        Updates the single-item entry; the job keeps its position in its kind
        list if it is already listed. ``upsert`` never adds a job to a list.

        Returns:
            True if the update was applied, False if it was ignored as a regression
        """
        if not self._accept(job):
            return False
        self._notify(job.id, job)
        return True

    def insert_at_head(self, job: GenerationJob) -> bool:
        """Add a freshly created job to the front of its kind list.

        A job already listed is moved to the front. The single-item entry is
        written with the same monotonic rule as ``upsert``.

        Returns:
            True if the job data was applied, False if the cached entry was newer
        """
        applied = self._accept(job)
        ids = self._lists[job.kind]
        if job.id in ids:
            ids.remove(job.id)
        ids.insert(0, job.id)
        if applied:
            self._notify(job.id, job)
        return applied

    def set_list(self, kind: JobKind, jobs: list[GenerationJob]) -> None:
        """Replace a kind list with a fresh listing from the repository.

        Jobs are ordered newest first. Cached entries that are further along
        than the listing keep their cached data.
        """
        ordered = sorted(
            (job for job in jobs if job.kind == kind), key=lambda job: job.created_at, reverse=True
        )
        changed = [job for job in ordered if self._accept(job)]
        self._lists[kind] = [job.id for job in ordered]
        for job in changed:
            self._notify(job.id, job)
        logger.debug("cache.list_replaced", kind=kind.value, count=len(ordered))

    def remove(self, job_id: str) -> None:
        """Drop a job from the map and from every kind list."""
        existed = self._jobs.pop(job_id, None) is not None
        for ids in self._lists.values():
            if job_id in ids:
                ids.remove(job_id)
                existed = True
        if existed:
            self._notify(job_id, None)

    def watch(self, job_id: str, listener: JobListener) -> Callable[[], None]:
        """Register a listener for one job id.

        Returns:
            Callable that unregisters the listener (safe to call twice)
        """
        self._listeners.setdefault(job_id, []).append(listener)

        def _unwatch() -> None:
            listeners = self._listeners.get(job_id, [])
            if listener in listeners:
                listeners.remove(listener)
            if not listeners:
                self._listeners.pop(job_id, None)

        return _unwatch

    def _accept(self, job: GenerationJob) -> bool:
        current = self._jobs.get(job.id)
        if current is not None and job.status.regresses_from(current.status):
            logger.info(
                "cache.regression_ignored",
                job_id=job.id,
                cached_status=current.status.value,
                incoming_status=job.status.value,
            )
            return False
        self._jobs[job.id] = job
        return True

    def _notify(self, job_id: str, job: Optional[GenerationJob]) -> None:
        # Copy: a listener may unwatch itself while being notified
        for listener in list(self._listeners.get(job_id, [])):
            listener(job)
