"""Registry of in-flight jobs, persisted so polling can resume after a restart."""

from datetime import timedelta
from typing import Callable, Optional

import structlog

from virtualroom.core.timezone import utcnow
from virtualroom.models.active_job import ActiveJob
from virtualroom.models.job import GenerationJob, JobStatus

logger = structlog.get_logger(__name__)


class ActiveJobRegistry:
    """Remembers submitted jobs until they are closed or expire.

    Entries older than the TTL are pruned whenever the registry is read.
    """

    def __init__(self, uow_factory: Callable, ttl_seconds: int = 3600):
        """Initialize registry.

        Args:
            uow_factory: Factory returning a UnitOfWork (see create_uow_factory)
            ttl_seconds: Age after which an entry is dropped
        """
        self.uow_factory = uow_factory
        self.ttl = timedelta(seconds=ttl_seconds)

    async def track(self, job: GenerationJob) -> None:
        """Record a newly submitted job."""
        async with await self.uow_factory() as uow:
            await uow.active_jobs.upsert(
                ActiveJob(job_id=job.id, kind=job.kind, status=job.status, created_at=utcnow())
            )
        logger.debug("active_jobs.tracked", job_id=job.id, kind=job.kind.value)

    async def update_status(self, job_id: str, status: JobStatus) -> bool:
        async with await self.uow_factory() as uow:
            return await uow.active_jobs.update_status(job_id, status)

    async def forget(self, job_id: str) -> bool:
        """Remove a job from the registry.

        Returns:
            True if the job was tracked
        """
        async with await self.uow_factory() as uow:
            removed = await uow.active_jobs.delete(job_id)
        if removed:
            logger.debug("active_jobs.forgotten", job_id=job_id)
        return removed

    async def active(self) -> list[ActiveJob]:
        """Prune expired entries and return the rest, newest first."""
        cutoff = utcnow() - self.ttl
        async with await self.uow_factory() as uow:
            pruned = await uow.active_jobs.delete_created_before(cutoff)
            entries = await uow.active_jobs.list_newest_first()
        if pruned:
            logger.info(
                "active_jobs.pruned", count=pruned, ttl_seconds=int(self.ttl.total_seconds())
            )
        return entries

    async def latest(self) -> Optional[ActiveJob]:
        entries = await self.active()
        return entries[0] if entries else None
