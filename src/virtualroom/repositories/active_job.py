"""ActiveJob repository for the local store.

Provides data access methods for the in-flight jobs registry.
"""

from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from virtualroom.models.active_job import ActiveJob
from virtualroom.models.job import JobStatus


class ActiveJobRepository:
    """Repository for ActiveJob entities.

    One row per job id; re-adding a job replaces its entry.
    """

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def get(self, job_id: str) -> ActiveJob | None:
        """Retrieve an entry by job id.

        Args:
            job_id: Backend job identifier

        Returns:
            ActiveJob if found, None otherwise
        """
        return await self.session.get(ActiveJob, job_id)

    async def upsert(self, entry: ActiveJob) -> ActiveJob:
        """Insert an entry, replacing any existing entry for the same job.

        Args:
            entry: ActiveJob to persist

        Returns:
            The persisted entry
        """
        merged = await self.session.merge(entry)
        await self.session.flush()
        return merged

    async def update_status(self, job_id: str, status: JobStatus) -> bool:
        """Record the latest observed status for a job.

        Args:
            job_id: Backend job identifier
            status: Newly observed status

        Returns:
            True if an entry was updated, False if the job is not tracked
        """
        entry = await self.get(job_id)
        if entry is None:
            return False
        entry.status = status
        self.session.add(entry)
        await self.session.flush()
        return True

    async def delete(self, job_id: str) -> bool:
        """Remove a job from the registry.

        Returns:
            True if an entry was removed
        """
        result = await self.session.execute(
            delete(ActiveJob).where(ActiveJob.job_id == job_id)  # type: ignore[arg-type]
        )
        return result.rowcount > 0  # type: ignore[attr-defined]

    async def delete_created_before(self, cutoff: datetime) -> int:
        """Prune entries older than ``cutoff``.

        Args:
            cutoff: Naive UTC timestamp; entries created strictly before it are removed

        Returns:
            Number of entries removed
        """
        result = await self.session.execute(
            delete(ActiveJob).where(ActiveJob.created_at < cutoff)  # type: ignore[arg-type]
        )
        return result.rowcount  # type: ignore[attr-defined]

    async def list_newest_first(self) -> list[ActiveJob]:
        """Retrieve every entry, most recently created first."""
        result = await self.session.execute(
            select(ActiveJob).order_by(ActiveJob.created_at.desc())  # type: ignore[attr-defined]
        )
        return list(result.scalars().all())
