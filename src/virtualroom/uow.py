"""Transaction scope over the local SQLite store.

Each UnitOfWork owns one session and exposes the repositories bound to it.
"""

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from virtualroom.repositories.active_job import ActiveJobRepository
from virtualroom.repositories.workflow_draft import WorkflowDraftRepository

logger = structlog.get_logger(__name__)


class UnitOfWork:
    """One local store transaction.

    Commits when the block exits cleanly, rolls back when it raises, and
    closes the session either way. Exceptions are never suppressed.

    Example:
        async with await uow_factory() as uow:
            await uow.active_jobs.update_status("job-1", JobStatus.PROCESSING)
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.active_jobs = ActiveJobRepository(session)
        self.workflow_drafts = WorkflowDraftRepository(session)

    async def __aenter__(self) -> "UnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        try:
            if exc_type is None:
                await self.session.commit()
                logger.debug("store.committed")
            else:
                await self.session.rollback()
                logger.info("store.rolled_back", exc_type=exc_type.__name__)
        finally:
            await self.session.close()
        return False


def create_uow_factory(session_factory: async_sessionmaker[AsyncSession]):
    """Return an async callable producing a fresh UnitOfWork per call.

    Usage is ``async with await uow_factory() as uow``.
    """

    async def make_uow() -> UnitOfWork:
        return UnitOfWork(session_factory())

    return make_uow
