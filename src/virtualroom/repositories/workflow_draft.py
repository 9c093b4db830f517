"""WorkflowDraft repository for the local store."""

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from virtualroom.core.timezone import utcnow
from virtualroom.models.job import JobKind
from virtualroom.models.workflow_draft import WorkflowDraft


class WorkflowDraftRepository:
    """Repository for WorkflowDraft entities (one row per workflow kind)."""

    def __init__(self, session: AsyncSession):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session for database operations
        """
        self.session = session

    async def get(self, kind: JobKind) -> WorkflowDraft | None:
        return await self.session.get(WorkflowDraft, kind)

    async def list_all(self) -> list[WorkflowDraft]:
        result = await self.session.execute(select(WorkflowDraft))
        return list(result.scalars().all())

    async def save(self, kind: JobKind, payload: dict, step: int, is_active: bool) -> WorkflowDraft:
        """Create or overwrite the draft for a workflow kind.

        Args:
            kind: Workflow the draft belongs to
            payload: JSON-serializable payload fields
            step: Current step (only meaningful for the active draft)
            is_active: Whether this is the workflow the user has open

        Returns:
            The persisted draft
        """
        draft = await self.get(kind)
        if draft is None:
            draft = WorkflowDraft(kind=kind)
        draft.payload = payload
        draft.step = step
        draft.is_active = is_active
        draft.updated_at = utcnow()
        self.session.add(draft)
        await self.session.flush()
        return draft

    async def delete_all(self) -> None:
        await self.session.execute(delete(WorkflowDraft))
