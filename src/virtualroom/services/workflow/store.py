"""Persistence of workflow sessions in the local store."""

from typing import Callable

import structlog

from virtualroom.models.job import JobKind
from virtualroom.services.workflow.session import WorkflowSession

logger = structlog.get_logger(__name__)


class WorkflowSessionStore:
    """Saves and restores a WorkflowSession as one draft row per workflow kind."""

    def __init__(self, uow_factory: Callable):
        self.uow_factory = uow_factory

    async def save(self, session: WorkflowSession) -> None:
        snapshot = session.snapshot()
        async with await self.uow_factory() as uow:
            for kind in JobKind:
                is_active = kind == session.active_kind
                await uow.workflow_drafts.save(
                    kind,
                    payload=snapshot["payloads"][kind.value],
                    step=session.step if is_active else 1,
                    is_active=is_active,
                )
        logger.debug("session.saved", active_kind=session.active_kind.value, step=session.step)

    async def load(self) -> WorkflowSession:
        """Restore the saved session, or a fresh one if nothing was saved."""
        async with await self.uow_factory() as uow:
            drafts = await uow.workflow_drafts.list_all()

        if not drafts:
            return WorkflowSession()

        active = next((draft for draft in drafts if draft.is_active), None)
        session = WorkflowSession.from_snapshot(
            {
                "active_kind": (active.kind if active else JobKind.CLASSIC_TRY_ON).value,
                "step": active.step if active else 1,
                "payloads": {JobKind(draft.kind).value: draft.payload for draft in drafts},
            }
        )
        logger.debug("session.loaded", active_kind=session.active_kind.value, step=session.step)
        return session

    async def clear(self) -> None:
        async with await self.uow_factory() as uow:
            await uow.workflow_drafts.delete_all()
