"""Repository layer for data access abstraction."""

from virtualroom.repositories.active_job import ActiveJobRepository
from virtualroom.repositories.workflow_draft import WorkflowDraftRepository

__all__ = [
    "ActiveJobRepository",
    "WorkflowDraftRepository",
]
