"""Workflow drafts: session state machine, persistence and submission."""

from virtualroom.services.workflow.session import TOTAL_STEPS, WorkflowSession
from virtualroom.services.workflow.store import WorkflowSessionStore
from virtualroom.services.workflow.submission import submit_workflow

__all__ = [
    "TOTAL_STEPS",
    "WorkflowSession",
    "WorkflowSessionStore",
    "submit_workflow",
]
