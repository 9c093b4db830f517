"""WorkflowDraft entity - persisted in-progress workflow input."""

from datetime import datetime

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from virtualroom.core.timezone import utcnow
from virtualroom.models.job import JobKind


class WorkflowDraft(SQLModel, table=True):
    """WorkflowDraft keeps one workflow's payload so a half-filled form survives restarts.

    Exactly one row is flagged ``is_active``; its ``step`` is the step the user
    was on. Steps of inactive rows are not meaningful.
    """

    __tablename__ = "workflow_drafts"  # type: ignore[assignment]

    kind: JobKind = Field(primary_key=True)
    payload: dict = Field(default_factory=dict, sa_column=Column(JSON))
    step: int = Field(default=1, ge=1)
    is_active: bool = Field(default=False)
    updated_at: datetime = Field(default_factory=utcnow)
