"""GenerationJob entity - client-side view of a backend generation job."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from virtualroom.core.timezone import utcnow


class JobKind(str, Enum):
    """Workflow that produced a job."""

    CLASSIC_TRY_ON = "classic-try-on"
    PRODUCT_TO_MODEL = "product-to-model"
    TEXT_TO_FASHION = "text-to-fashion"
    AVATAR_CREATION = "avatar-creation"


class JobStatus(str, Enum):
    """Job lifecycle status.

    Status only moves forward: pending -> processing -> completed | failed.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)

    @property
    def rank(self) -> int:
        """Position in the lifecycle. Both terminal states share the last rank."""
        return _STATUS_RANK[self]

    def regresses_from(self, current: "JobStatus") -> bool:
        """Check whether moving from ``current`` to this status goes backwards.

        Terminal states never change, so any different status observed after
        a terminal one counts as a regression.
        """
        if current.is_terminal:
            return self != current
        return self.rank < current.rank


_STATUS_RANK = {
    JobStatus.PENDING: 0,
    JobStatus.PROCESSING: 1,
    JobStatus.COMPLETED: 2,
    JobStatus.FAILED: 2,
}


class GenerationJob(BaseModel):
    """One backend-tracked generation request.

    Instances are immutable snapshots; the server is the only writer of status.
    ``result_asset`` is only kept for completed jobs and ``error_info`` only for
    failed ones.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    kind: JobKind
    status: JobStatus = JobStatus.PENDING
    result_asset: Optional[str] = None
    error_info: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="before")
    @classmethod
    def drop_fields_for_other_statuses(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        status = data.get("status", JobStatus.PENDING)
        if status != JobStatus.COMPLETED:
            data["result_asset"] = None
        if status != JobStatus.FAILED:
            data["error_info"] = None
        return data

    @field_validator("created_at")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        # The backend may omit the offset; its clock is UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
