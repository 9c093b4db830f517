"""ActiveJob entity - in-flight jobs remembered across app restarts."""

from datetime import datetime

from sqlmodel import Field, SQLModel

from virtualroom.core.timezone import utcnow
from virtualroom.models.job import JobKind, JobStatus


class ActiveJob(SQLModel, table=True):
    """ActiveJob records a submitted job so polling can resume after a restart.

    Entries expire after a fixed TTL; a job nobody looked at for that long is
    not worth resuming.
    """

    __tablename__ = "active_jobs"  # type: ignore[assignment]

    job_id: str = Field(primary_key=True, max_length=255)
    kind: JobKind = Field(index=True)
    status: JobStatus = Field(default=JobStatus.PENDING)
    created_at: datetime = Field(default_factory=utcnow, index=True)
