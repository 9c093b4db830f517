"""Client data models.

Table models are imported here to ensure they're registered with SQLModel
metadata before the local schema is created.
"""

from virtualroom.models.active_job import ActiveJob
from virtualroom.models.feedback import (
    CHANNEL_VALUES,
    FeedbackChannel,
    FeedbackRecord,
    FeedbackValue,
)
from virtualroom.models.job import GenerationJob, JobKind, JobStatus
from virtualroom.models.payloads import (
    AvatarCreationPayload,
    ClassicTryOnPayload,
    JobRequest,
    ProductToModelPayload,
    TextToFashionPayload,
    UnknownFieldError,
    WorkflowPayload,
    empty_payload,
)
from virtualroom.models.workflow_draft import WorkflowDraft

__all__ = [
    "ActiveJob",
    "AvatarCreationPayload",
    "CHANNEL_VALUES",
    "ClassicTryOnPayload",
    "FeedbackChannel",
    "FeedbackRecord",
    "FeedbackValue",
    "GenerationJob",
    "JobKind",
    "JobRequest",
    "JobStatus",
    "ProductToModelPayload",
    "TextToFashionPayload",
    "UnknownFieldError",
    "WorkflowDraft",
    "WorkflowPayload",
    "empty_payload",
]
