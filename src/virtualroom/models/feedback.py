"""Feedback records attached to generation results."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from virtualroom.core.timezone import utcnow
from virtualroom.models.job import JobKind


class FeedbackChannel(str, Enum):
    """Where the feedback was given: the favourite heart or the thumbs pair."""

    HEART = "heart"
    THUMBS = "thumbs"


class FeedbackValue(str, Enum):
    LIKE = "like"
    DISLIKE = "dislike"


# The heart only records presence: a heart record always holds LIKE.
CHANNEL_VALUES: dict[FeedbackChannel, frozenset[FeedbackValue]] = {
    FeedbackChannel.HEART: frozenset({FeedbackValue.LIKE}),
    FeedbackChannel.THUMBS: frozenset({FeedbackValue.LIKE, FeedbackValue.DISLIKE}),
}


class FeedbackRecord(BaseModel):
    """One feedback value for a (job, channel) pair."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    job_id: str = Field(alias="try_on_id")
    job_kind: JobKind = Field(alias="try_on_type")
    channel: FeedbackChannel = Field(alias="feedback_source")
    value: FeedbackValue = Field(alias="feedback_type")
    updated_at: datetime = Field(default_factory=utcnow)
