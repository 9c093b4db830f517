"""Heart and thumbs feedback toggles."""

from typing import Optional

import structlog

from virtualroom.models.feedback import CHANNEL_VALUES, FeedbackChannel, FeedbackValue
from virtualroom.models.job import JobKind
from virtualroom.services.api.feedback import FeedbackClient

logger = structlog.get_logger(__name__)


class FeedbackService:
    """Toggle semantics on top of the feedback collaborator.

    There is at most one record per (job, channel). Toggling the stored value
    removes it; toggling any other value overwrites it.
    """

    def __init__(self, client: FeedbackClient):
        self.client = client

    async def toggle(
        self, job_id: str, job_kind: JobKind, channel: FeedbackChannel, value: FeedbackValue
    ) -> Optional[FeedbackValue]:
        """Toggle a feedback value for a job.

        Args:
            job_id: Job the feedback is about
            job_kind: Workflow kind of the job
            channel: Heart or thumbs
            value: Value the user picked

        Returns:
            The stored value, or None if the toggle removed the record

        Raises:
            ValueError: If ``value`` is not allowed on ``channel``
            ServiceError: Feedback backend failure (job status is unaffected)
        """
        if value not in CHANNEL_VALUES[channel]:
            raise ValueError(f"'{value.value}' is not a valid {channel.value} value")

        existing = await self.client.get(job_id, channel)
        if existing is not None and existing.value == value:
            await self.client.remove(job_id, channel)
            logger.info(
                "feedback.removed", job_id=job_id, channel=channel.value, value=value.value
            )
            return None

        record = await self.client.set(job_id, job_kind, channel, value)
        logger.info(
            "feedback.stored",
            job_id=job_id,
            channel=channel.value,
            value=record.value.value,
            replaced=existing.value.value if existing else None,
        )
        return record.value

    async def toggle_heart(self, job_id: str, job_kind: JobKind) -> bool:
        """Flip the heart for a job.

        Returns:
            True if the job is now liked
        """
        result = await self.toggle(job_id, job_kind, FeedbackChannel.HEART, FeedbackValue.LIKE)
        return result is not None

    async def current(self, job_id: str, channel: FeedbackChannel) -> Optional[FeedbackValue]:
        record = await self.client.get(job_id, channel)
        return record.value if record else None
