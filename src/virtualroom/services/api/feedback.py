"""Feedback API client."""

from typing import Optional

from virtualroom.models.feedback import FeedbackChannel, FeedbackRecord, FeedbackValue
from virtualroom.models.job import JobKind
from virtualroom.services.api.client import ApiClient
from virtualroom.services.exceptions import NotFoundError, PermanentError


class FeedbackClient:
    """Reads and writes heart/thumbs feedback for generation results."""

    def __init__(self, api: ApiClient):
        self.api = api

    async def get(self, job_id: str, channel: FeedbackChannel) -> Optional[FeedbackRecord]:
        """Fetch the record for (job, channel), or None when there is none."""
        try:
            data = await self.api.get(
                "/feedback/try-on",
                params={"try_on_id": job_id, "feedback_source": channel.value},
            )
        except NotFoundError:
            return None
        if not data:
            return None
        return FeedbackRecord.model_validate(data)

    async def set(
        self, job_id: str, job_kind: JobKind, channel: FeedbackChannel, value: FeedbackValue
    ) -> FeedbackRecord:
        """Create or overwrite the record for (job, channel)."""
        data = await self.api.post(
            "/feedback/try-on",
            json={
                "try_on_id": job_id,
                "try_on_type": job_kind.value,
                "feedback_source": channel.value,
                "feedback_type": value.value,
            },
        )
        if not data:
            raise PermanentError(f"Feedback for {job_id} was not stored")
        return FeedbackRecord.model_validate(data)

    async def remove(self, job_id: str, channel: FeedbackChannel) -> None:
        await self.api.delete(
            "/feedback/try-on",
            params={"try_on_id": job_id, "feedback_source": channel.value},
        )
