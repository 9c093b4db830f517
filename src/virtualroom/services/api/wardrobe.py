"""Wardrobe API client (save target for finished try-ons)."""

from typing import Any, Optional

import structlog

from virtualroom.services.api.client import ApiClient

logger = structlog.get_logger(__name__)


class WardrobeClient:
    """Saves generated results into the user's wardrobe."""

    def __init__(self, api: ApiClient):
        self.api = api

    async def add(self, job_id: str, liked: Optional[bool] = None) -> Any:
        """Save a result to the wardrobe.

        Args:
            job_id: Completed job whose result should be saved
            liked: Heart state at save time, None if the user has not decided

        Returns:
            The wardrobe entry as returned by the backend

        Raises:
            AlreadySavedError: The result is already in the wardrobe
            ServiceError: Any other failure
        """
        data = await self.api.post(f"/wardrobe/{job_id}", json={"liked": liked})
        logger.info("wardrobe.saved", job_id=job_id, liked=liked)
        return data
