"""Backend API clients (REST/JSON over httpx)."""

from virtualroom.services.api.client import ApiClient
from virtualroom.services.api.download import DownloadClient, DownloadInfo
from virtualroom.services.api.feedback import FeedbackClient
from virtualroom.services.api.jobs import HttpJobRepository, JobRepository
from virtualroom.services.api.wardrobe import WardrobeClient

__all__ = [
    "ApiClient",
    "DownloadClient",
    "DownloadInfo",
    "FeedbackClient",
    "HttpJobRepository",
    "JobRepository",
    "WardrobeClient",
]
