"""Download/export client for generated images."""

from datetime import datetime, timezone
from pathlib import Path

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field

from virtualroom.models.job import JobKind
from virtualroom.services.api.client import ApiClient
from virtualroom.services.exceptions import DownloadError, NetworkError, ServiceError

logger = structlog.get_logger(__name__)

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png")


class DownloadInfo(BaseModel):
    """Backend-provided metadata for a downloadable result."""

    model_config = ConfigDict(populate_by_name=True)

    filename: str
    mime_type: str = Field(default="image/jpeg", alias="mimeType")
    size: int = 0
    url: str = ""


def generate_filename(kind: JobKind, now: datetime | None = None) -> str:
    """Build a timestamped filename, e.g. VirtualRoom_classic-try-on_2026-01-01T10-00-00.jpg."""
    now = now or datetime.now(timezone.utc)
    stamp = now.strftime("%Y-%m-%dT%H-%M-%S")
    return f"VirtualRoom_{kind.value}_{stamp}.jpg"


def is_valid_image_url(url: str | None) -> bool:
    if not url or not isinstance(url, str):
        return False
    lowered = url.lower()
    return lowered.startswith("http") and any(ext in lowered for ext in IMAGE_EXTENSIONS)


class DownloadClient:
    """Export flow: permission check, signed URL, file fetch, activity log."""

    def __init__(self, api: ApiClient):
        self.api = api

    async def check_permission(self, job_id: str) -> bool:
        data = await self.api.get("/download/permissions", params={"try_on_id": job_id})
        return bool(isinstance(data, dict) and data.get("can_download") is True)

    async def get_download_info(self, image_url: str, job_id: str, kind: JobKind) -> DownloadInfo:
        data = await self.api.post(
            "/download/info",
            json={"image_url": image_url, "try_on_id": job_id, "workflow_type": kind.value},
        )
        info = data.get("download_info") if isinstance(data, dict) else None
        if not info:
            raise DownloadError(f"No download info for job {job_id}")
        return DownloadInfo.model_validate(info)

    async def get_download_url(self, image_url: str, kind: JobKind) -> str:
        data = await self.api.post(
            "/download/url", json={"image_url": image_url, "workflow_type": kind.value}
        )
        url = data.get("download_url") if isinstance(data, dict) else None
        if not url:
            raise DownloadError(f"No download URL for {image_url}")
        return url

    async def log_download(self, image_url: str, job_id: str, kind: JobKind) -> bool:
        """Record a download. Best effort: a failed log never fails the download.

        Returns:
            True if the backend accepted the log entry
        """
        try:
            await self.api.post(
                "/download/log",
                json={"image_url": image_url, "try_on_id": job_id, "workflow_type": kind.value},
            )
        except ServiceError as e:
            logger.warning(
                "download.log_failed",
                job_id=job_id,
                error_type=type(e).__name__,
                error_message=str(e),
            )
            return False
        return True

    async def download_to(
        self, directory: Path, image_url: str, job_id: str, kind: JobKind
    ) -> Path:
        """Download a result image into ``directory``.

        Args:
            directory: Target directory (created if missing)
            image_url: Result asset URL of the completed job
            job_id: Job the image belongs to
            kind: Workflow kind of the job

        Returns:
            Path of the written file

        Raises:
            DownloadError: Invalid URL, permission refused, or non-200 fetch
            ServiceError: Backend failure while preparing the download
        """
        if not is_valid_image_url(image_url):
            raise DownloadError(f"Invalid image URL: {image_url!r}")

        if not await self.check_permission(job_id):
            raise DownloadError(f"Download not permitted for job {job_id}")

        info = await self.get_download_info(image_url, job_id, kind)
        download_url = await self.get_download_url(image_url, kind)

        directory.mkdir(parents=True, exist_ok=True)
        target = directory / (Path(info.filename).name or generate_filename(kind))

        logger.info("download.started", job_id=job_id, filename=target.name)
        try:
            await self._fetch(download_url, target)
        except BaseException:
            target.unlink(missing_ok=True)
            raise

        logger.info("download.completed", job_id=job_id, path=str(target))
        await self.log_download(image_url, job_id, kind)
        return target

    async def _fetch(self, url: str, target: Path) -> None:
        request = self.api.http.build_request("GET", url)
        # Signed URLs carry their own credentials; the backend token is not sent
        request.headers.pop("Authorization", None)
        try:
            response = await self.api.http.send(request, stream=True)
            try:
                if response.status_code != 200:
                    raise DownloadError(f"Download failed with status: {response.status_code}")
                with target.open("wb") as fh:
                    async for chunk in response.aiter_bytes():
                        fh.write(chunk)
            finally:
                await response.aclose()
        except httpx.TimeoutException as e:
            raise NetworkError(f"Download timeout: {e}") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"Network error during download: {e}") from e
