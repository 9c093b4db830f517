"""Job repository: the backend's authoritative store of generation jobs."""

from typing import Any, Optional, Protocol

import structlog

from virtualroom.models.job import GenerationJob, JobKind, JobStatus
from virtualroom.models.payloads import JobRequest
from virtualroom.services.api.client import ApiClient
from virtualroom.services.exceptions import PermanentError

logger = structlog.get_logger(__name__)


class JobRepository(Protocol):
    """Operations the orchestration layer needs from the job backend."""

    async def create(self, request: JobRequest) -> GenerationJob: ...

    async def get(self, job_id: str) -> GenerationJob: ...

    async def get_status_only(self, job_id: str) -> JobStatus: ...

    async def list(self, kind: Optional[JobKind] = None) -> list[GenerationJob]: ...

    async def retry(self, job_id: str) -> GenerationJob: ...

    async def delete(self, job_id: str) -> None: ...


class HttpJobRepository:
    """JobRepository backed by the REST API."""

    def __init__(self, api: ApiClient):
        self.api = api

    async def create(self, request: JobRequest) -> GenerationJob:
        """Submit a new generation job.

        Errors are not retried here; the submitter decides what to tell the user.

        Raises:
            ServiceError: Any transport or backend failure
        """
        data = await self.api.post("/jobs", json=request.to_wire())
        job = _parse_job(data)
        logger.info("jobs.created", job_id=job.id, kind=job.kind.value)
        return job

    async def get(self, job_id: str) -> GenerationJob:
        data = await self.api.get(f"/jobs/{job_id}")
        return _parse_job(data)

    async def get_status_only(self, job_id: str) -> JobStatus:
        data = await self.api.get(f"/jobs/{job_id}/status")
        if not isinstance(data, dict) or "status" not in data:
            raise PermanentError(f"Unexpected status response for job {job_id}: {data!r}")
        return JobStatus(data["status"])

    async def list(self, kind: Optional[JobKind] = None) -> list[GenerationJob]:
        data = await self.api.get("/jobs", params={"kind": kind.value if kind else None})
        return [_parse_job(item) for item in data or []]

    async def retry(self, job_id: str) -> GenerationJob:
        data = await self.api.post(f"/jobs/{job_id}/retry")
        job = _parse_job(data)
        logger.info("jobs.retried", job_id=job.id, status=job.status.value)
        return job

    async def delete(self, job_id: str) -> None:
        await self.api.delete(f"/jobs/{job_id}")
        logger.info("jobs.deleted", job_id=job_id)


def _parse_job(data: Any) -> GenerationJob:
    if not isinstance(data, dict):
        raise PermanentError(f"Unexpected job payload: {data!r}")
    return GenerationJob.model_validate(data)
