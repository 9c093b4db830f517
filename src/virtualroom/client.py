"""TryOnClient: wires the transport, local store and orchestration together."""

from pathlib import Path
from typing import Optional

import httpx
import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from virtualroom.core.config import Settings
from virtualroom.core.database import create_schema, dispose_session_factory, setup_db_session
from virtualroom.models.job import GenerationJob, JobKind, JobStatus
from virtualroom.services.active_jobs import ActiveJobRegistry
from virtualroom.services.api import (
    ApiClient,
    DownloadClient,
    FeedbackClient,
    HttpJobRepository,
    WardrobeClient,
)
from virtualroom.services.feedback import FeedbackService
from virtualroom.services.job_cache import JobCache
from virtualroom.services.results.controller import ResultController
from virtualroom.services.workflow import WorkflowSession, WorkflowSessionStore, submit_workflow
from virtualroom.uow import create_uow_factory
from virtualroom.workers.job_poller import JobPoller, JobSubscription

logger = structlog.get_logger(__name__)


class TryOnClient:
    """Entry point for a screen or script driving generation jobs.

    Example:
        async with create_client() as client:
            client.session.set_field("person", "self_image", "file://me.jpg")
            client.session.set_field("garment", "garment_description", "red dress")
            job = await client.submit()
            subscription = client.track(job.id, job.kind)
            await subscription.wait()
            print(client.results.view)
    """

    def __init__(
        self,
        settings: Settings,
        api: ApiClient,
        session_factory: async_sessionmaker[AsyncSession],
    ):
        self.settings = settings
        self.api = api
        self.session_factory = session_factory
        self.uow_factory = create_uow_factory(session_factory)

        self.jobs = HttpJobRepository(api)
        self.cache = JobCache()
        self.poller = JobPoller(self.jobs, settings)
        self.registry = ActiveJobRegistry(self.uow_factory, settings.active_job_ttl_seconds)
        self.feedback = FeedbackService(FeedbackClient(api))
        self.wardrobe = WardrobeClient(api)
        self.downloads = DownloadClient(api)
        self.session_store = WorkflowSessionStore(self.uow_factory)
        self.session = WorkflowSession()
        # Subscriptions started by recover(), keyed by job id
        self._background: dict[str, JobSubscription] = {}
        self.results = ResultController(
            poller=self.poller,
            cache=self.cache,
            session=self.session,
            registry=self.registry,
            wardrobe=self.wardrobe,
            feedback=self.feedback,
            downloads=self.downloads,
            download_dir=Path(settings.download_dir),
        )

    async def __aenter__(self) -> "TryOnClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def start(self) -> None:
        """Create the local store and restore the saved workflow session."""
        await create_schema(self.session_factory)
        self.session = await self.session_store.load()
        self.results.session = self.session
        logger.info(
            "client.started",
            api_base_url=self.settings.api_base_url,
            active_kind=self.session.active_kind.value,
        )

    async def aclose(self) -> None:
        """Stop polling, finish pending side effects and close the transport."""
        await self.poller.aclose()
        await self.results.settle()
        await self.api.aclose()
        await dispose_session_factory(self.session_factory)
        logger.info("client.stopped")

    async def save_session(self) -> None:
        await self.session_store.save(self.session)

    async def submit(self, kind: Optional[JobKind] = None) -> GenerationJob:
        """Submit the active (or given) workflow draft.

        Raises:
            WorkflowValidationError: Draft incomplete; nothing was sent
            ServiceError: Job creation failed
        """
        job = await submit_workflow(self.session, self.jobs, self.cache, self.registry, kind)
        await self.save_session()
        return job

    def track(self, job_id: str, kind: JobKind) -> JobSubscription:
        """Show a job on the result controller and poll it.

        A background subscription for the same job is cancelled first so the
        job is never polled twice.
        """
        subscription = self.results.track(job_id, kind)
        background = self._background.pop(job_id, None)
        if background is not None:
            background.cancel()
        return subscription

    async def refresh(self, kind: JobKind) -> list[GenerationJob]:
        """Reload one kind's job list from the backend into the cache."""
        jobs = await self.jobs.list(kind)
        self.cache.set_list(kind, jobs)
        return self.cache.list_jobs(kind)

    async def retry_job(self, job_id: str) -> GenerationJob:
        """Ask the backend to run a failed job again.

        The retried job starts over from pending, so its cache entry is replaced
        rather than updated. Polling restarts: on the result controller when it
        shows this job, in the background otherwise.
        """
        job = await self.jobs.retry(job_id)
        self.cache.remove(job_id)
        self.cache.insert_at_head(job)
        await self.registry.track(job)

        if self.results.job_id == job_id:
            self.track(job.id, job.kind)
        else:
            self._watch_in_background(job.id, job.kind)
        return job

    async def delete_job(self, job_id: str) -> None:
        await self.jobs.delete(job_id)
        self.cache.remove(job_id)
        await self.registry.forget(job_id)

    async def recover(self) -> dict[str, JobSubscription]:
        """Resume polling every unfinished job in the active-jobs registry.

        Entries already stored as completed or failed are forgotten instead.

        Returns:
            Subscriptions keyed by job id
        """
        subscriptions = {}
        for entry in await self.registry.active():
            if JobStatus(entry.status).is_terminal:
                await self.registry.forget(entry.job_id)
                continue
            subscriptions[entry.job_id] = self._watch_in_background(
                entry.job_id, JobKind(entry.kind)
            )
        logger.info("client.recovered", count=len(subscriptions))
        return subscriptions

    def _watch_in_background(self, job_id: str, kind: JobKind) -> JobSubscription:
        self._background = {key: sub for key, sub in self._background.items() if not sub.done}
        previous = self._background.pop(job_id, None)
        if previous is not None:
            previous.cancel()
        subscription = self.poller.subscribe(job_id, kind, self._sync_job)
        self._background[job_id] = subscription
        return subscription

    async def _sync_job(self, job: GenerationJob) -> None:
        self.cache.upsert(job)
        await self.registry.update_status(job.id, job.status)


def create_client(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> TryOnClient:
    """Build a TryOnClient from settings (loaded from the environment by default).

    Args:
        settings: Application settings
        transport: Optional httpx transport (tests pass httpx.MockTransport)
    """
    settings = settings or Settings()  # type: ignore[call-arg]
    api = ApiClient(
        settings.api_base_url,
        token=settings.api_token,
        timeout=settings.request_timeout_seconds,
        transport=transport,
    )
    return TryOnClient(settings, api, setup_db_session(settings.database_url))
