"""Result lifecycle controller.

Follows one job from submission to its final state and owns the side effects
of the result screen:

    idle -> pending -> processing -> completed | failed

State changes arrive from the poller through the job cache. Entering
``completed`` with a result asset saves the result to the wardrobe once per job
(classic try-ons only). Entering ``failed`` exposes the job's error and enables
retry. Closing is refused while the job is processing so an in-flight job is
never dropped.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

import structlog

from virtualroom.models.feedback import FeedbackChannel, FeedbackValue
from virtualroom.models.job import GenerationJob, JobKind
from virtualroom.services.active_jobs import ActiveJobRegistry
from virtualroom.services.api.download import DownloadClient
from virtualroom.services.api.wardrobe import WardrobeClient
from virtualroom.services.exceptions import AlreadySavedError, DownloadError, ServiceError
from virtualroom.services.feedback import FeedbackService
from virtualroom.services.job_cache import JobCache
from virtualroom.services.workflow.session import WorkflowSession
from virtualroom.workers.job_poller import JobPoller, JobSubscription

logger = structlog.get_logger(__name__)

# Workflows whose results are saved to the wardrobe automatically
AUTO_SAVE_KINDS = frozenset({JobKind.CLASSIC_TRY_ON})


class ResultState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class ResultView:
    """Snapshot of everything the result screen renders."""

    state: ResultState
    job_id: Optional[str] = None
    kind: Optional[JobKind] = None
    result_asset: Optional[str] = None
    error_info: Optional[str] = None
    auto_saved: bool = False
    saving: bool = False
    save_error: Optional[str] = None
    liked: Optional[bool] = None
    thumbs: Optional[FeedbackValue] = None

    @property
    def is_loading(self) -> bool:
        return self.state in (ResultState.PENDING, ResultState.PROCESSING)

    @property
    def can_retry(self) -> bool:
        return self.state in (ResultState.FAILED, ResultState.COMPLETED)

    @property
    def can_close(self) -> bool:
        return self.state != ResultState.PROCESSING


class ResultController:
    """Drives the result screen for one job at a time."""

    def __init__(
        self,
        poller: JobPoller,
        cache: JobCache,
        session: WorkflowSession,
        registry: Optional[ActiveJobRegistry] = None,
        wardrobe: Optional[WardrobeClient] = None,
        feedback: Optional[FeedbackService] = None,
        downloads: Optional[DownloadClient] = None,
        download_dir: Path = Path("downloads"),
    ):
        """Initialize controller.

        Args:
            poller: Polling engine used to follow the job
            cache: Job cache the poller writes into
            session: Workflow session reset on retry
            registry: Active-jobs registry (entry removed on close/retry)
            wardrobe: Auto-save target; auto-save is disabled without it
            feedback: Heart/thumbs toggles
            downloads: Export client
            download_dir: Default directory for downloads
        """
        self.poller = poller
        self.cache = cache
        self.session = session
        self.registry = registry
        self.wardrobe = wardrobe
        self.feedback = feedback
        self.downloads = downloads
        self.download_dir = download_dir

        self._state = ResultState.IDLE
        self._job: Optional[GenerationJob] = None
        self._job_id: Optional[str] = None
        self._kind: Optional[JobKind] = None
        self._subscription: Optional[JobSubscription] = None
        self._unwatch: Optional[Callable[[], None]] = None
        self._effects: set[asyncio.Task] = set()
        # Bumped on every detach so late effects for an old job are dropped
        self._generation = 0
        self._reset_flags()

    @property
    def state(self) -> ResultState:
        return self._state

    @property
    def job_id(self) -> Optional[str]:
        return self._job_id

    @property
    def subscription(self) -> Optional[JobSubscription]:
        return self._subscription

    @property
    def view(self) -> ResultView:
        job = self._job
        return ResultView(
            state=self._state,
            job_id=self._job_id,
            kind=self._kind,
            result_asset=job.result_asset if job else None,
            error_info=job.error_info if job else None,
            auto_saved=self._auto_saved,
            saving=self._saving,
            save_error=self._save_error,
            liked=self._liked,
            thumbs=self._thumbs,
        )

    def track(self, job_id: str, kind: JobKind) -> JobSubscription:
        """Attach a job and start following it.

        Any previously attached (non-processing) job is detached first.

        Raises:
            RuntimeError: The current job is still processing
        """
        if self._state == ResultState.PROCESSING:
            raise RuntimeError(f"Job {self._job_id} is still processing")
        self._detach()

        self._job_id = job_id
        self._kind = kind
        self._state = ResultState.PENDING
        logger.info("result.tracking", job_id=job_id, kind=kind.value)

        cached = self.cache.get(job_id)
        if cached is not None:
            self._apply(cached)

        self._unwatch = self.cache.watch(job_id, self._on_cache_change)
        self._subscription = self.poller.subscribe(job_id, kind, self._on_poll)
        return self._subscription

    async def retry(self) -> bool:
        """Drop the finished job and start over with an empty draft at step 1.

        Makes no request: resubmitting is up to the caller.

        Returns:
            False (and does nothing) unless the job is completed or failed
        """
        if self._state not in (ResultState.FAILED, ResultState.COMPLETED):
            logger.debug("result.retry_ignored", state=self._state.value)
            return False

        job_id, kind = self._job_id, self._kind
        self._detach()
        if kind is not None:
            self.session.reset(kind)
            self.session.set_active_kind(kind)
        logger.info("result.retry", job_id=job_id, kind=kind.value if kind else None)

        if self.registry is not None and job_id is not None:
            await self.registry.forget(job_id)
        return True

    async def close(self) -> bool:
        """Stop following the job and return to idle.

        Returns:
            False (and does nothing) while the job is processing
        """
        if self._state == ResultState.PROCESSING:
            logger.debug("result.close_refused", job_id=self._job_id)
            return False

        job_id = self._job_id
        self._detach()
        logger.info("result.closed", job_id=job_id)

        if self.registry is not None and job_id is not None:
            await self.registry.forget(job_id)
        return True

    async def toggle_heart(self) -> bool:
        """Flip the heart for the current result.

        Returns:
            True if the result is now liked

        Raises:
            RuntimeError: No job attached or no feedback service configured
            ServiceError: Feedback backend failure (local state is unchanged)
        """
        job_id, kind = self._require_job()
        if self.feedback is None:
            raise RuntimeError("Feedback service is not configured")
        liked = await self.feedback.toggle_heart(job_id, kind)
        if self._job_id == job_id:
            self._liked = liked
        return liked

    async def toggle_thumbs(self, value: FeedbackValue) -> Optional[FeedbackValue]:
        """Toggle thumbs up/down for the current result.

        Returns:
            The stored value, or None if the toggle removed it
        """
        job_id, kind = self._require_job()
        if self.feedback is None:
            raise RuntimeError("Feedback service is not configured")
        stored = await self.feedback.toggle(job_id, kind, FeedbackChannel.THUMBS, value)
        if self._job_id == job_id:
            self._thumbs = stored
        return stored

    async def download(self, directory: Optional[Path] = None) -> Path:
        """Export the result image.

        Raises:
            DownloadError: No completed result, or the download was refused
            RuntimeError: No download client configured
        """
        job_id, kind = self._require_job()
        if self.downloads is None:
            raise RuntimeError("Download client is not configured")
        if self._state != ResultState.COMPLETED or not self._job or not self._job.result_asset:
            raise DownloadError(f"Job {job_id} has no result to download")
        return await self.downloads.download_to(
            directory or self.download_dir, self._job.result_asset, job_id, kind
        )

    async def settle(self) -> None:
        """Wait for pending side effects (auto-save) to finish."""
        while self._effects:
            await asyncio.gather(*list(self._effects), return_exceptions=True)

    def _require_job(self) -> tuple[str, JobKind]:
        if self._job_id is None or self._kind is None:
            raise RuntimeError("No job attached")
        return self._job_id, self._kind

    def _reset_flags(self) -> None:
        self._auto_save_started = False
        self._auto_saved = False
        self._saving = False
        self._save_error: Optional[str] = None
        self._liked: Optional[bool] = None
        self._thumbs: Optional[FeedbackValue] = None

    def _detach(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
        if self._unwatch is not None:
            self._unwatch()
            self._unwatch = None
        self._generation += 1
        self._job = None
        self._job_id = None
        self._kind = None
        self._state = ResultState.IDLE
        self._reset_flags()

    async def _on_poll(self, job: GenerationJob) -> None:
        self.cache.upsert(job)
        if self.registry is not None:
            await self.registry.update_status(job.id, job.status)

    def _on_cache_change(self, job: Optional[GenerationJob]) -> None:
        if job is None or job.id != self._job_id:
            return
        self._apply(job)

    def _apply(self, job: GenerationJob) -> None:
        previous = self._state
        self._job = job
        self._state = ResultState(job.status.value)
        if self._state != previous:
            logger.info(
                "result.state_changed",
                job_id=job.id,
                from_state=previous.value,
                to_state=self._state.value,
            )
        if self._state == ResultState.FAILED and previous != ResultState.FAILED:
            logger.info("result.failed", job_id=job.id, error_info=job.error_info)

        if (
            self._state == ResultState.COMPLETED
            and job.result_asset
            and job.kind in AUTO_SAVE_KINDS
            and self.wardrobe is not None
            and not self._auto_save_started
        ):
            # One-shot: set before scheduling so repeated notifications do nothing
            self._auto_save_started = True
            self._saving = True
            task = asyncio.get_running_loop().create_task(
                self._auto_save(job.id, self._generation)
            )
            self._effects.add(task)
            task.add_done_callback(self._effects.discard)

    async def _auto_save(self, job_id: str, generation: int) -> None:
        saved = False
        error: Optional[str] = None
        try:
            await self.wardrobe.add(job_id, liked=self._liked)
            saved = True
            logger.info("result.auto_saved", job_id=job_id)

        except AlreadySavedError:
            saved = True
            logger.info("result.already_saved", job_id=job_id)

        except ServiceError as e:
            error = str(e)
            logger.warning(
                "result.auto_save_failed",
                job_id=job_id,
                error_type=type(e).__name__,
                error_message=str(e),
            )

        if generation != self._generation:
            return
        self._saving = False
        self._auto_saved = saved
        self._save_error = error
