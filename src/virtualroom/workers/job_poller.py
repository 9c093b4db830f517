"""Status polling for in-flight generation jobs.

Each subscription runs as one asyncio task that fetches the job, reports status
changes and sleeps until the next fetch:

1. Fetch the job from the repository
2. Drop the response if the subscription was cancelled while it was in flight
3. Invoke the callback only when the status differs from the last one observed
4. Stop for good once the job is completed or failed
5. On any fetch error, log and retry after the kind's (longer) error backoff

Fetch errors never reach the callback. Polling continues until a terminal status
or cancellation; callers that need an upper bound on the wait impose it
themselves (see ``JobSubscription.wait``).
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Optional, Union

import structlog

from virtualroom.core.config import Settings
from virtualroom.models.job import GenerationJob, JobKind, JobStatus
from virtualroom.services.api.jobs import JobRepository

logger = structlog.get_logger(__name__)

OnChange = Callable[[GenerationJob], Union[None, Awaitable[Any]]]


class JobSubscription:
    """Cancellation handle for one job's polling task.

    ``cancel()`` takes effect synchronously: once it returns, no later response
    for this subscription reaches the callback, even one already in flight.
    Usable as an async context manager that cancels on exit.
    """

    def __init__(self, job_id: str, kind: JobKind):
        self.job_id = job_id
        self.kind = kind
        self.active = True
        self.last_observed_status: Optional[JobStatus] = None
        self.fetch_count = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def done(self) -> bool:
        return self._task is None or self._task.done()

    def cancel(self) -> None:
        """Stop polling. Safe to call repeatedly and from inside the callback."""
        if not self.active:
            return
        self.active = False
        logger.debug("poller.cancel_requested", job_id=self.job_id)
        # From inside the callback the loop exits on its own at the next check
        if self._task is not None and self._task is not asyncio.current_task():
            self._task.cancel()

    async def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait for the polling task to finish.

        Args:
            timeout: Maximum seconds to wait (None waits until terminal or cancelled)

        Returns:
            True if polling has finished, False if the timeout expired first
        """
        if self._task is None:
            return True
        done, _ = await asyncio.wait({self._task}, timeout=timeout)
        return bool(done)

    async def __aenter__(self) -> "JobSubscription":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.cancel()
        await self.wait()
        return False


class JobPoller:
    """Creates and tracks polling subscriptions against a job repository."""

    def __init__(self, repository: JobRepository, settings: Settings):
        self.repository = repository
        self.settings = settings
        self._subscriptions: set[JobSubscription] = set()

    @property
    def subscriptions(self) -> list[JobSubscription]:
        return [sub for sub in self._subscriptions if not sub.done]

    def subscribe(self, job_id: str, kind: JobKind, on_change: OnChange) -> JobSubscription:
        """Start polling a job.

        The first fetch is issued immediately. Callers should hold at most one
        subscription per job id; a second one is allowed but doubles the requests.

        Args:
            job_id: Job to poll
            kind: Job kind, selects the poll interval and error backoff
            on_change: Called with the full job each time its status changes.
                May be a coroutine function; it is awaited before the next fetch.

        Returns:
            JobSubscription handle used to cancel polling

        Raises:
            RuntimeError: If called without a running event loop
        """
        subscription = JobSubscription(job_id, kind)
        task = asyncio.get_running_loop().create_task(
            self._run(subscription, on_change), name=f"poll-{kind.value}-{job_id}"
        )
        subscription._task = task
        self._subscriptions.add(subscription)
        task.add_done_callback(lambda _: self._subscriptions.discard(subscription))
        return subscription

    async def aclose(self) -> None:
        """Cancel every subscription and wait for the tasks to finish."""
        subscriptions = list(self._subscriptions)
        for subscription in subscriptions:
            subscription.cancel()
        for subscription in subscriptions:
            await subscription.wait()

    async def _run(self, subscription: JobSubscription, on_change: OnChange) -> None:
        policy = self.settings.poll_policy(subscription.kind)
        log = logger.bind(job_id=subscription.job_id, kind=subscription.kind.value)
        log.info("poller.started", interval=policy.interval, error_backoff=policy.error_backoff)

        try:
            while subscription.active:
                try:
                    subscription.fetch_count += 1
                    job = await self.repository.get(subscription.job_id)

                except asyncio.CancelledError:
                    raise

                except Exception as e:
                    # Fetch errors are absorbed: back off and keep polling
                    log.warning(
                        "poller.fetch_failed",
                        error_type=type(e).__name__,
                        error_message=str(e),
                        retry_in=policy.error_backoff,
                    )
                    await asyncio.sleep(policy.error_backoff)
                    continue

                if not subscription.active:
                    log.debug("poller.response_discarded", status=job.status.value)
                    break

                await self._observe(subscription, job, on_change, log)

                if not subscription.active:
                    break
                status = subscription.last_observed_status
                if status is not None and status.is_terminal:
                    log.info(
                        "poller.finished", status=status.value, fetches=subscription.fetch_count
                    )
                    break

                await asyncio.sleep(policy.interval)

        except asyncio.CancelledError:
            log.info("poller.cancelled")
            raise

        finally:
            subscription.active = False

    async def _observe(
        self,
        subscription: JobSubscription,
        job: GenerationJob,
        on_change: OnChange,
        log,
    ) -> None:
        previous = subscription.last_observed_status
        if previous == job.status:
            return
        if previous is not None and job.status.regresses_from(previous):
            log.info(
                "poller.regression_ignored",
                observed_status=previous.value,
                incoming_status=job.status.value,
            )
            return

        subscription.last_observed_status = job.status
        log.info(
            "poller.status_changed",
            from_status=previous.value if previous else None,
            to_status=job.status.value,
        )

        try:
            result = on_change(job)
            if inspect.isawaitable(result):
                await result

        except asyncio.CancelledError:
            raise

        except Exception as e:
            log.error(
                "poller.callback_failed",
                error_type=type(e).__name__,
                error_message=str(e),
                exc_info=True,
            )
