"""Background tasks for async processing."""

from virtualroom.workers.job_poller import JobPoller, JobSubscription

__all__ = [
    "JobPoller",
    "JobSubscription",
]
