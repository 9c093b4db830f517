"""Submitting a workflow draft as a new generation job."""

from typing import Optional

import structlog
from sqlalchemy.exc import SQLAlchemyError

from virtualroom.models.job import GenerationJob, JobKind
from virtualroom.services.active_jobs import ActiveJobRegistry
from virtualroom.services.api.jobs import JobRepository
from virtualroom.services.job_cache import JobCache
from virtualroom.services.workflow.session import WorkflowSession

logger = structlog.get_logger(__name__)


async def submit_workflow(
    session: WorkflowSession,
    repository: JobRepository,
    cache: JobCache,
    registry: Optional[ActiveJobRegistry] = None,
    kind: Optional[JobKind] = None,
) -> GenerationJob:
    """Validate a draft, create the job and record it locally.

    Workflow:
    1. Validate the draft (raises before any request if incomplete)
    2. Create the job through the repository
    3. Insert the job at the head of its cached list
    4. Remember it in the active-jobs registry (a local store failure is logged,
       not raised, since the job already exists remotely)
    5. Reset the draft for the next submission

    Args:
        session: Session holding the draft
        repository: Job backend
        cache: Local job cache
        registry: Active-jobs registry (skipped when None)
        kind: Workflow to submit (defaults to the session's active kind)

    Returns:
        The created job (normally pending)

    Raises:
        WorkflowValidationError: Draft incomplete; nothing was sent
        ServiceError: The repository rejected or failed the request; the
            draft is left untouched so the user can try again
    """
    request = session.build_request(kind)
    logger.info("submission.started", kind=request.kind.value)

    job = await repository.create(request)

    cache.insert_at_head(job)
    if registry is not None:
        try:
            await registry.track(job)
        except SQLAlchemyError as e:
            # The job already exists remotely, so the draft is reset regardless
            logger.error(
                "submission.registry_failed",
                job_id=job.id,
                error_type=type(e).__name__,
                error_message=str(e),
            )
    session.reset(request.kind)

    logger.info("submission.completed", job_id=job.id, kind=job.kind.value)
    return job
