"""CLI command for resuming in-flight jobs after a restart.

Reads the active-jobs registry, polls every remembered job until it completes,
fails or the timeout expires, and prints a summary.

Usage:
    python -m virtualroom.cli [OPTIONS]

Examples:
    # Watch until every job finishes
    python -m virtualroom.cli

    # Give up after two minutes
    python -m virtualroom.cli --timeout 120

    # Verbose logging
    python -m virtualroom.cli -v
"""

import asyncio
import sys
from argparse import ArgumentParser, Namespace
from typing import Optional, Sequence

import structlog

from virtualroom.client import create_client
from virtualroom.core.config import Settings, configure_logging
from virtualroom.models.job import JobStatus
from virtualroom.services.exceptions import ServiceError

logger = structlog.get_logger(__name__)


def parse_args(argv: Optional[Sequence[str]] = None) -> Namespace:
    """Parse command-line arguments."""
    parser = ArgumentParser(
        description="Resume polling of in-flight generation jobs",
        epilog="Jobs older than ACTIVE_JOB_TTL_SECONDS are dropped from the registry",
    )

    parser.add_argument(
        "--timeout",
        type=float,
        help="Maximum seconds to wait for jobs to finish (default: no limit)",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )

    return parser.parse_args(argv)


def print_summary(resumed: int, completed: list, failed: list, unfinished: list[str]) -> None:
    rule = "-" * 60
    print(f"\n{rule}\nResumed {resumed} job(s)\n{rule}")
    print(f"Completed: {len(completed)}")
    for job in completed:
        print(f"  {job.id} [{job.kind.value}] {job.result_asset}")
    print(f"Failed: {len(failed)}")
    for job in failed:
        print(f"  {job.id} [{job.kind.value}] {job.error_info or 'no error details'}")
    if unfinished:
        print(f"Still running: {len(unfinished)}")
        for job_id in unfinished:
            print(f"  {job_id}")
    print(rule)


async def async_main(
    argv: Optional[Sequence[str]] = None, settings: Optional[Settings] = None
) -> int:
    """Resume and watch active jobs.

    Returns:
        0 when every job completed, 2 when some failed or are still running,
        1 on error, 130 when interrupted
    """
    args = parse_args(argv)
    settings = settings or Settings()  # type: ignore[call-arg]
    if args.verbose:
        settings.log_level = "DEBUG"
    configure_logging(settings)
    logger.info("cli.started", timeout=args.timeout, api_base_url=settings.api_base_url)

    try:
        async with create_client(settings) as client:
            subscriptions = await client.recover()
            if not subscriptions:
                print("No active jobs to resume")
                return 0

            await asyncio.gather(*(sub.wait(args.timeout) for sub in subscriptions.values()))
            jobs = {job_id: client.cache.get(job_id) for job_id in subscriptions}

    except KeyboardInterrupt:
        logger.info("cli.interrupted")
        print("\nInterrupted", file=sys.stderr)
        return 130

    except Exception as e:
        event = "cli.service_error" if isinstance(e, ServiceError) else "cli.unexpected_error"
        logger.error(event, error_type=type(e).__name__, error=str(e))
        print(f"\nError: {e}", file=sys.stderr)
        return 1

    completed = [j for j in jobs.values() if j and j.status == JobStatus.COMPLETED]
    failed = [j for j in jobs.values() if j and j.status == JobStatus.FAILED]
    unfinished = [i for i, j in jobs.items() if j is None or not j.status.is_terminal]
    print_summary(len(jobs), completed, failed, unfinished)

    if failed or unfinished:
        logger.warning("cli.partial_success", failed=len(failed), unfinished=len(unfinished))
        return 2
    logger.info("cli.success", completed=len(completed))
    return 0


def main() -> None:
    sys.exit(asyncio.run(async_main()))
