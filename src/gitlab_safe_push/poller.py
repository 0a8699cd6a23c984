"""Wait loop that re-checks blocking pipelines until the branch is clear."""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Callable

from .config import BlockingPolicy
from .models.blocking import BlockingPipeline, describe_reason
from .scanner import PipelineFetcher, find_blocking_pipelines

logger = logging.getLogger(__name__)

BlockedCallback = Callable[[int, BlockingPipeline], None]


class WaitOutcome(str, enum.Enum):
    CLEARED = "cleared"
    CANCELLED = "cancelled"


async def wait_until_clear(
    fetcher: PipelineFetcher,
    project_id: str | int,
    branch: str,
    policy: BlockingPolicy,
    *,
    cancel: asyncio.Event | None = None,
    on_blocked: BlockedCallback | None = None,
) -> WaitOutcome:
    """Scan every ``policy.check_interval`` seconds until nothing blocks.

    There is no iteration limit and no backoff. Setting *cancel* stops the
    wait at the next check or during the sleep between checks. Fetch errors
    are not retried: they propagate and end the wait.
    """
    cancel = cancel or asyncio.Event()
    attempt = 0
    while not cancel.is_set():
        attempt += 1
        blocking = await find_blocking_pipelines(fetcher, project_id, branch, policy)
        if not blocking:
            logger.info("No blocking pipelines on %s after %d check(s)", branch, attempt)
            return WaitOutcome.CLEARED

        first = blocking[0]
        logger.info(
            "Check %d: pipeline #%d blocks (%s)",
            attempt,
            first.pipeline.id,
            describe_reason(first.reason),
        )
        if on_blocked is not None:
            on_blocked(attempt, first)

        try:
            await asyncio.wait_for(cancel.wait(), timeout=policy.check_interval)
        except TimeoutError:
            continue

    logger.info("Wait for %s cancelled after %d check(s)", branch, attempt)
    return WaitOutcome.CANCELLED
