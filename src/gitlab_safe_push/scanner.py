"""Active pipeline scanning for a branch."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Protocol

from .config import BlockingPolicy
from .evaluator import evaluate_pipeline
from .models.blocking import BlockingPipeline, BlockingReason, SimpleMode
from .models.pipelines import Job, Pipeline
from .stages import derive_stage_order

logger = logging.getLogger(__name__)

ACTIVE_PIPELINE_STATUSES = frozenset({"running", "pending", "created"})


class PipelineFetcher(Protocol):
    async def get_branch_pipelines(self, project_id: str | int, branch: str) -> list[Pipeline]: ...

    async def get_pipeline_jobs(self, project_id: str | int, pipeline_id: int) -> list[Job]: ...


async def check_pipeline(
    fetcher: PipelineFetcher,
    project_id: str | int,
    pipeline: Pipeline,
    policy: BlockingPolicy,
    now: datetime | None = None,
) -> BlockingReason | None:
    """Evaluate one pipeline, fetching its jobs only when the policy looks at them."""
    if policy.is_simple:
        return SimpleMode()
    jobs = await fetcher.get_pipeline_jobs(project_id, pipeline.id)
    return evaluate_pipeline(pipeline, jobs, derive_stage_order(jobs), policy, now)


async def find_blocking_pipelines(
    fetcher: PipelineFetcher,
    project_id: str | int,
    branch: str,
    policy: BlockingPolicy,
    now: datetime | None = None,
) -> list[BlockingPipeline]:
    """Return every active pipeline on *branch* that currently blocks a push.

    Pipelines are evaluated one after another in the order GitLab returns
    them. An empty list means the push may go ahead. Fetch errors propagate.
    """
    pipelines = await fetcher.get_branch_pipelines(project_id, branch)
    blocking: list[BlockingPipeline] = []
    for pipeline in pipelines:
        if pipeline.status not in ACTIVE_PIPELINE_STATUSES:
            continue
        reason = await check_pipeline(fetcher, project_id, pipeline, policy, now)
        if reason is not None:
            blocking.append(BlockingPipeline(pipeline, reason))

    logger.debug(
        "%s@%s: %d pipeline(s) fetched, %d blocking",
        project_id,
        branch,
        len(pipelines),
        len(blocking),
    )
    return blocking
