"""Blocking evaluation for a single pipeline."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from .config import BlockingPolicy
from .models.blocking import (
    POST_BLOCK_SUFFIX,
    BlockingJobRunning,
    BlockingReason,
    BlockingStageRunning,
    PreBlockingStage,
    SimpleMode,
)
from .models.pipelines import Job, Pipeline
from .stages import stage_index
from .timestamps import seconds_since_start

logger = logging.getLogger(__name__)

ACTIVE_JOB_STATUSES = frozenset({"running", "pending"})


def is_active(job: Job) -> bool:
    return job.status in ACTIVE_JOB_STATUSES


def evaluate_pipeline(
    pipeline: Pipeline,
    jobs: Sequence[Job],
    stage_order: Sequence[str],
    policy: BlockingPolicy,
    now: datetime | None = None,
) -> BlockingReason | None:
    """Decide whether *pipeline* blocks a push, returning the first matching reason.

    Checks run in a fixed order:

    1. simple mode blocks unconditionally;
    2. an active job listed in ``blocking_jobs``;
    3. stage rules, for each active job in list order: a job in the blocking
       stage; a job in the stage just before it that has been active for at
       least ``pre_block_duration`` seconds; a job in the stage just after it
       that has been active for less than ``post_block_duration`` seconds.

    A job whose timestamps cannot be parsed never satisfies a time-based rule.
    """
    if policy.is_simple:
        return SimpleMode()

    for job in jobs:
        if job.name in policy.blocking_jobs and is_active(job):
            logger.debug("Pipeline #%d: blocking job %r is %s", pipeline.id, job.name, job.status)
            return BlockingJobRunning(job.name)

    if policy.blocking_stage is None:
        return None
    blocking_idx = stage_index(stage_order, policy.blocking_stage)
    if blocking_idx is None:
        logger.debug(
            "Pipeline #%d has no stage %r, skipping stage rules", pipeline.id, policy.blocking_stage
        )
        return None

    for job in jobs:
        if not is_active(job):
            continue
        if job.stage == policy.blocking_stage:
            return BlockingStageRunning(job.stage)

        idx = stage_index(stage_order, job.stage)
        if idx == blocking_idx - 1:
            elapsed = seconds_since_start(job.started_at, job.created_at, now)
            if elapsed is not None and elapsed >= policy.pre_block_duration:
                return PreBlockingStage(job.stage, elapsed)
        elif idx == blocking_idx + 1:
            elapsed = seconds_since_start(job.started_at, job.created_at, now)
            if elapsed is not None and elapsed < policy.post_block_duration:
                return BlockingStageRunning(job.stage + POST_BLOCK_SUFFIX)

    return None
