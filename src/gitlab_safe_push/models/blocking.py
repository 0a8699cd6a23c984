"""Blocking reasons: why a pipeline holds a push back."""

from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple, TypeAlias, assert_never

from .pipelines import Pipeline

POST_BLOCK_SUFFIX = " (post-block)"


@dataclass(frozen=True)
class SimpleMode:
    """Any active pipeline blocks."""


@dataclass(frozen=True)
class BlockingStageRunning:
    stage: str


@dataclass(frozen=True)
class BlockingJobRunning:
    job_name: str


@dataclass(frozen=True)
class PreBlockingStage:
    stage: str
    seconds_running: int


BlockingReason: TypeAlias = SimpleMode | BlockingStageRunning | BlockingJobRunning | PreBlockingStage


class BlockingPipeline(NamedTuple):
    pipeline: Pipeline
    reason: BlockingReason


def describe_reason(reason: BlockingReason) -> str:
    """Human-readable one-liner for a blocking reason."""
    match reason:
        case SimpleMode():
            return "Pipeline running (simple mode)"
        case BlockingStageRunning(stage=stage):
            return f"Blocking stage '{stage}' is running"
        case BlockingJobRunning(job_name=job_name):
            return f"Blocking job '{job_name}' is running"
        case PreBlockingStage(stage=stage, seconds_running=seconds):
            return f"Stage '{stage}' running for {seconds}s (approaching blocking stage)"
        case _:
            assert_never(reason)


def reason_kind(reason: BlockingReason) -> str:
    """Stable snake_case tag for a reason, used in JSON output."""
    match reason:
        case SimpleMode():
            return "simple_mode"
        case BlockingStageRunning():
            return "blocking_stage_running"
        case BlockingJobRunning():
            return "blocking_job_running"
        case PreBlockingStage():
            return "pre_blocking_stage"
        case _:
            assert_never(reason)
