"""Stage order inference from a pipeline's job list."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from .models.pipelines import Job


def derive_stage_order(jobs: Iterable[Job]) -> list[str]:
    """Distinct stage names in order of first appearance in *jobs*.

    The order is taken from the job list exactly as fetched; the
    ``.gitlab-ci.yml`` definition is never consulted.
    """
    return list(dict.fromkeys(job.stage for job in jobs))


def stage_index(stage_order: Sequence[str], stage: str) -> int | None:
    try:
        return stage_order.index(stage)
    except ValueError:
        return None
