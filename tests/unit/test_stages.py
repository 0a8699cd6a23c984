"""Tests for stage order inference."""

from __future__ import annotations

from gitlab_safe_push.models.pipelines import Job
from gitlab_safe_push.stages import derive_stage_order, stage_index


def _jobs(*stages: str) -> list[Job]:
    return [
        Job(id=i, name=f"{stage}-{i}", stage=stage, status="success")
        for i, stage in enumerate(stages, start=1)
    ]


def test_empty_job_list():
    assert derive_stage_order([]) == []


def test_first_occurrence_order_without_duplicates():
    order = derive_stage_order(_jobs("build", "build", "test", "deploy", "test", "verify"))
    assert order == ["build", "test", "deploy", "verify"]


def test_order_follows_job_list_not_names():
    assert derive_stage_order(_jobs("verify", "deploy", "build")) == ["verify", "deploy", "build"]


def test_never_longer_than_job_list():
    jobs = _jobs("a", "a", "a")
    assert len(derive_stage_order(jobs)) <= len(jobs)


def test_stage_index():
    order = ["build", "test", "deploy"]
    assert stage_index(order, "deploy") == 2
    assert stage_index(order, "verify") is None
