"""Pipeline and job models."""

from __future__ import annotations

from .base import GitLabModel


class Pipeline(GitLabModel):
    id: int
    status: str
    ref: str = ""
    created_at: str = ""
    updated_at: str = ""
    sha: str = ""
    web_url: str = ""


class Job(GitLabModel):
    id: int
    name: str
    stage: str
    status: str
    # GitLab leaves started_at null until a runner picks the job up
    started_at: str | None = None
    created_at: str = ""
    web_url: str = ""
