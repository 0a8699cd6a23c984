"""Base model for GitLab API responses."""

from __future__ import annotations

from pydantic import BaseModel


class GitLabModel(BaseModel):
    """Read-only snapshot of a GitLab API object; unknown fields are dropped."""

    model_config = {"extra": "ignore", "populate_by_name": True, "frozen": True}
