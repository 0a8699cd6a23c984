"""GitLab API client using httpx."""

from __future__ import annotations

import json
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import TypeAdapter, ValidationError

from .config import GitLabConfig
from .exceptions import (
    GitLabApiError,
    GitLabAuthError,
    GitLabNotFoundError,
    GitLabTransportError,
)
from .models.pipelines import Job, Pipeline

_PIPELINES = TypeAdapter(list[Pipeline])
_JOBS = TypeAdapter(list[Job])

BRANCH_PIPELINES_PAGE_SIZE = 5


class GitLabClient:
    """Async read-only client for the pipeline endpoints of the GitLab REST API v4."""

    def __init__(self, config: GitLabConfig | None = None) -> None:
        self.config = config or GitLabConfig.from_env()
        self.config.validate()
        self._client = httpx.AsyncClient(
            base_url=self.config.api_url,
            headers={"PRIVATE-TOKEN": self.config.token},
            timeout=self.config.timeout,
            verify=self.config.ssl_verify,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> GitLabClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ── HTTP helpers ──────────────────────────────────────────────

    @staticmethod
    def _encode_id(project_id: str | int) -> str:
        """Encode a project ID. Numeric IDs pass through; paths are URL-encoded."""
        if isinstance(project_id, int):
            return str(project_id)
        try:
            return str(int(project_id))
        except ValueError:
            return quote(project_id, safe="")

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Make an API request and return parsed JSON."""
        try:
            resp = await self._client.request(method, path, params=params)
        except httpx.RequestError as e:
            raise GitLabTransportError(f"{type(e).__name__}: {e}") from e

        if resp.status_code in (401, 403):
            raise GitLabAuthError(resp.status_code, resp.text)
        if resp.status_code == 404:
            raise GitLabNotFoundError(resp.text)
        if not resp.is_success:
            raise GitLabApiError(resp.status_code, resp.reason_phrase or "", resp.text)

        if resp.status_code == 204 or not resp.content:
            return None

        content_type = resp.headers.get("content-type", "")
        if "text/html" in content_type:
            msg = "Unexpected HTML response — check URL and authentication"
            raise GitLabApiError(resp.status_code, msg, resp.text[:500])

        try:
            return resp.json()
        except json.JSONDecodeError as e:
            raise GitLabApiError(
                resp.status_code,
                f"JSON parse error: {e}",
                resp.text[:500],
            ) from e

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self._request("GET", path, params=params)

    # ── Pipelines ─────────────────────────────────────────────────

    async def list_pipelines(
        self, project_id: str | int, params: dict[str, Any] | None = None
    ) -> list[dict]:
        enc = self._encode_id(project_id)
        p = {"per_page": 20, **(params or {})}
        return await self.get(f"/projects/{enc}/pipelines", params=p) or []

    async def list_pipeline_jobs(self, project_id: str | int, pipeline_id: int) -> list[dict]:
        enc = self._encode_id(project_id)
        return (
            await self.get(
                f"/projects/{enc}/pipelines/{pipeline_id}/jobs",
                params={"per_page": 100},
            )
            or []
        )

    # ── Typed fetchers ────────────────────────────────────────────

    async def get_branch_pipelines(
        self,
        project_id: str | int,
        branch: str,
        per_page: int = BRANCH_PIPELINES_PAGE_SIZE,
    ) -> list[Pipeline]:
        """Most recently updated pipelines for *branch*, newest first."""
        data = await self.list_pipelines(
            project_id,
            {"ref": branch, "per_page": per_page, "order_by": "updated_at", "sort": "desc"},
        )
        return _validate(_PIPELINES, data)

    async def get_pipeline_jobs(self, project_id: str | int, pipeline_id: int) -> list[Job]:
        data = await self.list_pipeline_jobs(project_id, pipeline_id)
        return _validate(_JOBS, data)


def _validate(adapter: TypeAdapter, data: Any) -> Any:
    try:
        return adapter.validate_python(data)
    except ValidationError as e:
        raise GitLabApiError(200, "Unexpected response shape", str(e)[:500]) from e
