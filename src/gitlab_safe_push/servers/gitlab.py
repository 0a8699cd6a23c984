"""MCP server: lets agents ask whether a push to a branch is safe right now."""

from __future__ import annotations

import asyncio
import json
import re
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated, Any

import click
from dotenv import load_dotenv
from fastmcp import Context, FastMCP
from pydantic import Field

from ..client import GitLabClient
from ..config import BlockingPolicy, Settings, resolve_settings
from ..exceptions import (
    ConfigurationError,
    GitLabApiError,
    GitLabAuthError,
    GitLabNotFoundError,
    GitLabTransportError,
)
from ..git import parse_project_path
from ..models.blocking import describe_reason, reason_kind
from ..scanner import find_blocking_pipelines
from ..stages import derive_stage_order

_PIPELINE_ID_RE = re.compile(r"/-/pipelines/(\d+)")


def _resolve_project(value: str) -> tuple[str, int | None]:
    """Split a project reference into (project, pipeline id).

    IDs and paths pass through unchanged. GitLab URLs are reduced to their
    project path, and a pipeline URL also yields its pipeline id.
    """
    if not value.startswith(("http://", "https://")):
        return value, None
    m = _PIPELINE_ID_RE.search(value)
    return parse_project_path(value) or value, (int(m.group(1)) if m else None)


def _get_client(ctx: Context) -> GitLabClient:
    return ctx.request_context.lifespan_context["client"]


def _get_policy(ctx: Context) -> BlockingPolicy:
    return ctx.request_context.lifespan_context["policy"]


def _ok(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def _err(error: Exception) -> str:
    detail: dict[str, Any] = {"error": str(error)}

    if isinstance(error, GitLabNotFoundError):
        detail["status_code"] = error.status_code
        detail["body"] = error.body
        detail["hint"] = "Verify the project path or pipeline ID."
    elif isinstance(error, GitLabAuthError):
        detail["status_code"] = error.status_code
        detail["body"] = error.body
        detail["hint"] = "Check GITLAB_TOKEN permissions. Token needs 'read_api' scope."
    elif isinstance(error, GitLabApiError):
        detail["status_code"] = error.status_code
        detail["body"] = error.body
        if error.status_code == 429:
            detail["hint"] = "Rate limited. Wait before retrying."
    elif isinstance(error, GitLabTransportError):
        detail["hint"] = "GitLab did not respond. Check GITLAB_URL and network access."
    elif isinstance(error, ConfigurationError):
        detail["hint"] = "Fix the server configuration and restart it."
    return json.dumps(detail, indent=2, ensure_ascii=False)


def build_server(settings: Settings | None = None) -> FastMCP:
    """Create the MCP server. Without *settings*, they are resolved at startup."""

    @asynccontextmanager
    async def lifespan(server: FastMCP) -> AsyncIterator[dict[str, Any]]:
        resolved = settings or resolve_settings()
        client = GitLabClient(resolved.gitlab)
        try:
            yield {"client": client, "policy": resolved.policy}
        finally:
            await client.close()

    mcp = FastMCP(
        name="GitLab Safe Push",
        instructions=(
            "Call gitlab_check_push_blockers before pushing to a GitLab branch."
            " If it reports blocked=true, wait and check again instead of pushing."
        ),
        lifespan=lifespan,
    )

    @mcp.tool(
        tags={"gitlab", "pipelines", "read"},
        annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": True},
    )
    async def gitlab_check_push_blockers(
        ctx: Context,
        project_id: Annotated[
            str,
            Field(description="Project ID, path (e.g. 'my-group/my-project') or URL", min_length=1),
        ],
        branch: Annotated[str, Field(description="Branch about to be pushed", min_length=1)],
    ) -> str:
        """Check whether active pipelines on a branch should hold a push back."""
        try:
            project, _ = _resolve_project(project_id)
            blocking = await find_blocking_pipelines(
                _get_client(ctx), project, branch, _get_policy(ctx)
            )
            return _ok(
                {
                    "project": project,
                    "branch": branch,
                    "blocked": bool(blocking),
                    "blockers": [
                        {
                            "pipeline_id": item.pipeline.id,
                            "status": item.pipeline.status,
                            "web_url": item.pipeline.web_url,
                            "reason": reason_kind(item.reason),
                            "detail": describe_reason(item.reason),
                        }
                        for item in blocking
                    ],
                }
            )
        except Exception as e:
            return _err(e)

    @mcp.tool(
        tags={"gitlab", "pipelines", "read"},
        annotations={"readOnlyHint": True, "idempotentHint": True, "openWorldHint": True},
    )
    async def gitlab_get_stage_order(
        ctx: Context,
        project_id: Annotated[
            str,
            Field(description="Project ID or path, or a full pipeline URL", min_length=1),
        ],
        pipeline_id: Annotated[
            int | None, Field(description="Pipeline ID (omit when project_id is a URL)")
        ] = None,
    ) -> str:
        """Show the stage order inferred from a pipeline's jobs, with job statuses per stage."""
        try:
            project, url_pipeline_id = _resolve_project(project_id)
            pid = pipeline_id if pipeline_id is not None else url_pipeline_id
            if not pid:
                msg = "pipeline_id is required unless project_id is a pipeline URL"
                raise ValueError(msg)
            jobs = await _get_client(ctx).get_pipeline_jobs(project, pid)
            stages = [
                {
                    "stage": stage,
                    "jobs": [
                        {"name": job.name, "status": job.status}
                        for job in jobs
                        if job.stage == stage
                    ],
                }
                for stage in derive_stage_order(jobs)
            ]
            return _ok({"project": project, "pipeline_id": pid, "stages": stages})
        except Exception as e:
            return _err(e)

    return mcp


@click.command()
@click.option(
    "--transport",
    type=click.Choice(["stdio", "sse", "streamable-http"]),
    default="stdio",
    help="MCP transport type",
)
@click.option("--port", default=8000, help="Port for HTTP transports")
@click.option("--host", default="127.0.0.1", help="Host for HTTP transports")
@click.option("--gitlab-url", envvar="GITLAB_URL", help="GitLab instance URL")
@click.option("--gitlab-token", envvar="GITLAB_TOKEN", help="GitLab personal access token")
def main(
    transport: str,
    port: int,
    host: str,
    gitlab_url: str | None,
    gitlab_token: str | None,
) -> None:
    """Run the GitLab safe-push MCP server."""
    load_dotenv()

    try:
        settings = resolve_settings({"gitlab_url": gitlab_url, "token": gitlab_token})
        settings.gitlab.validate()
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e

    mcp = build_server(settings)
    run_kwargs: dict = {"transport": transport}
    if transport != "stdio":
        run_kwargs["host"] = host
        run_kwargs["port"] = port

    asyncio.run(mcp.run_async(show_banner=False, **run_kwargs))


if __name__ == "__main__":
    main()
