"""Tool-level tests: call @mcp.tool functions via FastMCP Client with mocked API."""

from __future__ import annotations

import json
from typing import Any

import pytest
import respx
from fastmcp import Client
from httpx import Response

from gitlab_safe_push.config import BlockingPolicy, GitLabConfig, Settings
from gitlab_safe_push.servers.gitlab import _resolve_project, build_server

TEST_URL = "https://gitlab.example.com"
TEST_TOKEN = "test-token"
PIPELINES_PATH = "/projects/my-group%2Fmy-project/pipelines"


def _job(jid: int, name: str, stage: str, status: str) -> dict:
    return {
        "id": jid,
        "name": name,
        "stage": stage,
        "status": status,
        "started_at": None,
        "created_at": "2024-05-01T12:00:00Z",
    }


@pytest.fixture
async def tool_client():
    """FastMCP test client with a deploy-stage policy and respx-mocked HTTP."""
    settings = Settings(
        gitlab=GitLabConfig(url=TEST_URL, token=TEST_TOKEN),
        policy=BlockingPolicy(blocking_stage="deploy"),
    )
    mcp = build_server(settings)
    with respx.mock(base_url=f"{TEST_URL}/api/v4") as router:
        async with Client(mcp) as client:
            yield client, router


def _parse(result: Any) -> dict | list:
    """Extract JSON from a tool call result."""
    if hasattr(result, "content"):
        for item in result.content:
            if hasattr(item, "text"):
                return json.loads(item.text)
    if hasattr(result, "__iter__") and not isinstance(result, (str, dict)):
        for item in result:
            if hasattr(item, "text"):
                return json.loads(item.text)
    return json.loads(str(result))


# ═══════════════════════════════════════════════════════
# Push blockers
# ═══════════════════════════════════════════════════════


class TestCheckPushBlockers:
    async def test_blocked(self, tool_client):
        client, router = tool_client
        router.get(PIPELINES_PATH).mock(
            return_value=Response(
                200,
                json=[
                    {
                        "id": 77,
                        "status": "running",
                        "ref": "main",
                        "web_url": f"{TEST_URL}/my-group/my-project/-/pipelines/77",
                    }
                ],
            )
        )
        router.get(f"{PIPELINES_PATH}/77/jobs").mock(
            return_value=Response(
                200,
                json=[
                    _job(1, "build", "build", "success"),
                    _job(2, "deploy:prod", "deploy", "running"),
                ],
            )
        )
        result = await client.call_tool(
            "gitlab_check_push_blockers",
            {"project_id": f"{TEST_URL}/my-group/my-project", "branch": "main"},
        )
        parsed = _parse(result)
        assert parsed["project"] == "my-group/my-project"
        assert parsed["blocked"] is True
        assert parsed["blockers"] == [
            {
                "pipeline_id": 77,
                "status": "running",
                "web_url": f"{TEST_URL}/my-group/my-project/-/pipelines/77",
                "reason": "blocking_stage_running",
                "detail": "Blocking stage 'deploy' is running",
            }
        ]

    async def test_clear(self, tool_client):
        client, router = tool_client
        router.get(PIPELINES_PATH).mock(return_value=Response(200, json=[]))
        result = await client.call_tool(
            "gitlab_check_push_blockers",
            {"project_id": "my-group/my-project", "branch": "main"},
        )
        parsed = _parse(result)
        assert parsed["blocked"] is False
        assert parsed["blockers"] == []

    async def test_not_found(self, tool_client):
        client, router = tool_client
        router.get("/projects/nonexistent/pipelines").mock(
            return_value=Response(404, json={"message": "404 Project Not Found"})
        )
        result = await client.call_tool(
            "gitlab_check_push_blockers", {"project_id": "nonexistent", "branch": "main"}
        )
        parsed = _parse(result)
        assert parsed["status_code"] == 404
        assert "Verify" in parsed["hint"]

    async def test_auth_error(self, tool_client):
        client, router = tool_client
        router.get("/projects/123/pipelines").mock(
            return_value=Response(401, json={"message": "401 Unauthorized"})
        )
        result = await client.call_tool(
            "gitlab_check_push_blockers", {"project_id": "123", "branch": "main"}
        )
        parsed = _parse(result)
        assert "error" in parsed
        assert "GITLAB_TOKEN" in parsed["hint"]


# ═══════════════════════════════════════════════════════
# Stage order
# ═══════════════════════════════════════════════════════


class TestGetStageOrder:
    async def test_from_pipeline_url(self, tool_client):
        client, router = tool_client
        router.get(f"{PIPELINES_PATH}/77/jobs").mock(
            return_value=Response(
                200,
                json=[
                    _job(1, "compile", "build", "success"),
                    _job(2, "lint", "build", "success"),
                    _job(3, "deploy:prod", "deploy", "pending"),
                    _job(4, "smoke", "verify", "created"),
                ],
            )
        )
        result = await client.call_tool(
            "gitlab_get_stage_order",
            {"project_id": f"{TEST_URL}/my-group/my-project/-/pipelines/77"},
        )
        parsed = _parse(result)
        assert parsed["pipeline_id"] == 77
        assert [s["stage"] for s in parsed["stages"]] == ["build", "deploy", "verify"]
        assert parsed["stages"][0]["jobs"] == [
            {"name": "compile", "status": "success"},
            {"name": "lint", "status": "success"},
        ]

    async def test_pipeline_id_required(self, tool_client):
        client, _ = tool_client
        result = await client.call_tool("gitlab_get_stage_order", {"project_id": "123"})
        parsed = _parse(result)
        assert "pipeline_id is required" in parsed["error"]


# ═══════════════════════════════════════════════════════
# URL helpers
# ═══════════════════════════════════════════════════════


def test_resolve_project_reference():
    assert _resolve_project("https://gitlab.com/a/b") == ("a/b", None)
    assert _resolve_project("https://gitlab.com/a/b.git") == ("a/b", None)
    assert _resolve_project("https://gitlab.com/a/b/-/pipelines") == ("a/b", None)
    assert _resolve_project("a/b") == ("a/b", None)
    assert _resolve_project("123") == ("123", None)


def test_resolve_pipeline_url():
    assert _resolve_project("https://gitlab.com/a/b/-/pipelines/9") == ("a/b", 9)
