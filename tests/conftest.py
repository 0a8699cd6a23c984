"""Shared test fixtures for gitlab-safe-push."""

from __future__ import annotations

import pytest
import respx

from gitlab_safe_push.client import GitLabClient
from gitlab_safe_push.config import GitLabConfig

TEST_URL = "https://gitlab.example.com"
TEST_TOKEN = "test-token"

_GITLAB_ENV_VARS = (
    "GITLAB_URL",
    "GITLAB_TOKEN",
    "GITLAB_PAT",
    "GITLAB_PERSONAL_ACCESS_TOKEN",
    "GITLAB_API_TOKEN",
    "GITLAB_BLOCKING_STAGE",
    "GITLAB_BLOCKING_JOBS",
    "GITLAB_PRE_BLOCK_DURATION",
    "GITLAB_POST_BLOCK_DURATION",
    "GITLAB_CHECK_INTERVAL",
    "GITLAB_SIMPLE_MODE",
    "GITLAB_TIMEOUT",
    "GITLAB_SSL_VERIFY",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's own GitLab settings out of the tests."""
    for name in _GITLAB_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config() -> GitLabConfig:
    return GitLabConfig(url=TEST_URL, token=TEST_TOKEN)


@pytest.fixture
def client(config: GitLabConfig) -> GitLabClient:
    return GitLabClient(config)


@pytest.fixture
def mock_api() -> respx.MockRouter:
    with respx.mock(base_url="https://gitlab.example.com/api/v4") as router:
        yield router
