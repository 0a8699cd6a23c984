"""Safe-push configuration.

Settings come from four places, highest precedence first: explicitly supplied
command-line values, the JSON config file (``~/.gitlab-safe-push-config.json``),
environment variables, and built-in defaults. They are resolved once into an
immutable :class:`Settings` before any pipeline is inspected.
"""

from __future__ import annotations

import enum
import logging
import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".gitlab-safe-push-config.json"

DEFAULT_CHECK_INTERVAL = 30
DEFAULT_PRE_BLOCK_DURATION = 15
DEFAULT_POST_BLOCK_DURATION = 5
DEFAULT_TIMEOUT = 30

TOKEN_ENV_VARS = (
    "GITLAB_TOKEN",
    "GITLAB_PAT",
    "GITLAB_PERSONAL_ACCESS_TOKEN",
    "GITLAB_API_TOKEN",
)


class Mode(str, enum.Enum):
    SIMPLE = "simple"
    ADVANCED = "advanced"


@dataclass
class GitLabConfig:
    """Connection settings for the GitLab REST API."""

    url: str = ""
    token: str = ""
    timeout: float = DEFAULT_TIMEOUT
    ssl_verify: bool = True

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> GitLabConfig:
        env = os.environ if environ is None else environ
        return cls(
            url=env.get("GITLAB_URL", "").rstrip("/"),
            token=_env_token(env) or "",
            timeout=_env_number(env, "GITLAB_TIMEOUT", float) or DEFAULT_TIMEOUT,
            ssl_verify=_env_ssl_verify(env),
        )

    @property
    def api_url(self) -> str:
        return f"{self.url}/api/v4"

    def validate(self) -> None:
        if not self.url:
            msg = "GitLab URL not found! Set GITLAB_URL environment variable or use --gitlab-url"
            raise ConfigurationError(msg)
        if not self.token:
            msg = (
                "GitLab token not found! Set one of: GITLAB_TOKEN, GITLAB_PAT, "
                "GITLAB_PERSONAL_ACCESS_TOKEN, GITLAB_API_TOKEN, or use --token"
            )
            raise ConfigurationError(msg)
        if self.timeout <= 0:
            msg = f"Request timeout must be positive, got {self.timeout}"
            raise ConfigurationError(msg)


@dataclass(frozen=True)
class BlockingPolicy:
    """When an active pipeline should hold a push back.

    Configuring a blocking stage or any blocking job forces advanced mode,
    whatever mode was requested.
    """

    mode: Mode = Mode.SIMPLE
    blocking_stage: str | None = None
    blocking_jobs: frozenset[str] = field(default_factory=frozenset)
    pre_block_duration: int = DEFAULT_PRE_BLOCK_DURATION
    post_block_duration: int = DEFAULT_POST_BLOCK_DURATION
    check_interval: float = DEFAULT_CHECK_INTERVAL

    def __post_init__(self) -> None:
        object.__setattr__(self, "mode", Mode(self.mode))
        object.__setattr__(self, "blocking_stage", self.blocking_stage or None)
        object.__setattr__(self, "blocking_jobs", frozenset(self.blocking_jobs))

        if self.pre_block_duration < 0:
            msg = f"pre_block_duration must be >= 0, got {self.pre_block_duration}"
            raise ConfigurationError(msg)
        if self.post_block_duration < 0:
            msg = f"post_block_duration must be >= 0, got {self.post_block_duration}"
            raise ConfigurationError(msg)
        if self.check_interval <= 0:
            msg = f"check_interval must be > 0, got {self.check_interval}"
            raise ConfigurationError(msg)

        if self.has_blocking_rules:
            object.__setattr__(self, "mode", Mode.ADVANCED)

    @property
    def has_blocking_rules(self) -> bool:
        return self.blocking_stage is not None or bool(self.blocking_jobs)

    @property
    def is_simple(self) -> bool:
        return self.mode is Mode.SIMPLE


@dataclass(frozen=True)
class Settings:
    gitlab: GitLabConfig
    policy: BlockingPolicy


class ConfigFile(BaseModel):
    """Schema of the JSON config file. Every key is optional."""

    model_config = {"extra": "ignore"}

    token: str | None = None
    gitlab_url: str | None = None
    blocking_stage: str | None = None
    blocking_jobs: str | list[str] | None = None
    pre_block_duration: int | None = Field(default=None, ge=0)
    post_block_duration: int | None = Field(default=None, ge=0)
    check_interval: float | None = Field(default=None, gt=0)
    simple_mode: bool | None = None
    timeout: float | None = Field(default=None, gt=0)

    @classmethod
    def load(cls, path: Path) -> ConfigFile:
        """Read *path*; a missing, unreadable or malformed file yields an empty config."""
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return cls()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Cannot read config file %s: %s", path, e)
            return cls()
        try:
            return cls.model_validate_json(text)
        except ValidationError as e:
            logger.warning("Ignoring malformed config file %s: %s", path, e)
            return cls()


def default_config_path() -> Path:
    return Path.home() / CONFIG_FILENAME


def parse_job_list(value: str | Iterable[str] | None) -> frozenset[str]:
    """Parse ``"terraform:dev, deploy:dev"`` (or a list) into a set of job names."""
    if value is None:
        return frozenset()
    items = value.split(",") if isinstance(value, str) else value
    return frozenset(name.strip() for name in items if name.strip())


def resolve_settings(
    cli: Mapping[str, Any] | None = None,
    *,
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Merge CLI values, config file, environment and defaults into :class:`Settings`.

    *cli* must contain only values the user explicitly supplied; a key that is
    absent (or ``None``) falls through to the config file.
    """
    cli = {k: v for k, v in (cli or {}).items() if v is not None}
    env = os.environ if environ is None else environ
    file = ConfigFile.load(config_path or default_config_path())

    gitlab = GitLabConfig(
        url=(_first(cli.get("gitlab_url"), file.gitlab_url, env.get("GITLAB_URL")) or "").rstrip(
            "/"
        ),
        token=_first(cli.get("token"), file.token, _env_token(env)) or "",
        timeout=_first(
            cli.get("timeout"),
            file.timeout,
            _env_number(env, "GITLAB_TIMEOUT", float),
            DEFAULT_TIMEOUT,
        ),
        ssl_verify=_env_ssl_verify(env),
    )

    blocking_stage = _first(
        cli.get("blocking_stage"), file.blocking_stage, env.get("GITLAB_BLOCKING_STAGE") or None
    )
    blocking_jobs = parse_job_list(
        _first(cli.get("blocking_jobs"), file.blocking_jobs, env.get("GITLAB_BLOCKING_JOBS"))
    )
    simple_mode = _first(
        cli.get("simple_mode"),
        file.simple_mode,
        _env_bool(env, "GITLAB_SIMPLE_MODE"),
        True,
    )

    policy = BlockingPolicy(
        mode=Mode.SIMPLE if simple_mode else Mode.ADVANCED,
        blocking_stage=blocking_stage,
        blocking_jobs=blocking_jobs,
        pre_block_duration=_first(
            cli.get("pre_block_duration"),
            file.pre_block_duration,
            _env_number(env, "GITLAB_PRE_BLOCK_DURATION", int),
            DEFAULT_PRE_BLOCK_DURATION,
        ),
        post_block_duration=_first(
            cli.get("post_block_duration"),
            file.post_block_duration,
            _env_number(env, "GITLAB_POST_BLOCK_DURATION", int),
            DEFAULT_POST_BLOCK_DURATION,
        ),
        check_interval=_first(
            cli.get("check_interval"),
            file.check_interval,
            _env_number(env, "GITLAB_CHECK_INTERVAL", float),
            DEFAULT_CHECK_INTERVAL,
        ),
    )
    if simple_mode and policy.has_blocking_rules:
        logger.info("Blocking stage/jobs configured, using advanced mode")

    return Settings(gitlab=gitlab, policy=policy)


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def _env_token(env: Mapping[str, str]) -> str | None:
    for name in TOKEN_ENV_VARS:
        if env.get(name):
            return env[name]
    return None


def _env_number(env: Mapping[str, str], name: str, kind: type) -> Any:
    raw = env.get(name, "").strip()
    if not raw:
        return None
    try:
        return kind(raw)
    except ValueError as e:
        msg = f"{name} must be a number, got {raw!r}"
        raise ConfigurationError(msg) from e


def _env_bool(env: Mapping[str, str], name: str) -> bool | None:
    raw = env.get(name, "").strip().lower()
    if not raw:
        return None
    return raw in ("true", "1", "yes")


def _env_ssl_verify(env: Mapping[str, str]) -> bool:
    return env.get("GITLAB_SSL_VERIFY", "true").lower() not in ("false", "0", "no")
