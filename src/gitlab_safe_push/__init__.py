"""Check GitLab pipelines before pushing to avoid breaking a deployment in flight."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path

import click
from click.core import ParameterSource
from dotenv import load_dotenv

from .client import GitLabClient
from .config import (
    DEFAULT_CHECK_INTERVAL,
    DEFAULT_POST_BLOCK_DURATION,
    DEFAULT_PRE_BLOCK_DURATION,
    DEFAULT_TIMEOUT,
    Settings,
    resolve_settings,
)
from .exceptions import ConfigurationError, SafePushError
from .orchestrator import SafePush

# Options that only override lower-precedence sources when typed on the command line.
_OVERRIDABLE = (
    "token",
    "gitlab_url",
    "check_interval",
    "blocking_stage",
    "blocking_jobs",
    "pre_block_duration",
    "post_block_duration",
    "simple_mode",
    "timeout",
)


async def _run(settings: Settings, git_args: Sequence[str], wait: bool) -> bool:
    async with GitLabClient(settings.gitlab) as client:
        return await SafePush(client, settings.policy, wait=wait).run(git_args)


@click.command(context_settings={"ignore_unknown_options": True})
@click.argument("git_args", nargs=-1, type=click.UNPROCESSED)
@click.option(
    "--wait/--no-wait",
    default=True,
    help="Wait for blocking pipelines to clear (default) or cancel the push",
)
@click.option("--token", help="GitLab personal access token")
@click.option("--gitlab-url", help="GitLab instance URL")
@click.option(
    "--check-interval",
    type=click.FloatRange(min=0, min_open=True),
    default=DEFAULT_CHECK_INTERVAL,
    show_default=True,
    help="Seconds between checks while waiting",
)
@click.option("--blocking-stage", help="Stage name that blocks pushes (e.g. 'deploy')")
@click.option(
    "--blocking-jobs",
    help="Comma-separated job names that block pushes (e.g. 'terraform:dev,deploy:dev')",
)
@click.option(
    "--pre-block-duration",
    type=click.IntRange(min=0),
    default=DEFAULT_PRE_BLOCK_DURATION,
    show_default=True,
    help="Seconds the stage before the blocking stage must run before it blocks",
)
@click.option(
    "--post-block-duration",
    type=click.IntRange(min=0),
    default=DEFAULT_POST_BLOCK_DURATION,
    show_default=True,
    help="Seconds the stage after the blocking stage keeps blocking once started",
)
@click.option("--simple-mode", is_flag=True, help="Block on any running pipeline")
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=DEFAULT_TIMEOUT,
    show_default=True,
    help="Per-request timeout for GitLab API calls, in seconds",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Config file (default: ~/.gitlab-safe-push-config.json)",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.version_option(package_name="gitlab-safe-push")
@click.pass_context
def main(
    ctx: click.Context,
    git_args: tuple[str, ...],
    wait: bool,
    config_path: Path | None,
    verbose: bool,
    **_options: object,
) -> None:
    """Check GitLab pipelines, then run `git push GIT_ARGS...` when it is safe."""
    load_dotenv()
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    explicit = {
        name: ctx.params[name]
        for name in _OVERRIDABLE
        if ctx.get_parameter_source(name) is ParameterSource.COMMANDLINE
    }
    try:
        settings = resolve_settings(explicit, config_path=config_path)
        settings.gitlab.validate()
    except ConfigurationError as e:
        click.echo(f"{click.style('❌', fg='red')} Configuration error: {e}", err=True)
        ctx.exit(1)

    try:
        ok = asyncio.run(_run(settings, git_args, wait))
    except SafePushError as e:
        click.echo(f"{click.style('❌', fg='red')} Error: {e}", err=True)
        ctx.exit(1)
    except KeyboardInterrupt:
        click.echo("Interrupted, nothing pushed", err=True)
        ctx.exit(130)

    ctx.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
