"""Safe push workflow: discover the project, check pipelines, wait, push."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

import click

from . import git
from .config import BlockingPolicy
from .exceptions import FetchError, LocalCommandError
from .models.blocking import BlockingPipeline, describe_reason
from .poller import WaitOutcome, wait_until_clear
from .scanner import PipelineFetcher, find_blocking_pipelines

logger = logging.getLogger(__name__)


def _info(icon: str, text: str, color: str = "blue") -> None:
    click.echo(f"{click.style(icon, fg=color)} {text}")


def _error(text: str) -> None:
    click.echo(f"{click.style('❌', fg='red')} {text}", err=True)


def describe_policy(policy: BlockingPolicy) -> list[str]:
    """Configuration summary lines shown before the first check."""
    if policy.is_simple:
        lines = [f"  Mode: {click.style('Simple', fg='yellow')} (block on any running pipeline)"]
    else:
        lines = [f"  Mode: {click.style('Advanced', fg='green')}"]
        if policy.blocking_stage:
            lines.append(f"  Blocking stage: {click.style(policy.blocking_stage, bold=True)}")
            lines.append(f"  Pre-block duration: {policy.pre_block_duration}s")
            lines.append(f"  Post-block duration: {policy.post_block_duration}s")
        if policy.blocking_jobs:
            jobs = ", ".join(sorted(policy.blocking_jobs))
            lines.append(f"  Blocking jobs: {click.style(jobs, bold=True)}")
    lines.append(f"  Check interval: {policy.check_interval:g}s")
    return lines


class SafePush:
    """Gatekeeper around ``git push``.

    The first pipeline check fails open: if GitLab cannot be reached the push
    goes ahead with a warning. Once waiting, a failed check aborts the wait
    and the error propagates, so nothing is pushed.
    """

    def __init__(
        self,
        client: PipelineFetcher,
        policy: BlockingPolicy,
        *,
        wait: bool = True,
        cancel: asyncio.Event | None = None,
        cwd: str | None = None,
    ) -> None:
        self.client = client
        self.policy = policy
        self.wait = wait
        self.cancel = cancel or asyncio.Event()
        self.cwd = cwd

    async def run(self, git_args: Sequence[str]) -> bool:
        """Push if and when the branch is clear. Returns whether a push succeeded."""
        try:
            branch = git.current_branch(self.cwd)
            remote = git.remote_url(cwd=self.cwd)
        except LocalCommandError as e:
            _error(str(e))
            return False

        project = git.parse_project_path(remote)
        if project is None:
            _error(f"Unable to parse GitLab project from git remote: {remote}")
            return False

        _info("📋", f"Project: {click.style(project, bold=True)}")
        _info("🌿", f"Branch: {click.style(branch, bold=True)}", "green")
        _info("⚙️", "Configuration:")
        for line in describe_policy(self.policy):
            click.echo(line)
        click.echo()

        try:
            blocking = await find_blocking_pipelines(self.client, project, branch, self.policy)
        except FetchError as e:
            logger.warning("Initial pipeline check failed: %s", e)
            _info("⚠️", f"Unable to check pipelines: {e}", "yellow")
            _info("⚠️", "Push authorized with warning", "yellow")
            return self._push(git_args)

        if not blocking:
            _info("✅", "No blocking conditions detected, push authorized!", "green")
            return self._push(git_args)

        if not self.wait:
            _error("Blocking condition detected, push cancelled:")
            for item in blocking:
                click.echo(f"  Pipeline #{item.pipeline.id}: {describe_reason(item.reason)}")
            _info("💡", "Use --wait to wait for completion")
            return False

        _info("⏳", "Blocking condition detected. Waiting...", "yellow")
        outcome = await wait_until_clear(
            self.client,
            project,
            branch,
            self.policy,
            cancel=self.cancel,
            on_blocked=self._report_progress,
        )
        if outcome is WaitOutcome.CANCELLED:
            _error("Wait cancelled, nothing pushed")
            return False

        _info("✅", "No more blocking conditions, push authorized!", "green")
        return self._push(git_args)

    def _report_progress(self, attempt: int, blocker: BlockingPipeline) -> None:
        reason = click.style(describe_reason(blocker.reason), fg="bright_cyan")
        _info("⏳", f"Pipeline #{blocker.pipeline.id} - {reason}", "yellow")
        click.echo(f"   Next check in {self.policy.check_interval:g} seconds...")

    def _push(self, git_args: Sequence[str]) -> bool:
        _info("🚀", f"Executing: git {' '.join(['push', *git_args])}", "bright_green")
        try:
            ok = git.push(git_args, cwd=self.cwd)
        except LocalCommandError as e:
            _error(str(e))
            return False
        if ok:
            _info("✅", "Push completed successfully!", "green")
        else:
            _error("Push failed")
        return ok
