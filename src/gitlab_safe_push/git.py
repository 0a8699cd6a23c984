"""Local git commands and remote URL parsing."""

from __future__ import annotations

import logging
import re
import subprocess
from collections.abc import Sequence
from urllib.parse import unquote, urlparse

from .exceptions import LocalCommandError

logger = logging.getLogger(__name__)

# Matches:  git@<host>:<namespace/project>[.git]
_SCP_RE = re.compile(r"^[\w.-]+@[^:/]+:(?P<path>.+?)(?:\.git)?/?$")


def run_git(*args: str, cwd: str | None = None) -> str:
    """Run ``git <args>`` and return its stripped stdout."""
    cmd = ["git", *args]
    try:
        proc = subprocess.run(cmd, cwd=cwd, capture_output=True, text=True, check=False)
    except OSError as e:
        raise LocalCommandError(cmd, str(e)) from e
    if proc.returncode != 0:
        raise LocalCommandError(cmd, proc.stderr.strip())
    return proc.stdout.strip()


def current_branch(cwd: str | None = None) -> str:
    return run_git("rev-parse", "--abbrev-ref", "HEAD", cwd=cwd)


def remote_url(remote: str = "origin", cwd: str | None = None) -> str:
    return run_git("config", "--get", f"remote.{remote}.url", cwd=cwd)


def push(args: Sequence[str], cwd: str | None = None) -> bool:
    """Run ``git push <args>`` with output going straight to the terminal.

    Returns whether git exited successfully.
    """
    cmd = ["git", "push", *args]
    logger.debug("Running %s", cmd)
    try:
        proc = subprocess.run(cmd, cwd=cwd, check=False)
    except OSError as e:
        raise LocalCommandError(cmd, str(e)) from e
    return proc.returncode == 0


def parse_project_path(url: str) -> str | None:
    """Extract ``namespace/project`` from a git remote or GitLab web URL.

    Handles scp-style SSH (``git@host:group/project.git``) and URL forms
    (``https://host/group/project.git``, ``ssh://git@host:2222/group/project``).
    Web UI suffixes such as ``/-/pipelines/9`` are dropped.
    """
    url = url.strip()
    m = _SCP_RE.match(url)
    if m and "://" not in url:
        return m.group("path")

    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        return None
    path = unquote(parsed.path).split("/-/", 1)[0].strip("/").removesuffix(".git")
    return path or None
