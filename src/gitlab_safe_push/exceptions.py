"""Safe-push exceptions."""

from __future__ import annotations


class SafePushError(Exception):
    """Base exception for safe-push operations."""


class ConfigurationError(SafePushError, ValueError):
    """Raised when required settings are missing or invalid, before any API call."""


class FetchError(SafePushError):
    """Raised when pipeline or job data cannot be fetched from GitLab."""

    def __init__(self, message: str, status_code: int | None = None, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class GitLabApiError(FetchError):
    """Raised when the GitLab API returns a non-success response."""

    def __init__(self, status_code: int, status_text: str, body: str = "") -> None:
        self.status_text = status_text
        super().__init__(f"GitLab API Error {status_code} {status_text}: {body}", status_code, body)


class GitLabAuthError(GitLabApiError):
    """Raised on 401/403 authentication failures."""

    def __init__(self, status_code: int, body: str = "") -> None:
        status_text = "Unauthorized" if status_code == 401 else "Forbidden"
        super().__init__(status_code, status_text, body)


class GitLabNotFoundError(GitLabApiError):
    """Raised on 404 responses."""

    def __init__(self, body: str = "") -> None:
        super().__init__(404, "Not Found", body)


class GitLabTransportError(FetchError):
    """Raised when the request never produced a response (DNS, TLS, timeout...)."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"GitLab request failed: {detail}", None, "")


class TimestampParseError(SafePushError, ValueError):
    """Raised when a GitLab timestamp is not a fixed-offset ISO-8601 date-time."""

    def __init__(self, value: str) -> None:
        self.value = value
        super().__init__(f"Unparseable timestamp: {value!r}")


class LocalCommandError(SafePushError):
    """Raised when a local git command cannot run or exits non-zero."""

    def __init__(self, command: list[str], stderr: str = "") -> None:
        self.command = command
        self.stderr = stderr
        msg = f"Git command failed ({' '.join(command)})"
        if stderr:
            msg = f"{msg}: {stderr}"
        super().__init__(msg)
