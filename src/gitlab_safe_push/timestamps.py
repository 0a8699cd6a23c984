"""GitLab timestamp parsing and elapsed-time arithmetic."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from .exceptions import TimestampParseError

logger = logging.getLogger(__name__)


def parse_timestamp(value: str | None) -> datetime:
    """Parse an ISO-8601 date-time with a fixed UTC offset (``Z`` allowed).

    Raises :class:`TimestampParseError` for empty, malformed or naive values.
    """
    if not value:
        raise TimestampParseError(value or "")
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as e:
        raise TimestampParseError(value) from e
    if parsed.tzinfo is None:
        raise TimestampParseError(value)
    return parsed


def seconds_since_start(
    started_at: str | None,
    created_at: str | None,
    now: datetime | None = None,
) -> int | None:
    """Whole seconds a job has been active, or ``None`` when no timestamp is usable.

    ``started_at`` wins when it parses and is not in the future; otherwise
    ``created_at`` is used.
    """
    now = now or datetime.now(timezone.utc)
    for value in (started_at, created_at):
        if value is None:
            continue
        try:
            start = parse_timestamp(value)
        except TimestampParseError as e:
            logger.debug("%s", e)
            continue
        elapsed = int((now - start).total_seconds())
        if elapsed < 0:
            logger.debug("Ignoring future timestamp %s", value)
            continue
        return elapsed
    return None
