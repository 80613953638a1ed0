"""Instant parsing and the default search window."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

DEFAULT_LOOKBACK = timedelta(days=365)


def parse_iso_dt(s: str) -> datetime:
    """Parse ISO8601 datetime. If tz is missing, assume UTC."""
    dt = datetime.fromisoformat(s.strip().replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def resolve_search_window(
    *,
    since: str | datetime | None = None,
    until: str | datetime | None = None,
    now: datetime | None = None,
) -> tuple[datetime, datetime]:
    """Resolve a closed [since, until] UTC window, defaulting to the last year.

    Each missing bound is filled independently: ``until`` with ``now`` and
    ``since`` with one year before ``now``.
    """
    now = now or datetime.now(UTC)
    s = _coerce(since) if since else now - DEFAULT_LOOKBACK
    u = _coerce(until) if until else now
    return s, u


def _coerce(value: str | datetime) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)
    return parse_iso_dt(value)
