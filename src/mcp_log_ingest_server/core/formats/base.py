"""Parser interfaces and parse outcome variants."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Protocol


@dataclass(frozen=True, slots=True)
class Matched:
    """The entry matched a grammar; ``fields`` are canonical-shaped, not yet validated."""

    fields: dict[str, Any]


@dataclass(frozen=True, slots=True)
class Rejected:
    """The entry matched a grammar but a required field is missing or invalid."""

    reason: str


# None means "this grammar does not apply"; the next parser gets a chance.
ParseOutcome = Matched | Rejected | None


class EntryParser(Protocol):
    """Parser interface: return an outcome if the line is recognized, else None."""

    def parse(self, line: str) -> ParseOutcome:
        """Parse one raw entry."""
        ...


ISO_LIKE_FORMATS: Sequence[str] = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M:%S,%f",
    "%Y/%m/%d %H:%M:%S",
)


def parse_iso_timestamp(value: str) -> datetime | None:
    """Parse an ISO8601 timestamp string into a UTC datetime (naive means UTC)."""
    try:
        ts = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None

    if ts.tzinfo is None:
        return ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC)


def parse_timestamp(value: str, formats: Sequence[str] = ISO_LIKE_FORMATS) -> datetime | None:
    """Parse ISO8601 first, then the extra strptime formats."""
    ts = parse_iso_timestamp(value)
    if ts is not None:
        return ts
    for fmt in formats:
        try:
            return datetime.strptime(value.strip(), fmt).replace(tzinfo=UTC)
        except ValueError:
            continue
    return None
