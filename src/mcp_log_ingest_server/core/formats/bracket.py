"""Bracketed timestamp parser."""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from .base import ISO_LIKE_FORMATS, Matched, ParseOutcome, Rejected, parse_timestamp


@dataclass(frozen=True, slots=True)
class BracketTimestampParser:
    """Parse '[<timestamp>] [LEVEL] <service> - <message>' lines."""

    timestamp_formats: Sequence[str] = ISO_LIKE_FORMATS

    _re = re.compile(
        r"^\[(?P<ts>[^\]]+)\]\s+\[(?P<level>[A-Za-z]+)\]\s+(?P<service>\S+)\s+-\s?(?P<msg>.*)$"
    )

    def parse(self, line: str) -> ParseOutcome:
        """Parse a bracketed line into canonical fields."""
        m = self._re.match(line.strip())
        if not m:
            return None

        ts = parse_timestamp(m.group("ts"), self.timestamp_formats)
        if ts is None:
            return Rejected(f"invalid timestamp: {m.group('ts')!r}")

        return Matched(
            {
                "timestamp": ts,
                "logLevel": m.group("level"),
                "source": m.group("service"),
                "message": m.group("msg").strip(),
            }
        )
