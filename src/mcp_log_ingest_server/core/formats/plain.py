"""Fallback parser for '<timestamp> <LEVEL> <message...>' lines."""

from __future__ import annotations

from dataclasses import dataclass

from ..models import UNKNOWN_SOURCE
from .base import Matched, ParseOutcome, Rejected, parse_iso_timestamp


@dataclass(frozen=True, slots=True)
class PlainFieldParser:
    """Least constrained grammar: split on whitespace, source is unknown."""

    default_source: str = UNKNOWN_SOURCE

    def parse(self, line: str) -> ParseOutcome:
        parts = line.split(None, 2)
        if len(parts) < 2:
            return None

        ts_raw, level = parts[0], parts[1]
        ts = parse_iso_timestamp(ts_raw)
        if ts is None:
            return Rejected(f"timestamp field is not a valid instant: {ts_raw!r}")

        return Matched(
            {
                "timestamp": ts,
                "logLevel": level,
                "source": self.default_source,
                "message": parts[2].strip() if len(parts) == 3 else "",
            }
        )
