"""Comma-delimited parser: timestamp,logLevel,source,message..."""

from __future__ import annotations

from dataclasses import dataclass

from .base import Matched, ParseOutcome, Rejected, parse_iso_timestamp

FIELD_NAMES = ("timestamp", "logLevel", "source")


@dataclass(frozen=True, slots=True)
class DelimitedParser:
    """Split on the first three commas; everything after is the message."""

    delimiter: str = ","

    def is_header(self, line: str) -> bool:
        """Return True for a 'timestamp,logLevel,source,...' header row."""
        head = [p.strip().lower() for p in line.split(self.delimiter, 3)[:3]]
        return head == [name.lower() for name in FIELD_NAMES]

    def parse(self, line: str) -> ParseOutcome:
        parts = line.split(self.delimiter, 3)
        values = [p.strip() for p in parts[:3]]
        values += [""] * (3 - len(values))

        for name, value in zip(FIELD_NAMES, values):
            if not value:
                return Rejected(f"missing {name} field")

        ts = parse_iso_timestamp(values[0])
        if ts is None:
            return Rejected(f"timestamp field is not a valid instant: {values[0]!r}")

        message = parts[3].strip() if len(parts) == 4 else ""
        return Matched(
            {
                "timestamp": ts,
                "logLevel": values[1],
                "source": values[2],
                "message": message,
            }
        )
