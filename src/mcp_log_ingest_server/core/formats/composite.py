"""Parser composition utilities."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from .access import AccessLogParser
from .base import EntryParser, ParseOutcome
from .bracket import BracketTimestampParser
from .plain import PlainFieldParser


@dataclass(frozen=True, slots=True)
class CompositeParser:
    """Try parsers in order and return the first outcome that is not None."""

    parsers: Sequence[EntryParser]

    def parse(self, line: str) -> ParseOutcome:
        """Return the first applicable outcome from the configured parsers."""
        for p in self.parsers:
            out = p.parse(line)
            if out is not None:
                return out
        return None


def default_freeform_parser() -> CompositeParser:
    """Free-form chain, most specific grammar first."""
    return CompositeParser(
        parsers=[
            AccessLogParser(),
            BracketTimestampParser(),
            PlainFieldParser(),
        ]
    )
