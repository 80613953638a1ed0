"""Log record grammars.

Contains parsers for the supported record syntaxes (structured JSON, delimited
text, access logs, bracketed service logs and a plain fallback).
"""

from __future__ import annotations

from .access import AccessLogParser
from .base import EntryParser, Matched, ParseOutcome, Rejected, parse_iso_timestamp
from .bracket import BracketTimestampParser
from .composite import CompositeParser, default_freeform_parser
from .delimited import DelimitedParser
from .plain import PlainFieldParser
from .structured import StructuredParser, load_structured_payload

__all__ = [
    "AccessLogParser",
    "BracketTimestampParser",
    "CompositeParser",
    "DelimitedParser",
    "EntryParser",
    "Matched",
    "ParseOutcome",
    "PlainFieldParser",
    "Rejected",
    "StructuredParser",
    "default_freeform_parser",
    "load_structured_payload",
    "parse_iso_timestamp",
]
