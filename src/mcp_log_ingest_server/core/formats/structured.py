"""Structured (JSON) payload handling."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from ..errors import PayloadShapeError
from .base import Matched, ParseOutcome, Rejected

CANONICAL_KEYS = (
    "timestamp",
    "logLevel",
    "message",
    "source",
    "ip",
    "method",
    "endpoint",
    "status",
    "size",
    "referrer",
    "userAgent",
)


def load_structured_payload(text: str) -> list[Any]:
    """Parse a whole structured file; it must be a JSON array."""
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise PayloadShapeError(f"invalid JSON payload: {exc.msg} (line {exc.lineno})") from exc
    if not isinstance(payload, list):
        raise PayloadShapeError(
            f"expected a JSON array of log entries, got {type(payload).__name__}"
        )
    for i, item in enumerate(payload):
        if not isinstance(item, dict):
            raise PayloadShapeError(
                f"expected a JSON array of objects, element {i} is {type(item).__name__}"
            )
    return payload


@dataclass(frozen=True, slots=True)
class StructuredParser:
    """Accept objects that are already canonical-shaped; validation happens later."""

    def parse(self, entry: Any) -> ParseOutcome:
        if not isinstance(entry, Mapping):
            return Rejected(f"expected a JSON object, got {type(entry).__name__}")

        return Matched({k: entry[k] for k in CANONICAL_KEYS if k in entry})
