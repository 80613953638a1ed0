"""Format detection and normalization into canonical records.

``normalize`` is a pure function: it keeps no state between calls and never
touches the backends. Grammar misses are signalled with values, validation
failures with :class:`NormalizationError`, which is converted back into a
:class:`NormalizationFailure` before leaving this module.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from .errors import ClassificationError, NormalizationError
from .formats import (
    DelimitedParser,
    EntryParser,
    Rejected,
    StructuredParser,
    default_freeform_parser,
)
from .models import CanonicalLogRecord, DeclaredFormat, NormalizationFailure

MEDIA_TYPE_FORMATS: Mapping[str, DeclaredFormat] = {
    "application/json": DeclaredFormat.STRUCTURED,
    "text/csv": DeclaredFormat.DELIMITED,
    "text/plain": DeclaredFormat.FREEFORM,
}

UNRECOGNIZED_FREEFORM = "unrecognized free-form format"

_PARSERS: Mapping[DeclaredFormat, EntryParser] = {
    DeclaredFormat.STRUCTURED: StructuredParser(),
    DeclaredFormat.DELIMITED: DelimitedParser(),
    DeclaredFormat.FREEFORM: default_freeform_parser(),
}


def classify_media_type(media_type: str | None) -> DeclaredFormat:
    """Map a media type (parameters and case ignored) to a record syntax."""
    essence = (media_type or "").split(";", 1)[0].strip().lower()
    try:
        return MEDIA_TYPE_FORMATS[essence]
    except KeyError:
        shown = media_type or "<none>"
        raise ClassificationError(
            f"Unsupported file format: {shown}", media_type=media_type
        ) from None


def raw_text(entry: Any) -> str:
    """Render an entry as text for diagnostics."""
    if isinstance(entry, bytes):
        return entry.decode("utf-8", errors="replace")
    if isinstance(entry, str):
        return entry
    try:
        return json.dumps(entry, default=str, ensure_ascii=False)
    except (TypeError, ValueError):
        return repr(entry)


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "record"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


def validate_record(fields: Mapping[str, Any], *, raw_entry: str = "") -> CanonicalLogRecord:
    """Build a record, enforcing the canonical invariant."""
    try:
        return CanonicalLogRecord.model_validate(dict(fields))
    except ValidationError as exc:
        raise NormalizationError(_describe(exc), raw_entry=raw_entry) from exc


def normalize(
    raw_entry: Any,
    declared_format: DeclaredFormat,
) -> CanonicalLogRecord | NormalizationFailure:
    """Convert one raw entry into a canonical record, or report why not."""
    raw = raw_text(raw_entry)
    entry = raw if isinstance(raw_entry, bytes) else raw_entry

    outcome = _PARSERS[declared_format].parse(entry)
    if outcome is None:
        reason = (
            UNRECOGNIZED_FREEFORM
            if declared_format is DeclaredFormat.FREEFORM
            else f"unrecognized {declared_format.value} entry"
        )
        return NormalizationFailure(raw_entry=raw, reason=reason)
    if isinstance(outcome, Rejected):
        return NormalizationFailure(raw_entry=raw, reason=outcome.reason)

    try:
        return validate_record(outcome.fields, raw_entry=raw)
    except NormalizationError as exc:
        return NormalizationFailure(raw_entry=exc.raw_entry, reason=exc.reason)
