"""Error taxonomy for ingestion and search."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import IngestionRunSummary


class LogIngestError(Exception):
    """Base class for errors raised by this package."""


class ClassificationError(LogIngestError):
    """A file's media type does not map to a known record syntax."""

    def __init__(self, message: str, *, media_type: str | None = None) -> None:
        super().__init__(message)
        self.media_type = media_type


class PayloadShapeError(ClassificationError):
    """A structured file is not a JSON array of objects."""


class NormalizationError(LogIngestError):
    """An entry failed parsing or the canonical-record invariant."""

    def __init__(self, reason: str, *, raw_entry: str = "") -> None:
        super().__init__(reason)
        self.reason = reason
        self.raw_entry = raw_entry


class BatchWriteError(LogIngestError):
    """A bulk write to the durable store or the search index failed."""

    def __init__(self, message: str, *, stage: str) -> None:
        super().__init__(message)
        self.stage = stage


class QueryCompilationError(LogIngestError, ValueError):
    """Search parameters cannot be coerced into a sane query."""


class StoreUnavailableError(LogIngestError):
    """No batch of the request could be written to the durable store."""

    def __init__(self, message: str, *, summary: IngestionRunSummary) -> None:
        super().__init__(message)
        self.summary = summary
