"""Core data models for log ingestion and search."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

UNKNOWN_SOURCE = "unknown"


class DeclaredFormat(str, Enum):
    """Record syntax a file is declared to carry, derived from its media type."""

    STRUCTURED = "structured"
    DELIMITED = "delimited"
    FREEFORM = "freeform"


def _utc_now() -> datetime:
    return datetime.now(UTC)


class CanonicalLogRecord(BaseModel):
    """Normalized log record: the only shape that is persisted and indexed."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    timestamp: datetime
    log_level: str = Field(alias="logLevel", min_length=1)
    message: str
    source: str = Field(min_length=1)

    # Access-log extras.
    ip: str | None = None
    method: str | None = None
    endpoint: str | None = None
    status: int | None = None
    size: int | None = None
    referrer: str | None = None
    user_agent: str | None = Field(default=None, alias="userAgent")

    @field_validator("timestamp")
    @classmethod
    def _to_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    @field_validator("log_level", "source", mode="before")
    @classmethod
    def _strip_token(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()

    def to_document(self) -> dict[str, Any]:
        """Return the camelCase document shape (absent extras omitted)."""
        return self.model_dump(by_alias=True, exclude_none=True)


class IngestionFailure(BaseModel):
    """A raw entry (or whole file) that could not become a canonical record."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    raw_entry: str = Field(alias="rawEntry")
    declared_format: str = Field(alias="declaredFormat")
    reason: str
    source_file: str = Field(alias="sourceFile")
    occurred_at: datetime = Field(default_factory=_utc_now, alias="occurredAt")

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class FileError(BaseModel):
    file: str
    error: str


class BatchDiagnostic(BaseModel):
    """Batch-level write problem; the batch's entries were structurally valid."""

    file: str
    batch: int
    stage: Literal["store", "index", "failures"]
    records: int
    error: str


class IngestionRunSummary(BaseModel):
    """Per-call aggregate returned to the caller (never persisted)."""

    model_config = ConfigDict(populate_by_name=True)

    successful: int = 0
    failed: int = 0
    errors: list[FileError] = Field(default_factory=list)
    errors_truncated: int = Field(default=0, alias="errorsTruncated")
    batch_failures: list[BatchDiagnostic] = Field(default_factory=list, alias="batchFailures")
    # Files rejected as a whole (unsupported media type or payload shape).
    rejected_files: int = Field(default=0, exclude=True)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


@dataclass(frozen=True, slots=True)
class IngestFile:
    """One uploaded file: name, declared media type and raw content."""

    name: str
    media_type: str | None
    content: bytes | str


@dataclass(frozen=True, slots=True)
class NormalizationFailure:
    """Normalizer verdict for an entry that was rejected."""

    raw_entry: str
    reason: str
