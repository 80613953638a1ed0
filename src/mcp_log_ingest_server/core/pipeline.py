"""Batched dual-write ingestion.

Files are processed sequentially in input order. Each file is split into
entries, entries are normalized in fixed-size batches, and every batch's
survivors are written to the durable store and then to the search index.
Failures are isolated at file, entry and batch granularity and aggregated into
an :class:`IngestionRunSummary`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Sequence
from typing import Any

from ..storage.base import RecordStore, SearchIndex
from .config import IngestConfig
from .errors import BatchWriteError, ClassificationError, StoreUnavailableError
from .formats import DelimitedParser, load_structured_payload
from .models import (
    BatchDiagnostic,
    CanonicalLogRecord,
    DeclaredFormat,
    FileError,
    IngestFile,
    IngestionFailure,
    IngestionRunSummary,
)
from .normalizer import classify_media_type, normalize, raw_text

logger = logging.getLogger(__name__)

# Raw text kept for a whole-file rejection.
MAX_FILE_RAW_CHARS = 4096


def split_entries(text: str, declared_format: DeclaredFormat) -> list[Any]:
    """Split file content into raw entries.

    Structured payloads are parsed once as a whole (raising PayloadShapeError);
    line-oriented formats drop blank lines, and a delimited header row is skipped.
    """
    if declared_format is DeclaredFormat.STRUCTURED:
        return load_structured_payload(text)

    lines = [line for line in text.splitlines() if line.strip()]
    if declared_format is DeclaredFormat.DELIMITED and lines and DelimitedParser().is_header(lines[0]):
        lines = lines[1:]
    return lines


def iter_batches(entries: Sequence[Any], size: int) -> Iterator[Sequence[Any]]:
    for start in range(0, len(entries), size):
        yield entries[start : start + size]


def _decode(content: bytes | str) -> str:
    if isinstance(content, bytes):
        return content.decode("utf-8-sig", errors="replace")
    return content


class _RunState:
    """Request-scoped bookkeeping for one ingest call."""

    def __init__(self, max_errors: int) -> None:
        self.summary = IngestionRunSummary()
        self.max_errors = max_errors
        self.store_attempts = 0
        self.store_failures = 0

    def add_error(self, file: str, error: str) -> None:
        if len(self.summary.errors) < self.max_errors:
            self.summary.errors.append(FileError(file=file, error=error))
        else:
            self.summary.errors_truncated += 1

    def add_batch_failure(self, diag: BatchDiagnostic) -> None:
        self.summary.batch_failures.append(diag)
        self.add_error(diag.file, f"batch {diag.batch} {diag.stage} write failed: {diag.error}")


class IngestionPipeline:
    """Owns batch construction and the decision of what is written where."""

    def __init__(
        self,
        store: RecordStore,
        index: SearchIndex,
        config: IngestConfig | None = None,
    ) -> None:
        self.store = store
        self.index = index
        self.config = config or IngestConfig()

    async def ingest(self, files: Iterable[IngestFile]) -> IngestionRunSummary:
        """Ingest files in order and return the run summary.

        Raises StoreUnavailableError when every attempted durable-store write
        failed, since nothing of the request could be persisted.
        """
        state = _RunState(self.config.max_summary_errors)
        for f in files:
            await self._ingest_file(f, state)

        summary = state.summary
        if state.store_attempts and state.store_failures == state.store_attempts:
            raise StoreUnavailableError(
                f"durable store rejected all {state.store_attempts} batch writes",
                summary=summary,
            )
        logger.info(
            "Ingest finished: successful=%s failed=%s batch_failures=%s",
            summary.successful,
            summary.failed,
            len(summary.batch_failures),
        )
        return summary

    async def _ingest_file(self, f: IngestFile, state: _RunState) -> None:
        try:
            declared = classify_media_type(f.media_type)
        except ClassificationError as exc:
            await self._file_failure(f, f.media_type or "unknown", str(exc), state)
            return

        text = _decode(f.content)
        try:
            entries = split_entries(text, declared)
        except ClassificationError as exc:
            await self._file_failure(f, declared.value, str(exc), state, raw=text[:MAX_FILE_RAW_CHARS])
            return

        logger.debug("Ingesting %s: %s %s entries", f.name, len(entries), declared.value)
        for batch_no, batch in enumerate(iter_batches(entries, self.config.batch_size), start=1):
            await self._ingest_batch(f.name, declared, batch_no, batch, state)

    async def _file_failure(
        self,
        f: IngestFile,
        declared_format: str,
        reason: str,
        state: _RunState,
        *,
        raw: str = "",
    ) -> None:
        logger.warning("Rejected file %s: %s", f.name, reason)
        state.summary.failed += 1
        state.summary.rejected_files += 1
        state.add_error(f.name, reason)
        failure = IngestionFailure(
            raw_entry=raw,
            declared_format=declared_format,
            reason=reason,
            source_file=f.name,
        )
        await self._write_failures(f.name, 0, [failure], state)

    async def _ingest_batch(
        self,
        file_name: str,
        declared: DeclaredFormat,
        batch_no: int,
        batch: Sequence[Any],
        state: _RunState,
    ) -> None:
        records: list[CanonicalLogRecord] = []
        failures: list[IngestionFailure] = []

        for entry in batch:
            result = normalize(entry, declared)
            if isinstance(result, CanonicalLogRecord):
                records.append(result)
                continue
            logger.debug("Rejected entry in %s: %s", file_name, result.reason)
            failures.append(
                IngestionFailure(
                    raw_entry=result.raw_entry or raw_text(entry),
                    declared_format=declared.value,
                    reason=result.reason,
                    source_file=file_name,
                )
            )
            state.add_error(file_name, result.reason)

        state.summary.failed += len(failures)
        if failures:
            await self._write_failures(file_name, batch_no, failures, state)

        if not records:
            return

        state.store_attempts += 1
        try:
            await self.store.insert_records(records)
        except BatchWriteError as exc:
            state.store_failures += 1
            logger.warning("Store write failed for %s batch %s: %s", file_name, batch_no, exc)
            state.add_batch_failure(
                BatchDiagnostic(
                    file=file_name, batch=batch_no, stage="store", records=len(records), error=str(exc)
                )
            )
            return

        try:
            await self.index.bulk_index(records)
        except BatchWriteError as exc:
            logger.warning(
                "Index write failed for %s batch %s; batch is stored but not searchable: %s",
                file_name,
                batch_no,
                exc,
            )
            state.add_batch_failure(
                BatchDiagnostic(
                    file=file_name, batch=batch_no, stage="index", records=len(records), error=str(exc)
                )
            )
            return

        state.summary.successful += len(records)

    async def _write_failures(
        self,
        file_name: str,
        batch_no: int,
        failures: list[IngestionFailure],
        state: _RunState,
    ) -> None:
        try:
            await self.store.insert_failures(failures)
        except BatchWriteError as exc:
            logger.warning("Could not persist %s ingestion failures for %s: %s", len(failures), file_name, exc)
            state.add_batch_failure(
                BatchDiagnostic(
                    file=file_name,
                    batch=batch_no,
                    stage="failures",
                    records=len(failures),
                    error=str(exc),
                )
            )
