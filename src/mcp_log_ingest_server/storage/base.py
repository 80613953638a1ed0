"""Backend interfaces for the durable store and the search index."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Protocol

from ..core.models import CanonicalLogRecord, IngestionFailure


class RecordStore(Protocol):
    """Authoritative persistence for records and ingestion failures.

    Bulk inserts raise BatchWriteError when the backend rejects the write.
    """

    async def insert_records(self, records: Sequence[CanonicalLogRecord]) -> None: ...

    async def insert_failures(self, failures: Sequence[IngestionFailure]) -> None: ...

    async def list_failures(self, *, skip: int, limit: int) -> tuple[list[dict[str, Any]], int]:
        """Return one page of failure documents (newest first) and the total count."""
        ...


class SearchIndex(Protocol):
    """Query-optimized projection of records.

    Indexed records must be searchable as soon as ``bulk_index`` returns.
    """

    async def bulk_index(self, records: Sequence[CanonicalLogRecord]) -> None: ...

    async def search(self, body: Mapping[str, Any]) -> dict[str, Any]:
        """Run a compiled query body and return an Elasticsearch-shaped response."""
        ...
