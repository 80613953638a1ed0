"""MongoDB durable store (pymongo async client)."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from pymongo import DESCENDING, AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import PyMongoError

from ..core.errors import BatchWriteError
from ..core.models import CanonicalLogRecord, IngestionFailure

logger = logging.getLogger(__name__)

RECORDS_COLLECTION = "logs"
FAILURES_COLLECTION = "ingestion_failures"


class MongoRecordStore:
    """Records and failures live in two collections of one database."""

    def __init__(self, database: AsyncDatabase, *, client: AsyncMongoClient | None = None) -> None:
        self._client = client
        self._records = database[RECORDS_COLLECTION]
        self._failures = database[FAILURES_COLLECTION]

    @classmethod
    def from_uri(cls, uri: str, database: str) -> MongoRecordStore:
        client: AsyncMongoClient = AsyncMongoClient(uri, tz_aware=True)
        return cls(client[database], client=client)

    async def insert_records(self, records: Sequence[CanonicalLogRecord]) -> None:
        if not records:
            return
        try:
            await self._records.insert_many([r.to_document() for r in records])
        except PyMongoError as exc:
            raise BatchWriteError(f"MongoDB insert of {len(records)} records failed: {exc}", stage="store") from exc

    async def insert_failures(self, failures: Sequence[IngestionFailure]) -> None:
        if not failures:
            return
        try:
            await self._failures.insert_many([f.to_document() for f in failures])
        except PyMongoError as exc:
            raise BatchWriteError(
                f"MongoDB insert of {len(failures)} failures failed: {exc}", stage="failures"
            ) from exc

    async def list_failures(self, *, skip: int, limit: int) -> tuple[list[dict[str, Any]], int]:
        cursor = (
            self._failures.find({}, {"_id": 0})
            .sort("occurredAt", DESCENDING)
            .skip(skip)
            .limit(limit)
        )
        docs = await cursor.to_list(length=None)
        total = await self._failures.count_documents({})
        return docs, total

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
