from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import pytest

pymongo = pytest.importorskip("pymongo")

from pymongo.errors import PyMongoError  # noqa: E402

from mcp_log_ingest_server.core.errors import BatchWriteError  # noqa: E402
from mcp_log_ingest_server.core.models import CanonicalLogRecord, IngestionFailure  # noqa: E402
from mcp_log_ingest_server.storage.mongo import (  # noqa: E402
    FAILURES_COLLECTION,
    RECORDS_COLLECTION,
    MongoRecordStore,
)


class FakeCursor:
    def __init__(self, docs: list[dict[str, Any]]) -> None:
        self.docs = docs
        self.calls: list[tuple[str, Any]] = []

    def sort(self, key: str, direction: int) -> FakeCursor:
        self.calls.append(("sort", (key, direction)))
        return self

    def skip(self, n: int) -> FakeCursor:
        self.calls.append(("skip", n))
        return self

    def limit(self, n: int) -> FakeCursor:
        self.calls.append(("limit", n))
        return self

    async def to_list(self, length: int | None = None) -> list[dict[str, Any]]:
        return list(self.docs)


class FakeCollection:
    def __init__(self, fail: bool = False) -> None:
        self.inserted: list[dict[str, Any]] = []
        self.fail = fail
        self.cursor = FakeCursor([])
        self.find_args: tuple[Any, ...] = ()

    async def insert_many(self, docs: list[dict[str, Any]]) -> None:
        if self.fail:
            raise PyMongoError("not primary")
        self.inserted.extend(docs)

    def find(self, *args: Any) -> FakeCursor:
        self.find_args = args
        return self.cursor

    async def count_documents(self, _filter: dict[str, Any]) -> int:
        return 42


def _db(**collections: FakeCollection) -> dict[str, FakeCollection]:
    return {
        RECORDS_COLLECTION: collections.get("records", FakeCollection()),
        FAILURES_COLLECTION: collections.get("failures", FakeCollection()),
    }


def _record() -> CanonicalLogRecord:
    return CanonicalLogRecord(
        timestamp=datetime(2024, 1, 1, tzinfo=UTC), log_level="INFO", message="hi", source="svc"
    )


@pytest.mark.asyncio
async def test_insert_records_writes_documents() -> None:
    db = _db()
    await MongoRecordStore(db).insert_records([_record()])

    [doc] = db[RECORDS_COLLECTION].inserted
    assert doc["logLevel"] == "INFO"
    assert doc["timestamp"] == datetime(2024, 1, 1, tzinfo=UTC)
    assert "referrer" not in doc


@pytest.mark.asyncio
async def test_empty_inserts_are_skipped() -> None:
    db = _db(records=FakeCollection(fail=True), failures=FakeCollection(fail=True))
    store = MongoRecordStore(db)
    await store.insert_records([])
    await store.insert_failures([])


@pytest.mark.asyncio
async def test_insert_errors_become_batch_write_errors() -> None:
    db = _db(records=FakeCollection(fail=True), failures=FakeCollection(fail=True))
    store = MongoRecordStore(db)

    with pytest.raises(BatchWriteError) as info:
        await store.insert_records([_record()])
    assert info.value.stage == "store"

    failure = IngestionFailure(raw_entry="x", declared_format="freeform", reason="r", source_file="a.log")
    with pytest.raises(BatchWriteError) as info:
        await store.insert_failures([failure])
    assert info.value.stage == "failures"


@pytest.mark.asyncio
async def test_list_failures_newest_first_with_paging() -> None:
    failures = FakeCollection()
    failures.cursor = FakeCursor([{"rawEntry": "x"}])
    store = MongoRecordStore(_db(failures=failures))

    docs, total = await store.list_failures(skip=20, limit=10)

    assert docs == [{"rawEntry": "x"}]
    assert total == 42
    assert failures.find_args == ({}, {"_id": 0})
    assert failures.cursor.calls == [
        ("sort", ("occurredAt", pymongo.DESCENDING)),
        ("skip", 20),
        ("limit", 10),
    ]
